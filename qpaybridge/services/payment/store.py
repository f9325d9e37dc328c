"""In-memory payment state owned by one `PaymentService`.

Two maps: `records` keyed by invoice id or gateway payment id, and `links`
from an invoice id to the gateway payment id discovered for it. A link is a
back-reference only; the record it points to always lives in `records`.
No locks: writers are idempotent upserts, so an interleaving loses at most a
stale update.
"""

import time
from typing import Callable

from qpaybridge.common.metrics import payment_records
from qpaybridge.services.payment.models import PaymentRecord


class PaymentStore:
    def __init__(self, ttl_seconds: int | None = None, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.records: dict[str, PaymentRecord] = {}
        self.links: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self.records)

    def get(self, key: str) -> PaymentRecord | None:
        return self.records.get(key)

    def resolve(self, identifier: str) -> str:
        """Map an invoice id to its gateway payment id when one is known."""

        return self.links.get(identifier, identifier)

    def lookup(self, identifier: str) -> PaymentRecord | None:
        return self.records.get(self.resolve(identifier))

    def upsert(self, key: str, **fields) -> PaymentRecord:
        """Create or merge into the record under `key`.

        Fields passed as None do not erase what an earlier writer recorded
        (promo code and email set at invoice time survive later updates).
        """

        now = self.clock()
        record = self.records.get(key)
        if record is None:
            record = PaymentRecord(**{k: v for k, v in fields.items() if v is not None}, updated_at=now)
            self.records[key] = record
        else:
            for name, value in fields.items():
                if value is not None:
                    setattr(record, name, value)
            record.updated_at = now
        self.prune(now)
        payment_records.set(len(self.records))
        return record

    def link(self, invoice_id: str, payment_id: str) -> None:
        if payment_id not in self.records:
            raise KeyError(f"no payment record for {payment_id}")
        if invoice_id != payment_id:
            self.links[invoice_id] = payment_id

    def snapshot(self, identifier: str) -> PaymentRecord | None:
        record = self.lookup(identifier)
        return record.model_copy(deep=True) if record is not None else None

    def prune(self, now: float | None = None) -> int:
        """Evict records untouched for longer than the TTL, with their links."""

        if not self.ttl_seconds:
            return 0
        cutoff = (now if now is not None else self.clock()) - self.ttl_seconds
        stale = [key for key, record in self.records.items() if record.updated_at < cutoff]
        for key in stale:
            del self.records[key]
        if stale:
            gone = set(stale)
            self.links = {
                invoice_id: payment_id
                for invoice_id, payment_id in self.links.items()
                if payment_id not in gone
            }
            payment_records.set(len(self.records))
        return len(stale)
