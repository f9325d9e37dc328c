"""In-memory payment store: upsert merge, cross-map, eviction."""

import pytest

from qpaybridge.services.payment.store import PaymentStore


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_upsert_merges_without_erasing_invoice_metadata():
    store = PaymentStore()
    store.upsert("P1", status="PENDING", email="buyer@example.com", promo_code="SAVE20")

    store.upsert("P1", status="PAID", verified=True, email=None, details={"payment_id": "P1"})

    record = store.get("P1")
    assert record.status == "PAID"
    assert record.verified is True
    assert record.email == "buyer@example.com"
    assert record.promo_code == "SAVE20"


def test_link_requires_existing_payment_record():
    store = PaymentStore()

    with pytest.raises(KeyError):
        store.link("INV-1", "P1")


def test_lookup_follows_link():
    store = PaymentStore()
    store.upsert("P1", status="PAID", verified=True)
    store.link("INV-1", "P1")

    assert store.resolve("INV-1") == "P1"
    assert store.resolve("P1") == "P1"
    assert store.lookup("INV-1") is store.get("P1")


def test_snapshot_is_detached():
    store = PaymentStore()
    store.upsert("P1", status="PAID", details={"amount": 1500})

    snap = store.snapshot("P1")
    snap.details["amount"] = 0

    assert store.get("P1").details == {"amount": 1500}
    assert store.snapshot("missing") is None


def test_ttl_evicts_stale_records_and_their_links():
    clock = FakeClock()
    store = PaymentStore(ttl_seconds=60, clock=clock)
    store.upsert("P1", status="PAID", verified=True)
    store.link("INV-1", "P1")

    clock.now = 61
    store.upsert("P2", status="PAID", verified=True)

    assert store.get("P1") is None
    assert "INV-1" not in store.links
    assert len(store) == 1


def test_no_ttl_keeps_everything():
    clock = FakeClock()
    store = PaymentStore(clock=clock)
    store.upsert("P1", status="PAID")

    clock.now = 10**9
    assert store.prune() == 0
    assert store.get("P1") is not None
