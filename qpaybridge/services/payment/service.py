"""Payment orchestration against QPay.

Creates invoices (with promo discounts), reconciles payment status across the
two identifier spaces QPay uses (invoice id vs. payment id) and applies
gateway callbacks. All state lives in the injected `PaymentStore`.
"""

import time
from dataclasses import dataclass
from uuid import uuid4

from qpaybridge.common.logging import invoice_id_ctx, logger, payment_id_ctx
from qpaybridge.common.metrics import (
    callbacks_total,
    invoice_failures_total,
    invoices_created_total,
    status_checks_total,
)
from qpaybridge.services.payment.errors import (
    AuthError,
    CallbackProcessingError,
    GatewayError,
    InvoiceCreationError,
    StatusCheckError,
)
from qpaybridge.services.payment.models import PENDING, PaymentRecord
from qpaybridge.services.payment.store import PaymentStore


@dataclass(frozen=True)
class InvoiceAmounts:
    original: float
    discount_applied: float
    final: float


def calculate_amounts(base_amount: float, discount: int, precision: int = 2) -> InvoiceAmounts:
    """Apply a percentage discount to the base price."""

    discount_applied = base_amount * discount / 100
    return InvoiceAmounts(
        original=base_amount,
        discount_applied=round(discount_applied, precision),
        final=round(base_amount * (1 - discount / 100), precision),
    )


def new_sender_invoice_no() -> str:
    # Millisecond timestamp keeps numbers sortable; the suffix survives clock rollback.
    return f"{int(time.time() * 1000)}{uuid4().hex[:6]}"


@dataclass
class InvoiceSettings:
    invoice_code: str
    receiver_code: str
    branch_code: str
    description: str
    callback_url: str
    base_amount: float = 1500
    amount_precision: int = 2
    check_page_limit: int = 100


class PaymentService:
    """Owns invoice creation, status reconciliation and callback handling."""

    def __init__(self, gateway, token_cache, promo_resolver, store: PaymentStore, config: InvoiceSettings) -> None:
        self.gateway = gateway
        self.token_cache = token_cache
        self.promo_resolver = promo_resolver
        self.store = store
        self.config = config

    def _invoice_body(self, promo_code: str | None, amount: float) -> dict:
        description = self.config.description
        if promo_code:
            description = f"{description} (Promo: {promo_code})"
        return {
            "invoice_code": self.config.invoice_code,
            "sender_invoice_no": new_sender_invoice_no(),
            "invoice_receiver_code": self.config.receiver_code,
            "invoice_description": description,
            "sender_branch_code": self.config.branch_code,
            "amount": amount,
            "callback_url": self.config.callback_url,
        }

    async def create_invoice(self, promo_code: str | None, email: str) -> dict:
        """Create a QPay invoice for the base price minus any promo discount.

        Returns the gateway response merged with `originalAmount`,
        `discountApplied` and `finalAmount`. Nothing is recorded when the
        gateway call fails.
        """

        promo_code = promo_code.strip() if promo_code else None
        logger.info("invoice creation started promo_code=%s email=%s", promo_code, email)
        try:
            token = await self.token_cache.get_auth_token()
        except AuthError as exc:
            invoice_failures_total.inc()
            logger.error("invoice creation failed: %s", exc)
            raise InvoiceCreationError.from_cause(exc) from exc

        discount = await self.promo_resolver.resolve_discount(promo_code)
        amounts = calculate_amounts(self.config.base_amount, discount, self.config.amount_precision)
        logger.info(
            "invoice amount calculated base=%s discount=%s final=%s",
            amounts.original,
            discount,
            amounts.final,
        )

        try:
            response = await self.gateway.create_invoice(token, self._invoice_body(promo_code, amounts.final))
        except GatewayError as exc:
            invoice_failures_total.inc()
            logger.error("invoice creation failed: %s", exc)
            raise InvoiceCreationError.from_cause(exc) from exc

        invoice_id = response.get("invoice_id")
        if not invoice_id:
            invoice_failures_total.inc()
            logger.error("invoice creation failed: response has no invoice_id")
            raise InvoiceCreationError("invoice creation failed: response has no invoice_id", body=response)

        invoice_id = str(invoice_id)
        invoice_id_ctx.set(invoice_id)
        self.store.upsert(
            invoice_id,
            status=PENDING,
            verified=False,
            promo_code=promo_code,
            email=email,
            invoice_id=invoice_id,
        )
        invoices_created_total.labels(promo="yes" if discount else "no").inc()
        logger.info("invoice created invoice_id=%s amount=%s", invoice_id, amounts.final)
        return {
            **response,
            "originalAmount": amounts.original,
            "discountApplied": amounts.discount_applied,
            "finalAmount": amounts.final,
        }

    async def check_status(self, identifier: str) -> PaymentRecord:
        """Resolve an invoice id or payment id to its current payment status.

        A verified record is answered from memory without touching QPay.
        Otherwise the first row of a payment check becomes authoritative; when
        QPay knows no payment yet, a PENDING placeholder is returned and
        nothing is stored.
        """

        record = self.store.lookup(identifier)
        if record is not None and record.verified:
            status_checks_total.labels(source="cache").inc()
            return self.store.snapshot(identifier)

        try:
            token = await self.token_cache.get_auth_token()
            result = await self.gateway.check_payment(
                token,
                identifier,
                page_number=1,
                page_limit=self.config.check_page_limit,
            )
        except (AuthError, GatewayError) as exc:
            logger.error("payment status check failed id=%s: %s", identifier, exc)
            raise StatusCheckError.from_cause(exc) from exc

        rows = result.get("rows") or []
        if not result.get("count") or not rows:
            status_checks_total.labels(source="default").inc()
            return PaymentRecord(status=PENDING, verified=False, details=None)

        row = rows[0]
        payment_id = row.get("payment_id")
        if not payment_id:
            logger.error("payment check row has no payment_id id=%s", identifier)
            raise StatusCheckError("payment status check failed: row has no payment_id", body=result)

        payment_id = str(payment_id)
        payment_id_ctx.set(payment_id)
        origin = self.store.get(identifier)
        updated = self.store.upsert(
            payment_id,
            status=row.get("payment_status") or PENDING,
            verified=True,
            details=row,
            invoice_id=identifier,
            promo_code=origin.promo_code if origin else None,
            email=origin.email if origin else None,
        )
        self.store.link(identifier, payment_id)
        status_checks_total.labels(source="gateway").inc()
        logger.info("payment status reconciled id=%s payment_id=%s status=%s", identifier, payment_id, updated.status)
        return self.store.snapshot(identifier)

    async def handle_callback(self, payment_id: str) -> PaymentRecord:
        """Apply a QPay payment notification by fetching the payment itself."""

        payment_id_ctx.set(payment_id)
        try:
            token = await self.token_cache.get_auth_token()
            info = await self.gateway.get_payment(token, payment_id)
        except (AuthError, GatewayError) as exc:
            callbacks_total.labels(outcome="failed").inc()
            logger.error("callback processing failed payment_id=%s: %s", payment_id, exc)
            raise CallbackProcessingError.from_cause(exc) from exc

        invoice_id = info.get("object_id")
        invoice_id = str(invoice_id) if invoice_id else None
        origin = self.store.get(invoice_id) if invoice_id else None
        updated = self.store.upsert(
            payment_id,
            status=info.get("payment_status") or PENDING,
            verified=True,
            details=info,
            invoice_id=invoice_id,
            promo_code=origin.promo_code if origin else None,
            email=origin.email if origin else None,
        )
        if invoice_id:
            invoice_id_ctx.set(invoice_id)
            self.store.link(invoice_id, payment_id)
        else:
            logger.warning("callback payment has no invoice reference payment_id=%s", payment_id)
        callbacks_total.labels(outcome="ok").inc()
        logger.info("callback applied payment_id=%s status=%s", payment_id, updated.status)
        return updated.model_copy(deep=True)
