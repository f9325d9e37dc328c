"""Promo code discount lookup.

Resolution fails open: an unknown, inactive or unreadable code means no
discount, never a failed invoice.
"""

import asyncio

from sqlalchemy import select

from qpaybridge.common.logging import logger
from qpaybridge.common.metrics import promo_lookup_failures_total
from qpaybridge.services.payment.models import PromoCode


class PromoCodeResolver:
    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def _lookup(self, code: str) -> int | None:
        with self.session_factory() as db:
            return db.execute(
                select(PromoCode.discount_percentage).where(
                    PromoCode.promo_code == code,
                    PromoCode.is_active.is_(True),
                )
            ).scalar_one_or_none()

    async def resolve_discount(self, code: str | None) -> int:
        """Return the active discount percentage for `code`, or 0."""

        if not code or not code.strip():
            return 0
        normalized = code.strip().upper()
        try:
            discount = await asyncio.to_thread(self._lookup, normalized)
        except Exception as exc:
            promo_lookup_failures_total.inc()
            logger.exception("promo code lookup failed code=%s: %s", normalized, exc)
            return 0

        if discount is None:
            logger.info("promo code not found or inactive code=%s", normalized)
            return 0
        if not 0 <= discount <= 100:
            logger.warning("promo code discount out of range code=%s discount=%s", normalized, discount)
            return max(0, min(100, int(discount)))
        logger.info("promo code resolved code=%s discount=%s", normalized, discount)
        return int(discount)
