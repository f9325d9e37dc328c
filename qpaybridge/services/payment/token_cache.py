"""Process-wide cache of the QPay bearer credential."""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

from qpaybridge.common.logging import logger
from qpaybridge.common.metrics import token_refresh_total
from qpaybridge.services.payment.errors import AuthError, GatewayError


@dataclass(frozen=True)
class Credential:
    token: str
    # Seconds since epoch, already reduced by the safety margin.
    expires_at: float


class TokenCache:
    """Hands out a bearer token, refreshing it only when it is about to expire.

    The credential is replaced, never mutated. Concurrent callers that miss the
    cache share a single refresh.
    """

    def __init__(self, gateway, safety_margin: int = 60, clock: Callable[[], float] = time.time) -> None:
        self.gateway = gateway
        self.safety_margin = safety_margin
        self.clock = clock
        self._credential: Credential | None = None
        self._refresh_lock = asyncio.Lock()

    def _valid(self) -> Credential | None:
        credential = self._credential
        if credential is not None and self.clock() < credential.expires_at:
            return credential
        return None

    async def get_auth_token(self) -> str:
        credential = self._valid()
        if credential is not None:
            return credential.token

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited.
            credential = self._valid()
            if credential is not None:
                return credential.token
            credential = await self._refresh()
            self._credential = credential
            return credential.token

    async def _refresh(self) -> Credential:
        now = self.clock()
        try:
            payload = await self.gateway.authenticate()
        except GatewayError as exc:
            raise AuthError.from_cause(exc) from exc

        token = payload.get("access_token")
        expires_in = payload.get("expires_in")
        if not isinstance(token, str) or not token or not isinstance(expires_in, (int, float)):
            logger.error("qpay auth response malformed keys=%s", sorted(payload))
            raise AuthError("authentication failed: malformed token response", body=payload)

        token_refresh_total.inc()
        logger.info("qpay token refreshed expires_in=%s", expires_in)
        return Credential(token=token, expires_at=now + expires_in - self.safety_margin)
