"""One startup log line describing how the bridge is wired, secrets masked."""

import os

from qpaybridge.common.config import settings
from qpaybridge.common.logging import logger


SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "PASS", "TOKEN")


def redact_env(name: str) -> str:
    """Env value for `name`, masked when the name looks like a credential."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(marker in name for marker in SECRET_MARKERS):
        return "<redacted>"
    return value


def log_bridge_startup(env_keys: list[str]) -> None:
    """Log gateway/callback wiring plus the listed env vars."""

    logger.info(
        "bridge starting service=%s qpay=%s callback_url=%s record_ttl=%s env=%s",
        settings.service_name,
        settings.qpay_base_url,
        settings.callback_url,
        settings.payment_record_ttl_seconds,
        {key: redact_env(key) for key in env_keys},
    )
