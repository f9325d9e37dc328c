"""Structured JSON logging with request/payment context fields."""

import logging
import os
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from qpaybridge.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
invoice_id_ctx: ContextVar[str] = ContextVar("invoice_id", default="")
payment_id_ctx: ContextVar[str] = ContextVar("payment_id", default="")

LOG_FORMAT = "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(invoice_id)s %(payment_id)s %(message)s"


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.invoice_id = invoice_id_ctx.get()
        record.payment_id = payment_id_ctx.get()
        return True


def configure_logging() -> None:
    """Configure root logger once per process.

    Everything goes to stdout as JSON. When `LOG_DIR` is set, ERROR records are
    also appended to `payment-errors.log` in that directory.
    """

    context_filter = ContextFilter()
    formatter = JsonFormatter(LOG_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(context_filter)
    handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [handler]

    if settings.log_dir:
        os.makedirs(settings.log_dir, exist_ok=True)
        error_handler = logging.FileHandler(os.path.join(settings.log_dir, "payment-errors.log"))
        error_handler.setLevel(logging.ERROR)
        error_handler.addFilter(context_filter)
        error_handler.setFormatter(formatter)
        handlers.append(error_handler)

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)


logger = logging.getLogger("qpaybridge")
