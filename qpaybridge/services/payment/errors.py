"""Error taxonomy for the payment service.

`GatewayError` is what the QPay client raises. The service never lets it escape
as-is; each operation wraps it in its own `PaymentServiceError` subclass so the
HTTP layer can tell which step failed while keeping upstream status and body.
"""

from typing import Any


class GatewayError(Exception):
    """QPay call failed at the transport, HTTP status, or payload level."""

    def __init__(
        self,
        operation: str,
        status_code: int | None = None,
        body: Any = None,
        detail: str | None = None,
    ) -> None:
        self.operation = operation
        self.status_code = status_code
        self.body = body
        self.detail = detail
        super().__init__(self._message())

    def _message(self) -> str:
        if isinstance(self.body, dict) and self.body.get("error"):
            reason = str(self.body["error"])
        elif self.detail:
            reason = self.detail
        elif self.status_code is not None:
            reason = f"HTTP {self.status_code}"
        else:
            reason = "unknown error"
        return f"{self.operation} failed: {reason}"


class PaymentServiceError(Exception):
    """Base for failures surfaced by payment service operations."""

    operation = "payment"

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_cause(cls, cause: Exception) -> "PaymentServiceError":
        """Build this error type from an upstream failure, keeping its context."""

        return cls(
            f"{cls.operation} failed: {cause}",
            status_code=getattr(cause, "status_code", None),
            body=getattr(cause, "body", None),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "message": str(self),
            "upstream_status": self.status_code,
            "upstream_body": self.body,
        }


class AuthError(PaymentServiceError):
    """Bearer credential could not be acquired from QPay."""

    operation = "authentication"


class InvoiceCreationError(PaymentServiceError):
    operation = "invoice creation"


class StatusCheckError(PaymentServiceError):
    operation = "payment status check"


class CallbackProcessingError(PaymentServiceError):
    operation = "payment callback"
