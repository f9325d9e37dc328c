"""Thin async client for the QPay merchant v2 API."""

from time import perf_counter
from typing import Any

import httpx
from opentelemetry.trace import SpanKind

from qpaybridge.common.logging import logger
from qpaybridge.common.metrics import gateway_latency_seconds, gateway_requests_total
from qpaybridge.common.tracing import tracer
from qpaybridge.services.payment.errors import GatewayError


def _response_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


class QPayClient:
    """Issues auth, invoice, payment fetch and payment check calls.

    Every call returns the decoded JSON body or raises `GatewayError`. No call
    is retried here; retry policy belongs to whoever calls the service.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = (username, password)
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        token: str | None = None,
        auth: tuple[str, str] | None = None,
        json: dict | None = None,
    ) -> dict:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        start = perf_counter()
        try:
            with tracer.start_as_current_span(f"qpay {operation}", kind=SpanKind.CLIENT) as span:
                span.set_attribute("http.request.method", method)
                resp = await self._client.request(method, path, headers=headers, auth=auth, json=json)
                span.set_attribute("http.response.status_code", resp.status_code)
        except httpx.HTTPError as exc:
            gateway_requests_total.labels(operation=operation, outcome="unreachable").inc()
            logger.error(
                "qpay request unreachable operation=%s method=%s path=%s error=%s",
                operation,
                method,
                path,
                exc,
            )
            raise GatewayError(operation, detail=str(exc) or type(exc).__name__) from exc
        finally:
            gateway_latency_seconds.labels(operation=operation).observe(max(0.0, perf_counter() - start))

        if resp.status_code >= 400:
            body = _response_body(resp)
            gateway_requests_total.labels(operation=operation, outcome="rejected").inc()
            logger.error(
                "qpay request rejected operation=%s method=%s url=%s status=%s body=%s",
                operation,
                method,
                resp.request.url,
                resp.status_code,
                body,
            )
            raise GatewayError(operation, status_code=resp.status_code, body=body)

        try:
            payload = resp.json()
        except ValueError as exc:
            gateway_requests_total.labels(operation=operation, outcome="malformed").inc()
            raise GatewayError(
                operation, status_code=resp.status_code, body=resp.text, detail="response is not JSON"
            ) from exc
        if not isinstance(payload, dict):
            gateway_requests_total.labels(operation=operation, outcome="malformed").inc()
            raise GatewayError(
                operation, status_code=resp.status_code, body=payload, detail="response is not an object"
            )
        gateway_requests_total.labels(operation=operation, outcome="ok").inc()
        return payload

    async def authenticate(self) -> dict:
        """POST /auth/token with basic credentials -> `{access_token, expires_in, ...}`."""

        return await self._request("auth", "POST", "/auth/token", auth=self._credentials)

    async def create_invoice(self, token: str, body: dict) -> dict:
        return await self._request("invoice", "POST", "/invoice", token=token, json=body)

    async def get_payment(self, token: str, payment_id: str) -> dict:
        return await self._request("payment_get", "GET", f"/payment/{payment_id}", token=token)

    async def check_payment(
        self,
        token: str,
        invoice_id: str,
        page_number: int = 1,
        page_limit: int = 100,
    ) -> dict:
        """POST /payment/check scoped to one invoice -> `{count, rows: [...]}`."""

        body = {
            "object_type": "INVOICE",
            "object_id": invoice_id,
            "offset": {"page_number": page_number, "page_limit": page_limit},
        }
        return await self._request("payment_check", "POST", "/payment/check", token=token, json=body)

    async def aclose(self) -> None:
        await self._client.aclose()
