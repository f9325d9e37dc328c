"""Public HTTP surface: invoices, payment status, QPay callbacks and email."""

import os
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

import httpx
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from qpaybridge.common.config import settings
from qpaybridge.common.db import SessionLocal, ping_database
from qpaybridge.common.logging import configure_logging, logger, trace_id_ctx
from qpaybridge.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from qpaybridge.common.startup import log_bridge_startup
from qpaybridge.common.tracing import configure_tracing
from qpaybridge.services.api.schemas import (
    CallbackRequest,
    CallbackResponse,
    ContactRequest,
    EmailSentResponse,
    InvoiceCreateRequest,
    PaymentStatusResponse,
)
from qpaybridge.services.email.service import EmailDeliveryError, EmailService, RecaptchaError
from qpaybridge.services.payment.errors import (
    CallbackProcessingError,
    InvoiceCreationError,
    PaymentServiceError,
    StatusCheckError,
)
from qpaybridge.services.payment.gateway import QPayClient
from qpaybridge.services.payment.promo import PromoCodeResolver
from qpaybridge.services.payment.service import InvoiceSettings, PaymentService
from qpaybridge.services.payment.store import PaymentStore
from qpaybridge.services.payment.token_cache import TokenCache


def build_payment_service(
    session_factory=SessionLocal,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PaymentService:
    """Wire the payment service and the state it owns from settings."""

    gateway = QPayClient(
        settings.qpay_base_url,
        settings.qpay_user,
        settings.qpay_pass,
        timeout=settings.http_timeout_seconds,
        transport=transport,
    )
    return PaymentService(
        gateway=gateway,
        token_cache=TokenCache(gateway, safety_margin=settings.token_safety_margin_seconds),
        promo_resolver=PromoCodeResolver(session_factory),
        store=PaymentStore(ttl_seconds=settings.payment_record_ttl_seconds),
        config=InvoiceSettings(
            invoice_code=settings.qpay_invoice_code,
            receiver_code=settings.qpay_receiver_code,
            branch_code=settings.qpay_branch_code,
            description=settings.invoice_description,
            callback_url=settings.callback_url,
            base_amount=settings.base_amount,
            amount_precision=settings.amount_precision,
            check_page_limit=settings.check_page_limit,
        ),
    )


def build_email_service(transport: httpx.AsyncBaseTransport | None = None) -> EmailService:
    return EmailService(
        api_url=settings.brevo_api_url,
        api_key=settings.brevo_api_key,
        sender_name=settings.email_sender_name,
        sender_address=settings.email_sender_address,
        contact_recipient=settings.contact_recipient,
        recaptcha_verify_url=settings.recaptcha_verify_url,
        recaptcha_secret=settings.recaptcha_secret_key,
        recaptcha_min_score=settings.recaptcha_min_score,
        timeout=settings.http_timeout_seconds,
        transport=transport,
    )


configure_logging()
log_bridge_startup(
    ["SERVICE_NAME", "DATABASE_DSN", "QPAY_BASE_URL", "QPAY_USER", "QPAY_PASS", "SERVER_URL", "BREVO_API_KEY"]
)
payment_service = build_payment_service()
email_service = build_email_service()


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Close outbound HTTP clients with app lifecycle."""

    yield
    await payment_service.gateway.aclose()
    await email_service.aclose()


app = FastAPI(title="QPay Bridge", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)
configure_tracing(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency for every HTTP call."""

    trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


ERROR_MESSAGES = {
    InvoiceCreationError: "Failed to create invoice",
    StatusCheckError: "Failed to check payment status",
    CallbackProcessingError: "Failed to process payment callback",
}


@app.exception_handler(PaymentServiceError)
async def payment_error_handler(request: Request, exc: PaymentServiceError):
    logger.error(
        "payment request failed method=%s path=%s error=%s upstream_status=%s upstream_body=%s",
        request.method,
        request.url.path,
        exc,
        exc.status_code,
        exc.body,
    )
    message = ERROR_MESSAGES.get(type(exc), "Payment gateway error")
    return JSONResponse(status_code=502, content={"error": message, "details": str(exc)})


@app.post("/api/create-invoice")
async def create_invoice(req: InvoiceCreateRequest):
    """Create a QPay invoice, applying the promo code discount when valid."""

    if not req.email:
        logger.warning("invoice request rejected: email is required")
        raise HTTPException(status_code=400, detail="Email is required")
    return await payment_service.create_invoice(req.promo_code, req.email)


@app.get("/api/check-payment/{payment_ref}", response_model=PaymentStatusResponse)
async def check_payment(payment_ref: str):
    """Status for an invoice id or a QPay payment id."""

    record = await payment_service.check_status(payment_ref)
    return PaymentStatusResponse(status=record.status, verified=record.verified, details=record.details)


async def _apply_callback(payment_id: str | None) -> CallbackResponse:
    if not payment_id:
        raise HTTPException(status_code=400, detail="qpay_payment_id is required")
    record = await payment_service.handle_callback(payment_id)
    return CallbackResponse(status=record.status)


@app.get("/api/payment-callback", response_model=CallbackResponse)
async def payment_callback(qpay_payment_id: str | None = None):
    """Callback URL QPay invokes once an invoice is paid."""

    return await _apply_callback(qpay_payment_id)


@app.post("/api/payment-callback", response_model=CallbackResponse)
async def payment_callback_post(req: CallbackRequest):
    return await _apply_callback(req.payment_id)


@app.post("/api/send-pdf-email", response_model=EmailSentResponse)
async def send_pdf_email(email: str = Form(...), file: UploadFile = File(...)):
    """Mail an uploaded report PDF to the customer."""

    if file.content_type not in ("application/pdf", "application/octet-stream"):
        raise HTTPException(status_code=400, detail="A PDF file is required")
    os.makedirs(settings.upload_dir, exist_ok=True)
    pdf_path = os.path.join(settings.upload_dir, f"report-{uuid4().hex}.pdf")
    try:
        with open(pdf_path, "wb") as fh:
            fh.write(await file.read())
        message_id = await email_service.send_pdf_email(email, pdf_path)
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    finally:
        # Sent files are already gone; anything else must not linger in upload_dir.
        if os.path.exists(pdf_path):
            os.remove(pdf_path)
    return EmailSentResponse(message=f"Email sent: {message_id}", message_id=message_id)


@app.post("/api/contact", response_model=EmailSentResponse)
async def contact(req: ContactRequest):
    """Forward a contact-form message after reCAPTCHA verification."""

    try:
        message_id = await email_service.send_contact_email(
            req.name, req.email, req.message, req.recaptcha_response
        )
    except RecaptchaError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return EmailSentResponse(message=f"Contact message sent: {message_id}", message_id=message_id)


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Liveness probe; requires the promo store to answer `SELECT 1`."""

    try:
        ping_database(SessionLocal)
    except SQLAlchemyError as exc:
        logger.error("health check failed: %s", exc)
        raise HTTPException(status_code=503, detail="database unavailable") from exc
    return {"ok": True}
