"""HTTP surface tests through FastAPI's TestClient."""

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import CHECK_PATH, INVOICE_PATH, QPAY_BASE_URL
from qpaybridge.services.api import main
from qpaybridge.services.email.service import EmailDeliveryError, EmailService


@pytest.fixture
def client(monkeypatch, fake_qpay, promo_session_factory):
    monkeypatch.setattr(main.settings, "qpay_base_url", QPAY_BASE_URL)
    service = main.build_payment_service(session_factory=promo_session_factory, transport=fake_qpay.transport)
    monkeypatch.setattr(main, "payment_service", service)
    return TestClient(main.app)


def test_create_invoice_requires_email(client):
    resp = client.post("/api/create-invoice", json={"promoCode": "SAVE20"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email is required"


def test_create_invoice_applies_promo(client, fake_qpay):
    fake_qpay.on("POST", INVOICE_PATH, json={"invoice_id": "INV-1", "qr_image": "abc"})

    resp = client.post("/api/create-invoice", json={"promoCode": "save20", "email": "buyer@example.com"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["invoice_id"] == "INV-1"
    assert body["finalAmount"] == 1200
    assert body["discountApplied"] == 300


def test_create_invoice_gateway_failure_maps_to_502(client, fake_qpay):
    fake_qpay.on("POST", INVOICE_PATH, status=500, json={"error": "INTERNAL_ERROR"})

    resp = client.post("/api/create-invoice", json={"email": "buyer@example.com"})

    assert resp.status_code == 502
    assert resp.json()["error"] == "Failed to create invoice"
    assert "INTERNAL_ERROR" in resp.json()["details"]


def test_check_payment_pending_and_paid(client, fake_qpay):
    fake_qpay.on_sequence(
        "POST",
        CHECK_PATH,
        [
            (200, {"count": 0, "rows": []}),
            (200, {"count": 1, "rows": [{"payment_id": "P1", "payment_status": "PAID"}]}),
        ],
    )

    pending = client.get("/api/check-payment/INV-1")
    paid = client.get("/api/check-payment/INV-1")

    assert pending.json() == {"status": "PENDING", "verified": False, "details": None}
    assert paid.json()["status"] == "PAID"
    assert paid.json()["verified"] is True


def test_check_payment_gateway_failure(client, fake_qpay):
    fake_qpay.on("POST", CHECK_PATH, status=502, json={"error": "UPSTREAM"})

    resp = client.get("/api/check-payment/INV-1")

    assert resp.status_code == 502
    assert resp.json()["error"] == "Failed to check payment status"


def test_payment_callback_get_and_post(client, fake_qpay):
    fake_qpay.on("GET", "/v2/payment/P1", json={"payment_status": "PAID", "object_id": "INV-1"})

    via_get = client.get("/api/payment-callback", params={"qpay_payment_id": "P1"})
    via_post = client.post("/api/payment-callback", json={"payment_id": "P1"})

    assert via_get.json() == {"ok": True, "status": "PAID"}
    assert via_post.json() == {"ok": True, "status": "PAID"}
    assert main.payment_service.store.resolve("INV-1") == "P1"


def test_payment_callback_requires_id(client):
    assert client.get("/api/payment-callback").status_code == 400


def test_send_pdf_email(client, monkeypatch, tmp_path):
    monkeypatch.setattr(main.settings, "upload_dir", str(tmp_path))
    sent = []

    def brevo(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(201, json={"messageId": "<m-1>"})

    monkeypatch.setattr(
        main,
        "email_service",
        EmailService(
            api_url="https://brevo.test/v3/smtp/email",
            api_key="k",
            sender_name="academia.mn",
            sender_address="no-reply@academia.mn",
            contact_recipient="inbox@academia.test",
            recaptcha_verify_url="https://recaptcha.test/siteverify",
            recaptcha_secret="s",
            transport=httpx.MockTransport(brevo),
        ),
    )

    resp = client.post(
        "/api/send-pdf-email",
        data={"email": "buyer@example.com"},
        files={"file": ("report.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert resp.status_code == 200
    assert resp.json()["message_id"] == "<m-1>"
    assert len(sent) == 1
    assert list(tmp_path.iterdir()) == []


def test_health_pings_database(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_metrics_exposed(client):
    client.get("/health")

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "http_requests_total" in resp.text


class FailingEmailService:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.paths: list[str] = []

    async def send_pdf_email(self, email: str, pdf_path: str) -> str:
        self.paths.append(pdf_path)
        raise self.exc


@pytest.mark.parametrize(
    "exc,status",
    [
        (EmailDeliveryError("Failed to send email: Key not found", status_code=401), 502),
        (OSError("disk quota exceeded"), 500),
    ],
)
def test_send_pdf_email_failure_leaves_no_staged_file(client, monkeypatch, tmp_path, exc, status):
    monkeypatch.setattr(main.settings, "upload_dir", str(tmp_path))
    failing = FailingEmailService(exc)
    monkeypatch.setattr(main, "email_service", failing)

    resp = TestClient(main.app, raise_server_exceptions=False).post(
        "/api/send-pdf-email",
        data={"email": "buyer@example.com"},
        files={"file": ("report.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert resp.status_code == status
    assert len(failing.paths) == 1
    assert list(tmp_path.iterdir()) == []
