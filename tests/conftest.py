"""Shared fixtures: a scripted QPay fake and an in-memory promo store."""

import os

os.environ.setdefault("DATABASE_DSN", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("QPAY_USER", "test-user")
os.environ.setdefault("QPAY_PASS", "test-pass")
os.environ.setdefault("SERVER_URL", "https://bridge.test")
os.environ.setdefault("OTEL_ENABLED", "false")

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from qpaybridge.common.db import Base
from qpaybridge.services.payment.gateway import QPayClient
from qpaybridge.services.payment.models import PromoCode
from qpaybridge.services.payment.promo import PromoCodeResolver
from qpaybridge.services.payment.service import InvoiceSettings, PaymentService
from qpaybridge.services.payment.store import PaymentStore
from qpaybridge.services.payment.token_cache import TokenCache


QPAY_BASE_URL = "https://qpay.test/v2"
AUTH_PATH = "/v2/auth/token"
INVOICE_PATH = "/v2/invoice"
CHECK_PATH = "/v2/payment/check"


class FakeQPay:
    """Answers QPay calls from scripted routes and records every request.

    A route is either `(status, json_body)`, a list of those consumed in order,
    or a callable taking the `httpx.Request`.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], object] = {}

    def on(self, method: str, path: str, status: int = 200, json=None) -> None:
        self.routes[(method, path)] = (status, json)

    def on_sequence(self, method: str, path: str, responses: list[tuple[int, dict]]) -> None:
        self.routes[(method, path)] = list(responses)

    def on_call(self, method: str, path: str, handler) -> None:
        self.routes[(method, path)] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "NOT_FOUND"})
        if callable(route):
            return route(request)
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        status, body = route
        return httpx.Response(status, json=body)

    def calls(self, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_qpay():
    fake = FakeQPay()
    fake.on("POST", AUTH_PATH, json={"access_token": "tok-1", "expires_in": 3600})
    return fake


@pytest.fixture
def gateway(fake_qpay):
    return QPayClient(QPAY_BASE_URL, "test-user", "test-pass", transport=fake_qpay.transport)


@pytest.fixture
def promo_session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    with factory() as db:
        db.add_all(
            [
                PromoCode(promo_code="SAVE20", discount_percentage=20, is_active=True),
                PromoCode(promo_code="THIRD", discount_percentage=33, is_active=True),
                PromoCode(promo_code="OLD50", discount_percentage=50, is_active=False),
                PromoCode(promo_code="BROKEN", discount_percentage=150, is_active=True),
            ]
        )
        db.commit()
    yield factory
    engine.dispose()


@pytest.fixture
def invoice_settings():
    return InvoiceSettings(
        invoice_code="TEST_INVOICE",
        receiver_code="terminal",
        branch_code="TESTBRANCH",
        description="academiacareer",
        callback_url="https://bridge.test/api/payment-callback",
        base_amount=1500,
    )


@pytest.fixture
def store():
    return PaymentStore()


@pytest.fixture
def payment_service(gateway, promo_session_factory, store, invoice_settings):
    return PaymentService(
        gateway=gateway,
        token_cache=TokenCache(gateway),
        promo_resolver=PromoCodeResolver(promo_session_factory),
        store=store,
        config=invoice_settings,
    )
