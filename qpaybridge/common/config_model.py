"""Typed configuration model for the bridge.

Behavior is controlled by environment variables (see `.env.example`). This
module holds no instance, so `scripts/check_env.py` can validate any env file
without reading the process-wide `.env`.
"""

import tempfile

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "qpay-bridge"
    log_level: str = "INFO"
    log_dir: str | None = None
    database_dsn: str

    # QPay merchant gateway.
    qpay_base_url: str = "https://merchant.qpay.mn/v2"
    qpay_user: str
    qpay_pass: str
    qpay_invoice_code: str = "ACADEMIA_MN_INVOICE"
    qpay_receiver_code: str = "terminal"
    qpay_branch_code: str = "SALBARACADEMIA"
    invoice_description: str = "academiacareer"
    base_amount: float = 1500
    amount_precision: int = 2
    server_url: str
    token_safety_margin_seconds: int = 60
    check_page_limit: int = 100
    http_timeout_seconds: float = 10.0
    payment_record_ttl_seconds: int | None = None

    # Brevo transactional email + reCAPTCHA for the contact form.
    brevo_api_url: str = "https://api.brevo.com/v3/smtp/email"
    brevo_api_key: str = ""
    email_sender_name: str = "academia.mn"
    email_sender_address: str = "no-reply@academia.mn"
    contact_recipient: str = "academia@aurag.mn"
    recaptcha_verify_url: str = "https://www.google.com/recaptcha/api/siteverify"
    recaptcha_secret_key: str = ""
    recaptcha_min_score: float = 0.5
    upload_dir: str = tempfile.gettempdir()

    cors_origins: list[str] = ["http://localhost:3000"]
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def callback_url(self) -> str:
        return f"{self.server_url.rstrip('/')}/api/payment-callback"
