"""Transactional email through Brevo: report PDFs and contact-form messages."""

import base64
import os
from typing import Any

import httpx

from qpaybridge.common.logging import logger
from qpaybridge.common.metrics import emails_total


PDF_SUBJECT = "Таны Мэргэжил сонголтын репорт"
PDF_TEXT = "Хавсаргасан PDF document -ийг татаж авна уу!"


class EmailDeliveryError(Exception):
    """Brevo refused or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RecaptchaError(Exception):
    """Contact form submission did not pass reCAPTCHA."""

    def __init__(self, score: float | None, error_codes: list[str] | None = None) -> None:
        super().__init__(f"reCAPTCHA verification failed. Score: {score if score is not None else 'N/A'}")
        self.score = score
        self.error_codes = error_codes or []


class EmailService:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender_name: str,
        sender_address: str,
        contact_recipient: str,
        recaptcha_verify_url: str,
        recaptcha_secret: str,
        recaptcha_min_score: float = 0.5,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.sender = {"name": sender_name, "email": sender_address}
        self.contact_recipient = contact_recipient
        self.recaptcha_verify_url = recaptcha_verify_url
        self.recaptcha_secret = recaptcha_secret
        self.recaptcha_min_score = recaptcha_min_score
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _send(self, kind: str, payload: dict) -> str:
        headers = {"accept": "application/json", "api-key": self.api_key}
        try:
            resp = await self._client.post(self.api_url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            emails_total.labels(kind=kind, outcome="failed").inc()
            logger.error("brevo unreachable kind=%s error=%s", kind, exc)
            raise EmailDeliveryError(f"Failed to send email: {exc}") from exc

        try:
            result = resp.json()
        except ValueError:
            result = {"message": resp.text}
        if resp.status_code >= 400:
            emails_total.labels(kind=kind, outcome="failed").inc()
            logger.error("brevo rejected email kind=%s status=%s body=%s", kind, resp.status_code, result)
            message = result.get("message") if isinstance(result, dict) else None
            raise EmailDeliveryError(
                f"Failed to send email: {message or 'Unknown error'}",
                status_code=resp.status_code,
                body=result,
            )
        emails_total.labels(kind=kind, outcome="sent").inc()
        return str(result.get("messageId", "")) if isinstance(result, dict) else ""

    async def send_pdf_email(self, email: str, pdf_path: str) -> str:
        """Mail the PDF at `pdf_path` to `email`, then delete the file.

        The file is left in place when sending fails; cleaning it up is then
        the caller's job.
        """

        with open(pdf_path, "rb") as fh:
            content = base64.b64encode(fh.read()).decode("ascii")
        payload = {
            "sender": self.sender,
            "to": [{"email": email}],
            "subject": PDF_SUBJECT,
            "textContent": PDF_TEXT,
            "attachment": [{"name": "document.pdf", "content": content}],
        }
        message_id = await self._send("pdf", payload)
        os.remove(pdf_path)
        logger.info("pdf email sent message_id=%s", message_id)
        return message_id

    async def verify_recaptcha(self, recaptcha_response: str) -> float | None:
        """Return the v3 score, or None for v2 replies that carry no score."""

        try:
            resp = await self._client.post(
                self.recaptcha_verify_url,
                data={"secret": self.recaptcha_secret, "response": recaptcha_response},
            )
            result = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("recaptcha verification unreachable: %s", exc)
            raise RecaptchaError(None, ["verification-unavailable"]) from exc

        if not isinstance(result, dict):
            logger.error("recaptcha reply is not an object: %s", result)
            raise RecaptchaError(None, ["malformed-reply"])
        score = result.get("score")
        if score is not None and (isinstance(score, bool) or not isinstance(score, (int, float))):
            logger.warning("recaptcha reply has non-numeric score=%r", score)
            raise RecaptchaError(None, ["malformed-score"])
        if not result.get("success") or (score is not None and score < self.recaptcha_min_score):
            logger.warning("recaptcha rejected score=%s errors=%s", score, result.get("error-codes"))
            raise RecaptchaError(score, result.get("error-codes"))
        return score

    async def send_contact_email(self, name: str, email: str, message: str, recaptcha_response: str) -> str:
        score = await self.verify_recaptcha(recaptcha_response)
        score_text = score if score is not None else "N/A"
        payload = {
            "sender": self.sender,
            "to": [{"email": self.contact_recipient}],
            "subject": f"Шинэ мессеж: {name}",
            "textContent": f"Нэр: {name}\nИ-мэйл: {email}\nМессеж: {message}\nreCAPTCHA Score: {score_text}",
        }
        message_id = await self._send("contact", payload)
        logger.info("contact email sent message_id=%s", message_id)
        return message_id

    async def aclose(self) -> None:
        await self._client.aclose()
