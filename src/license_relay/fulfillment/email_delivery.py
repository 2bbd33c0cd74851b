"""Email delivery for license keys over SMTP or SendGrid."""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

import httpx

from license_relay.common.config import RelaySettings
from license_relay.common.exceptions import NotificationFailed
from license_relay.common.logging import mask_key

logger = logging.getLogger(__name__)


class EmailSender:
    """Sends license key delivery emails.

    ``transport`` is "smtp" (authenticated SMTP session) or "sendgrid".
    Every failure is raised as NotificationFailed; callers decide
    whether it matters.
    """

    def __init__(
        self,
        transport: str,
        from_email: str,
        product_name: str = "Prompt Locker Pro",
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_secure: bool = False,
        smtp_user: str = "",
        smtp_pass: str = "",
        sendgrid_api_key: str = "",
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.transport = transport.lower()
        self.from_email = from_email
        self.product_name = product_name
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_secure = smtp_secure
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.sendgrid_api_key = sendgrid_api_key
        self.timeout = timeout
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> Optional["EmailSender"]:
        """Build a sender for the configured transport, or None when email is off."""
        transport = settings.email_transport.lower()
        if not transport:
            return None
        if transport == "smtp":
            if not (settings.smtp_host and settings.smtp_user and settings.smtp_pass):
                logger.warning("SMTP transport selected but RELAY_SMTP_* is incomplete; email disabled")
                return None
        elif transport == "sendgrid":
            if not settings.sendgrid_api_key:
                logger.warning("SendGrid transport selected without an API key; email disabled")
                return None
        else:
            logger.warning("Unknown email transport %r; email disabled", transport)
            return None

        return cls(
            transport=transport,
            from_email=settings.smtp_from or settings.smtp_user,
            product_name=settings.product_name,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_secure=settings.smtp_secure,
            smtp_user=settings.smtp_user,
            smtp_pass=settings.smtp_pass,
            sendgrid_api_key=settings.sendgrid_api_key,
        )

    async def send_license_key(
        self,
        to_email: str,
        license_key: str,
        customer_name: Optional[str] = None,
    ) -> None:
        """Send a license key delivery email."""
        subject = f"Your {self.product_name} License Key"
        body = self._build_body(customer_name, license_key)

        if self.transport == "smtp":
            await self._send_smtp(to_email, subject, body)
        elif self.transport == "sendgrid":
            await self._send_sendgrid(to_email, subject, body)
        else:
            raise NotificationFailed(f"Unsupported email transport: {self.transport}")

        logger.info("License key %s emailed to %s", mask_key(license_key), to_email)

    def _build_body(self, customer_name: Optional[str], license_key: str) -> str:
        greeting = f"Hi {customer_name},\n\n" if customer_name else ""
        return (
            f"{greeting}"
            f"Thank you for your purchase of {self.product_name}!\n\n"
            f"Your license key:\n\n  {license_key}\n\n"
            f"Keep this key safe. If you need help, reply to this email.\n"
        )

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        return msg

    def _smtp_send_blocking(self, msg: EmailMessage) -> None:
        if self.smtp_secure:
            smtp = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.timeout)
        else:
            smtp = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout)
        with smtp:
            if not self.smtp_secure:
                smtp.starttls()
            smtp.login(self.smtp_user, self.smtp_pass)
            smtp.send_message(msg)

    async def _send_smtp(self, to: str, subject: str, body: str) -> None:
        """Send over an authenticated SMTP session in a worker thread."""
        msg = self._build_message(to, subject, body)
        try:
            await asyncio.to_thread(self._smtp_send_blocking, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailed(f"SMTP send failed: {e}") from e

    async def _send_sendgrid(self, to: str, subject: str, body: str) -> None:
        """Send via SendGrid v3 API."""
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email, "name": self.product_name},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        headers = {
            "Authorization": f"Bearer {self.sendgrid_api_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._http is not None:
                resp = await self._http.post(
                    "https://api.sendgrid.com/v3/mail/send", headers=headers, json=payload,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(
                        "https://api.sendgrid.com/v3/mail/send", headers=headers, json=payload,
                    )
        except httpx.HTTPError as e:
            raise NotificationFailed(f"SendGrid request failed: {e}") from e

        if resp.status_code not in (200, 202):
            raise NotificationFailed(f"SendGrid error: {resp.status_code} {resp.text}")
