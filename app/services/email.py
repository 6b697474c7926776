"""Email senders used to deliver OTP codes.

`build_email_sender` picks the transport from `settings.EMAIL_BACKEND`:
the Resend HTTP API in production, plain SMTP for self-hosted relays, or a
console sender that only logs (local development).
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import anyio
import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Your SmartVest Verification Code"

OTP_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #2563eb;">Welcome to SmartVest</h2>
  <p>Your verification code is:</p>
  <div style="background-color: #f3f4f6; padding: 20px; text-align: center; font-size: 24px; font-weight: bold; letter-spacing: 4px; margin: 20px 0;">
    {code}
  </div>
  <p>This code will expire in {minutes} minutes.</p>
  <p>If you didn't request this code, you can safely ignore this email.</p>
</div>
"""


class EmailSender:
    """Base class; subclasses deliver one HTML message and report the outcome."""

    async def send(self, to: str, subject: str, html: str) -> tuple[bool, str | None]:
        raise NotImplementedError

    async def send_otp_email(self, email: str, otp_code: str, expires_seconds: int) -> tuple[bool, str | None]:
        """Render the verification template and send it to `email`."""
        html = OTP_TEMPLATE.format(code=otp_code, minutes=max(expires_seconds // 60, 1))
        return await self.send(email, OTP_SUBJECT, html)


class ResendEmailSender(EmailSender):
    """Deliver mail through the Resend REST API."""

    def __init__(
        self,
        api_key: str | None,
        from_email: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport

    async def send(self, to: str, subject: str, html: str) -> tuple[bool, str | None]:
        if not self.api_key:
            return False, "RESEND_API_KEY is not configured."

        payload = {"from": self.from_email, "to": [to], "subject": subject, "html": html}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            logger.warning("Resend request failed: %s", exc)
            return False, str(exc)

        if response.status_code >= 400:
            try:
                detail = response.json().get("message") or response.text
            except (ValueError, AttributeError):
                detail = response.text
            logger.warning("Resend rejected message to %s (%s): %s", to, response.status_code, detail)
            return False, f"Resend error {response.status_code}: {detail}"

        logger.info("Sent email to %s via Resend", to)
        return True, None


class SMTPEmailSender(EmailSender):
    """Send mail over SMTP with STARTTLS.

    smtplib blocks, so delivery runs in a worker thread to keep the event
    loop free.
    """

    def __init__(
        self,
        server: str | None,
        port: int,
        username: str | None,
        password: str | None,
        from_email: str,
        timeout: float = 20,
    ):
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.timeout = timeout

    async def send(self, to: str, subject: str, html: str) -> tuple[bool, str | None]:
        def _send() -> None:
            if not all([self.server, self.username, self.password, self.from_email]):
                raise RuntimeError("SMTP settings are incomplete.")

            message = MIMEMultipart()
            message["From"] = self.from_email
            message["To"] = to
            message["Subject"] = subject
            message.attach(MIMEText(html, "html"))

            with smtplib.SMTP(self.server, int(self.port), timeout=self.timeout) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                server.login(self.username, self.password)
                server.send_message(message)

        try:
            await anyio.to_thread.run_sync(_send)
        except (smtplib.SMTPException, OSError, RuntimeError) as exc:  # pragma: no cover - SMTP network path
            logger.warning("Failed to send email to %s over SMTP: %s", to, exc)
            return False, str(exc)
        return True, None


class ConsoleEmailSender(EmailSender):
    """Log messages instead of sending them; for local development only."""

    async def send(self, to: str, subject: str, html: str) -> tuple[bool, str | None]:
        logger.info("Email to %s | %s\n%s", to, subject, html)
        return True, None


def build_email_sender(settings: Settings) -> EmailSender:
    """Construct the sender configured by `EMAIL_BACKEND`."""
    if settings.EMAIL_BACKEND == "console":
        return ConsoleEmailSender()
    if settings.EMAIL_BACKEND == "smtp":
        return SMTPEmailSender(
            server=settings.SMTP_SERVER,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            from_email=settings.FROM_EMAIL,
        )
    return ResendEmailSender(
        api_key=settings.RESEND_API_KEY,
        from_email=settings.FROM_EMAIL,
        api_url=settings.RESEND_API_URL,
    )
