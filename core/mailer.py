"""
core/mailer.py -- Outbound email delivery for one-time passcodes.

SmtpMailSender is the production sender: one SMTP connection per message,
bounded by SMTP_TIMEOUT_SECONDS so a slow relay can never hang a request.
Every failure (connect, auth, refused recipient, timeout) is raised as
MailDeliveryError -- the gateway turns that into the "email_failed" reason.

The sender is injected into the gateway via app.state, so tests swap it for
an in-memory fake and never open a socket.

Layer rule: no imports from api/, auth/, or tracking/.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Protocol

logger = logging.getLogger("tracker.mailer")


class MailDeliveryError(Exception):
    """The message could not be handed to the mail relay."""


class MailSender(Protocol):
    def send(self, to: str, subject: str, body: str) -> None: ...


class SmtpMailSender:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = False,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.use_tls:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=ssl.create_default_context())
        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls(context=ssl.create_default_context())
            smtp.ehlo()
        return smtp

    def send(self, to: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            with self._connect() as smtp:
                if self.username:
                    smtp.login(self.username, self.password)
                refused = smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP delivery to %s failed: %s", to, e)
            raise MailDeliveryError(str(e)) from e

        if refused:
            logger.warning("SMTP relay refused recipient %s", to)
            raise MailDeliveryError(f"Recipient refused: {to}")
        logger.info("Passcode email sent to %s", to)


def render_otp_email(code: str, ttl_seconds: int) -> tuple[str, str]:
    """Return (subject, body) for a passcode email."""
    minutes = max(1, ttl_seconds // 60)
    return (
        "Your OTP Code",
        f"Your verification code is {code}. It is valid for {minutes} minutes.",
    )
