"""Unit tests for core/mailer.py -- SMTP delivery without a real relay."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from core.mailer import MailDeliveryError, SmtpMailSender, render_otp_email


def _smtp_mock(starttls: bool = True) -> MagicMock:
    smtp = MagicMock()
    smtp.__enter__.return_value = smtp
    smtp.has_extn.return_value = starttls
    smtp.send_message.return_value = {}
    return smtp


def test_render_otp_email():
    subject, body = render_otp_email("123456", 600)
    assert subject == "Your OTP Code"
    assert body == "Your verification code is 123456. It is valid for 10 minutes."


def test_send_upgrades_with_starttls_and_logs_in():
    smtp = _smtp_mock()
    sender = SmtpMailSender("mail.local", 587, "no-reply@x.com", username="u", password="p", timeout=3.0)
    with patch("core.mailer.smtplib.SMTP", return_value=smtp) as smtp_cls:
        sender.send("s@x.com", "Your OTP Code", "body")
    smtp_cls.assert_called_once_with("mail.local", 587, timeout=3.0)
    smtp.starttls.assert_called_once()
    smtp.login.assert_called_once_with("u", "p")
    msg = smtp.send_message.call_args.args[0]
    assert msg["To"] == "s@x.com"
    assert msg["From"] == "no-reply@x.com"
    assert msg["Subject"] == "Your OTP Code"


def test_send_without_credentials_skips_login():
    smtp = _smtp_mock(starttls=False)
    with patch("core.mailer.smtplib.SMTP", return_value=smtp):
        SmtpMailSender("mail.local", 25, "no-reply@x.com").send("s@x.com", "s", "b")
    smtp.starttls.assert_not_called()
    smtp.login.assert_not_called()


def test_implicit_tls_uses_smtp_ssl():
    smtp = _smtp_mock()
    with patch("core.mailer.smtplib.SMTP_SSL", return_value=smtp) as ssl_cls:
        SmtpMailSender("mail.local", 465, "no-reply@x.com", use_tls=True).send("s@x.com", "s", "b")
    assert ssl_cls.call_args.args == ("mail.local", 465)


@pytest.mark.parametrize(
    "error",
    [ConnectionRefusedError("refused"), TimeoutError("slow relay"), smtplib.SMTPAuthenticationError(535, b"bad auth")],
)
def test_transport_errors_become_delivery_errors(error):
    with patch("core.mailer.smtplib.SMTP", side_effect=error):
        with pytest.raises(MailDeliveryError):
            SmtpMailSender("mail.local", 587, "no-reply@x.com").send("s@x.com", "s", "b")


def test_refused_recipient_is_delivery_error():
    smtp = _smtp_mock()
    smtp.send_message.return_value = {"s@x.com": (550, b"no such user")}
    with patch("core.mailer.smtplib.SMTP", return_value=smtp):
        with pytest.raises(MailDeliveryError):
            SmtpMailSender("mail.local", 587, "no-reply@x.com").send("s@x.com", "s", "b")
