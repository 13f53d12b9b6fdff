"""
One-time-password email delivery.

`OtpEmailService.send_otp_email` is the body of the sendOTPEmail callable:
validate the two inputs, render the RaknaGo template and hand the message to
the SMTP relay. Relay failures are reported as callable `internal` errors.
Nothing is retried, so calling twice sends two emails.
"""
import logging
import smtplib
import ssl
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Dict, Optional, Protocol

from config import ConfigurationError, MailSettings, Settings

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Your 2FA Verification Code - RaknaGo"
OTP_EXPIRY_MINUTES = 5

HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>2FA Verification Code</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: linear-gradient(135deg, #1E88E5 0%, #1976D2 100%); padding: 30px; text-align: center; border-radius: 10px 10px 0 0;">
    <h1 style="color: white; margin: 0;">RaknaGo</h1>
  </div>
  <div style="background: #f9f9f9; padding: 30px; border-radius: 0 0 10px 10px;">
    <h2 style="color: #1E88E5; margin-top: 0;">Two-Factor Authentication</h2>
    <p>Hello,</p>
    <p>You have requested a verification code for your RaknaGo account. Use the code below to complete your login:</p>
    <div style="background: white; border: 2px solid #1E88E5; border-radius: 8px; padding: 20px; text-align: center; margin: 30px 0;">
      <h1 style="color: #1E88E5; font-size: 36px; letter-spacing: 8px; margin: 0; font-family: 'Courier New', monospace;">{otp}</h1>
    </div>
    <p style="color: #666; font-size: 14px;">This code will expire in {minutes} minutes.</p>
    <p style="color: #666; font-size: 14px;">If you didn't request this code, please ignore this email.</p>
    <hr style="border: none; border-top: 1px solid #ddd; margin: 30px 0;">
    <p style="color: #999; font-size: 12px; text-align: center;">&copy; {year} RaknaGo. All rights reserved.</p>
  </div>
</body>
</html>
"""

TEXT_TEMPLATE = (
    "Your RaknaGo 2FA Verification Code is: {otp}\n\n"
    "This code will expire in {minutes} minutes.\n\n"
    "If you didn't request this code, please ignore this email."
)


class CallableError(Exception):
    """Error returned to callable-function clients, keyed by a canonical code."""

    STATUS = {
        "invalid-argument": ("INVALID_ARGUMENT", 400),
        "unauthenticated": ("UNAUTHENTICATED", 401),
        "permission-denied": ("PERMISSION_DENIED", 403),
        "not-found": ("NOT_FOUND", 404),
        "internal": ("INTERNAL", 500),
    }

    def __init__(self, code: str, message: str, details: Any = None):
        if code not in self.STATUS:
            raise ValueError(f"Unknown callable error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @property
    def status(self) -> str:
        return self.STATUS[self.code][0]

    @property
    def http_status(self) -> int:
        return self.STATUS[self.code][1]

    def to_dict(self) -> Dict[str, Any]:
        body = {"status": self.status, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class MailRelay(Protocol):
    def send(self, message: EmailMessage) -> None: ...

    def verify(self) -> None: ...


class SmtpRelay:
    def __init__(self, settings: MailSettings, timeout: float = 30.0):
        self.settings = settings
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP_SSL:
        context = ssl.create_default_context()
        return smtplib.SMTP_SSL(self.settings.host, self.settings.port, timeout=self.timeout, context=context)

    # Leaving the block closes the socket even when QUIT fails
    def verify(self) -> None:
        with self._connect() as server:
            server.login(self.settings.user, self.settings.password)

    def send(self, message: EmailMessage) -> None:
        with self._connect() as server:
            server.login(self.settings.user, self.settings.password)
            server.send_message(message)


def render_otp_email(otp: str, year: Optional[int] = None) -> Dict[str, str]:
    year = year or datetime.now(timezone.utc).year
    return {
        "subject": OTP_SUBJECT,
        "html": HTML_TEMPLATE.format(otp=otp, minutes=OTP_EXPIRY_MINUTES, year=year),
        "text": TEXT_TEMPLATE.format(otp=otp, minutes=OTP_EXPIRY_MINUTES),
    }


class OtpEmailService:
    def __init__(self, settings: Optional[MailSettings], relay: Optional[MailRelay] = None):
        self.settings = settings
        if relay is None and settings is not None:
            relay = SmtpRelay(settings)
        self.relay = relay

    @classmethod
    def from_settings(cls, settings: Settings) -> "OtpEmailService":
        return cls(settings.mail)

    def verify_relay(self) -> bool:
        """Checks relay login once; failures are logged, never raised."""
        if self.settings is None or self.relay is None:
            logger.warning("Email relay is not configured; OTP emails cannot be sent")
            return False
        logger.info(
            "Email config loaded. User: %s Password length: %d",
            self.settings.user, len(self.settings.password),
        )
        try:
            self.relay.verify()
        except Exception as e:
            logger.error("Email transporter verification failed: %s", e)
            return False
        logger.info("Email transporter is ready to send emails")
        return True

    def build_message(self, email: str, otp: str) -> EmailMessage:
        if self.settings is None:
            raise ConfigurationError("Email relay is not configured")
        content = render_otp_email(otp)
        message = EmailMessage()
        message["From"] = formataddr((self.settings.sender_name, self.settings.user))
        message["To"] = email
        message["Subject"] = content["subject"]
        message.set_content(content["text"])
        message.add_alternative(content["html"], subtype="html")
        return message

    def send_otp_email(self, email: Optional[str], otp: Optional[str]) -> Dict[str, Any]:
        if not email or not otp:
            raise CallableError("invalid-argument", "Email and OTP are required")

        try:
            message = self.build_message(email, otp)
            self.relay.send(message)
        except Exception as e:
            logger.error("Error sending OTP email: %s", e)
            raise CallableError("internal", f"Failed to send OTP email: {e}", {"error": str(e)}) from e

        logger.info("OTP email sent successfully to %s", email)
        return {"success": True, "message": "OTP email sent successfully"}
