# layofftracker/services/email_service.py
"""
Email service for sending transactional emails (magic links).

The transport is chosen once, when the service is built, from whichever
credentials are configured. Order of preference:
- SendGrid API          (SENDGRID_API_KEY)
- Gmail SMTP            (GMAIL_USER + GMAIL_APP_PASSWORD)
- Generic SMTP          (SMTP_HOST + SMTP_USER + SMTP_PASS, SMTP_PORT, SMTP_SECURE)
- Resend SMTP           (RESEND_API_KEY)
- Console               (nothing configured: messages are logged, not sent)

Send failures are logged and reported as ``False``; they never raise.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Any, Dict, Mapping, Optional

from flask import current_app
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

log = logging.getLogger(__name__)

SMTP_TIMEOUT = 20

GMAIL_HOST, GMAIL_PORT = "smtp.gmail.com", 587
RESEND_HOST, RESEND_PORT, RESEND_USER = "smtp.resend.com", 587, "resend"


def get_email_config(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Pull the email settings out of an app config mapping."""
    return {
        "from_email": config.get("FROM_EMAIL") or "noreply@layofftracker.com",
        "magic_link_expiry_minutes": int(config.get("MAGIC_LINK_EXPIRY_MINUTES", 15)),

        "sendgrid_api_key": config.get("SENDGRID_API_KEY", ""),

        "gmail_user": config.get("GMAIL_USER", ""),
        "gmail_app_password": config.get("GMAIL_APP_PASSWORD", ""),

        "smtp_host": config.get("SMTP_HOST", ""),
        "smtp_port": int(config.get("SMTP_PORT") or 587),
        "smtp_user": config.get("SMTP_USER", ""),
        "smtp_pass": config.get("SMTP_PASS", ""),
        "smtp_secure": bool(config.get("SMTP_SECURE", False)),

        "resend_api_key": config.get("RESEND_API_KEY", ""),
    }


def select_transport(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Decide which transport to use.

    Returns a dict with ``provider`` plus, for SMTP-based providers, the
    ``host``/``port``/``user``/``password``/``secure`` to connect with.
    """
    if config["sendgrid_api_key"]:
        return {"provider": "sendgrid", "api_key": config["sendgrid_api_key"]}

    if config["gmail_user"] and config["gmail_app_password"]:
        return {
            "provider": "gmail",
            "host": GMAIL_HOST,
            "port": GMAIL_PORT,
            "user": config["gmail_user"],
            "password": config["gmail_app_password"],
            "secure": False,
        }

    if config["smtp_host"] and config["smtp_user"] and config["smtp_pass"]:
        return {
            "provider": "smtp",
            "host": config["smtp_host"],
            "port": config["smtp_port"],
            "user": config["smtp_user"],
            "password": config["smtp_pass"],
            "secure": config["smtp_secure"],
        }

    if config["resend_api_key"]:
        return {
            "provider": "resend",
            "host": RESEND_HOST,
            "port": RESEND_PORT,
            "user": RESEND_USER,
            "password": config["resend_api_key"],
            "secure": False,
        }

    return {"provider": "console"}


class EmailService:
    def __init__(self, config: Dict[str, Any], logger: Optional[logging.Logger] = None):
        self.config = config
        self.transport = select_transport(config)
        self.log = logger or log

    @classmethod
    def from_app_config(cls, app_config: Mapping[str, Any], logger: Optional[logging.Logger] = None) -> "EmailService":
        return cls(get_email_config(app_config), logger=logger)

    @property
    def provider(self) -> str:
        return self.transport["provider"]

    def send_email(
        self,
        to: str,
        subject: str,
        text: Optional[str] = None,
        html: Optional[str] = None,
    ) -> bool:
        """
        Send an email using the configured transport.

        Args:
            to: Recipient email address
            subject: Email subject
            text: Plain text body (optional)
            html: HTML body (optional)

        Returns:
            True if the email was sent (or logged by the console transport),
            False if the transport failed
        """
        try:
            if self.provider == "console":
                self._log_to_console(to, subject, text, html)
                return True
            if self.provider == "sendgrid":
                return self._send_via_sendgrid(to, subject, text, html)
            return self._send_via_smtp(to, subject, text, html)
        except Exception as e:
            self.log.error(f"Failed to send email to {to} via {self.provider}: {e}", exc_info=True)
            return False

    def send_magic_link(self, email: str, magic_link_url: str) -> bool:
        minutes = self.config["magic_link_expiry_minutes"]
        subject = "Sign in to LayoffTracker"
        text = (
            "Click the link below to sign in to your LayoffTracker account:\n\n"
            f"{magic_link_url}\n\n"
            f"This link will expire in {minutes} minutes.\n\n"
            "If you didn't request this, please ignore this email."
        )
        html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #7C3AED;">Sign in to LayoffTracker</h2>
  <p>Click the button below to sign in to your LayoffTracker account:</p>
  <p style="text-align: center; margin: 30px 0;">
    <a href="{magic_link_url}" style="background: #7C3AED; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">Sign In to LayoffTracker</a>
  </p>
  <p style="color: #666; font-size: 14px;">
    This link will expire in {minutes} minutes.<br>
    If you didn't request this, please ignore this email.
  </p>
</div>
"""
        return self.send_email(email, subject, text=text, html=html)

    # ---- transports ---------------------------------------------------------

    def _log_to_console(self, to: str, subject: str, text: Optional[str], html: Optional[str]) -> None:
        self.log.info(
            "\n=== EMAIL (no transport configured) ===\n"
            f"To: {to}\n"
            f"Subject: {subject}\n"
            f"{text or html or ''}\n"
            "========================================"
        )

    def _send_via_sendgrid(self, to: str, subject: str, text: Optional[str], html: Optional[str]) -> bool:
        message = Mail(
            from_email=self.config["from_email"],
            to_emails=to,
            subject=subject,
            plain_text_content=text if text or not html else None,
            html_content=html,
        )
        response = SendGridAPIClient(self.transport["api_key"]).send(message)

        if response.status_code in (200, 201, 202):
            self.log.info(f"Email sent via SendGrid to {to}: {subject}")
            return True
        self.log.error(f"SendGrid returned status {response.status_code} for {to}")
        return False

    def _send_via_smtp(self, to: str, subject: str, text: Optional[str], html: Optional[str]) -> bool:
        t = self.transport

        msg = EmailMessage()
        msg["From"] = self.config["from_email"]
        msg["To"] = to
        msg["Subject"] = subject
        if text or not html:
            msg.set_content(text or "")
            if html:
                msg.add_alternative(html, subtype="html")
        else:
            msg.set_content(html, subtype="html")

        # SMTP_SECURE means implicit TLS (usually port 465); otherwise upgrade with STARTTLS
        if t["secure"]:
            with smtplib.SMTP_SSL(t["host"], t["port"], timeout=SMTP_TIMEOUT) as s:
                s.login(t["user"], t["password"])
                s.send_message(msg)
        else:
            with smtplib.SMTP(t["host"], t["port"], timeout=SMTP_TIMEOUT) as s:
                s.starttls()
                s.login(t["user"], t["password"])
                s.send_message(msg)

        self.log.info(f"Email sent via {self.provider} to {to}: {subject}")
        return True


def get_email_service() -> EmailService:
    """The service built for the current app in ``create_app``."""
    return current_app.extensions["email_service"]
