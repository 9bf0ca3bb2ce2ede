"""
Outbound email over SMTP.

When no SMTP host is configured, dev mode (DEBUG or TESTING apps) logs the
message instead of sending it. Outside dev mode an unconfigured mailer
reports every send as failed.
"""
from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from typing import Optional

logger = logging.getLogger(__name__)


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class Mailer:
    def __init__(
        self,
        *,
        host: Optional[str] = None,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        from_email: Optional[str] = None,
        timeout: float = 10.0,
        dev_mode: bool = False,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email or user
        self.timeout = timeout
        self.dev_mode = dev_mode

    @classmethod
    def from_config(cls, config) -> "Mailer":
        return cls(
            host=config.get("SMTP_HOST") or None,
            port=config.get("SMTP_PORT", 587),
            user=config.get("SMTP_USER") or None,
            password=config.get("SMTP_PASSWORD") or None,
            use_tls=config.get("SMTP_USE_TLS", True),
            from_email=config.get("MAIL_FROM") or None,
            timeout=config.get("SMTP_TIMEOUT_SECONDS", 10.0),
            dev_mode=bool(config.get("DEBUG") or config.get("TESTING")),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.from_email)

    def send(self, to: str, subject: str, body: str) -> bool:
        """Send a plain-text email. Returns True on success, False on any delivery failure."""
        if not self.is_configured:
            if not self.dev_mode:
                logger.error("SMTP is not configured; cannot send email to %s", redact_email(to))
                return False
            logger.info("SMTP not configured (dev mode); email to %s not sent. Subject: %s. Body: %s",
                        redact_email(to), subject, body)
            return True

        msg = MIMEText(body, "plain")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to

        try:
            context = ssl.create_default_context()
            if self.use_tls:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.sendmail(self.from_email, [to], msg.as_string())
            else:
                with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.sendmail(self.from_email, [to], msg.as_string())
        except (smtplib.SMTPException, ssl.SSLError, OSError) as exc:
            # OSError covers socket timeouts and refused connections
            logger.error("Email to %s failed: %s: %s", redact_email(to), type(exc).__name__, exc)
            return False

        logger.info("Email sent to %s (%s)", redact_email(to), subject)
        return True
