"""
One-time password codes for the password-reset flow.

One live code per email, kept in process memory. A code is single use and
expires after a fixed window.
"""
from __future__ import annotations

import enum
import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from services.exceptions import DependencyFailure, NotFound
from utils.mailer import redact_email

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Password Reset OTP"


class OtpStatus(enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


@dataclass
class OtpEntry:
    code: str
    expires_at: float


class OtpManager:
    def __init__(
        self,
        mailer,
        ttl_seconds: int = 300,
        digits: int = 6,
        code_generator: Optional[Callable[[], str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.mailer = mailer
        self.ttl_seconds = ttl_seconds
        self.digits = digits
        self._generate = code_generator or self._random_code
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, OtpEntry] = {}

    def _random_code(self) -> str:
        return f"{secrets.randbelow(10 ** self.digits):0{self.digits}d}"

    def _new_entry(self) -> OtpEntry:
        return OtpEntry(code=self._generate(), expires_at=self._clock() + self.ttl_seconds)

    def normalize(self, code) -> str:
        """Numeric codes may arrive as ints; pad them back to the fixed width."""
        code = str(code).strip()
        return code.zfill(self.digits) if code.isdigit() else code

    def _send(self, email: str, code: str) -> None:
        minutes = max(1, self.ttl_seconds // 60)
        body = f"Your OTP for password reset is {code}. It is valid for {minutes} minutes."
        if not self.mailer.send(email, OTP_SUBJECT, body):
            raise DependencyFailure("Error sending OTP. Try again later.")

    def issue(self, email: str) -> str:
        """Create (or replace) the code for an email and send it."""
        entry = self._new_entry()
        with self._lock:
            self._entries[email] = entry
        code = entry.code
        self._send(email, code)
        logger.info("OTP issued for %s", redact_email(email))
        return code

    def resend(self, email: str) -> str:
        """Replace an existing code (expired or not) with a fresh one and send it."""
        entry = self._new_entry()
        with self._lock:
            if email not in self._entries:
                raise NotFound("No OTP was requested for this email.")
            self._entries[email] = entry
        code = entry.code
        self._send(email, code)
        logger.info("OTP re-sent for %s", redact_email(email))
        return code

    def verify(self, email: str, code: str) -> OtpStatus:
        with self._lock:
            entry = self._entries.get(email)
            if entry is None:
                return OtpStatus.NOT_FOUND
            if self._clock() > entry.expires_at:
                del self._entries[email]
                return OtpStatus.EXPIRED
            if not hmac.compare_digest(entry.code.encode(), self.normalize(code).encode()):
                return OtpStatus.MISMATCH
            del self._entries[email]
            return OtpStatus.OK

    def __contains__(self, email: str) -> bool:
        with self._lock:
            return email in self._entries
