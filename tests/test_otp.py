from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from services.exceptions import DependencyFailure, NotFound
from utils.otp import OtpManager, OtpStatus

from conftest import RecordingMailer


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _manager(mailer=None, clock=None, codes=("123456",)):
    codes = iter(codes)
    return OtpManager(
        mailer or RecordingMailer(),
        ttl_seconds=300,
        code_generator=lambda: next(codes),
        clock=clock or FakeClock(),
    )


def test_issue_stores_and_emails_code() -> None:
    mailer = RecordingMailer()
    manager = _manager(mailer)

    code = manager.issue("a@b.com")

    assert code == "123456"
    assert "a@b.com" in manager
    to, subject, body = mailer.sent[0]
    assert to == "a@b.com"
    assert subject == "Password Reset OTP"
    assert "123456" in body


def test_mismatch_keeps_entry_then_ok_consumes_it() -> None:
    manager = _manager()
    manager.issue("a@b.com")

    assert manager.verify("a@b.com", "000000") is OtpStatus.MISMATCH
    assert manager.verify("a@b.com", "123456") is OtpStatus.OK
    assert manager.verify("a@b.com", "123456") is OtpStatus.NOT_FOUND


def test_verify_unknown_email() -> None:
    assert _manager().verify("nobody@b.com", "123456") is OtpStatus.NOT_FOUND


def test_expired_code_is_removed() -> None:
    clock = FakeClock()
    manager = _manager(clock=clock)
    manager.issue("a@b.com")

    clock.now += 300 + 0.001

    assert manager.verify("a@b.com", "123456") is OtpStatus.EXPIRED
    assert "a@b.com" not in manager
    assert manager.verify("a@b.com", "123456") is OtpStatus.NOT_FOUND


def test_code_is_still_valid_at_the_end_of_the_window() -> None:
    clock = FakeClock()
    manager = _manager(clock=clock)
    manager.issue("a@b.com")

    clock.now += 300

    assert manager.verify("a@b.com", "123456") is OtpStatus.OK


def test_new_issue_overwrites_previous_code() -> None:
    manager = _manager(codes=("111111", "222222"))
    manager.issue("a@b.com")
    manager.issue("a@b.com")

    assert manager.verify("a@b.com", "111111") is OtpStatus.MISMATCH
    assert manager.verify("a@b.com", "222222") is OtpStatus.OK


def test_resend_requires_prior_issue() -> None:
    with pytest.raises(NotFound):
        _manager().resend("a@b.com")


def test_resend_after_expiry_resets_window() -> None:
    clock = FakeClock()
    mailer = RecordingMailer()
    manager = _manager(mailer, clock=clock, codes=("111111", "222222"))
    manager.issue("a@b.com")
    clock.now += 1_000

    assert manager.resend("a@b.com") == "222222"
    assert len(mailer.sent) == 2
    clock.now += 299
    assert manager.verify("a@b.com", "222222") is OtpStatus.OK


def test_send_failure_is_a_dependency_failure() -> None:
    manager = _manager(RecordingMailer(fail=True))

    with pytest.raises(DependencyFailure):
        manager.issue("a@b.com")
    # kept so that resend can retry delivery
    assert "a@b.com" in manager


def test_default_codes_are_fixed_width_digits() -> None:
    manager = OtpManager(RecordingMailer(), digits=6)
    for _ in range(50):
        code = manager.issue("a@b.com")
        assert len(code) == 6 and code.isdigit()


def test_numeric_code_is_padded_to_width() -> None:
    manager = _manager(codes=("012345",))
    manager.issue("a@b.com")

    assert manager.verify("a@b.com", 12345) is OtpStatus.OK


def test_numeric_code_mismatch() -> None:
    manager = _manager()
    manager.issue("a@b.com")

    assert manager.verify("a@b.com", 654321) is OtpStatus.MISMATCH
    assert manager.verify("a@b.com", 123456) is OtpStatus.OK


def test_resend_after_successful_verify_is_not_found() -> None:
    mailer = RecordingMailer()
    manager = _manager(mailer, codes=("111111", "222222"))
    manager.issue("a@b.com")
    assert manager.verify("a@b.com", "111111") is OtpStatus.OK

    with pytest.raises(NotFound):
        manager.resend("a@b.com")
    assert "a@b.com" not in manager
    assert len(mailer.sent) == 1


def test_concurrent_issue_and_verify() -> None:
    mailer = RecordingMailer()
    manager = OtpManager(mailer, ttl_seconds=300, code_generator=lambda: "123456")
    emails = [f"user{i}@b.com" for i in range(16)]

    def flow(email: str) -> OtpStatus:
        manager.issue(email)
        return manager.verify(email, "123456")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(flow, emails))

    assert results == [OtpStatus.OK] * len(emails)
    assert len(mailer.sent) == len(emails)
    assert not any(email in manager for email in emails)
