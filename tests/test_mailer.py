from __future__ import annotations

from utils.mailer import Mailer, redact_email


def test_unconfigured_mailer_fails_outside_dev_mode() -> None:
    assert Mailer().send("a@b.com", "Subject", "Body") is False


def test_unconfigured_mailer_logs_in_dev_mode(caplog) -> None:
    with caplog.at_level("INFO", logger="utils.mailer"):
        assert Mailer(dev_mode=True).send("alice@b.com", "Subject", "Body 123456") is True

    assert "123456" in caplog.text
    assert "alice@b.com" not in caplog.text


def test_dev_mode_follows_debug_and_testing() -> None:
    assert Mailer.from_config({"TESTING": True}).dev_mode is True
    assert Mailer.from_config({"DEBUG": True}).dev_mode is True
    assert Mailer.from_config({"DEBUG": False, "TESTING": False}).dev_mode is False


def test_redact_email() -> None:
    assert redact_email("alice@b.com") == "al***@b.com"
    assert redact_email("nope") == "redacted"
