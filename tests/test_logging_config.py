"""Tests for log secret sanitization."""

from shaken.logging_config import _REDACTED, sanitize_secrets


def test_oauth_token_redacted():
    event = sanitize_secrets(None, "info", {"line": "token oauth:abcdefghij0123456789"})
    assert event["line"] == f"token {_REDACTED}"


def test_pass_line_redacted():
    event = sanitize_secrets(None, "debug", {"line": "PASS hunter2hunter2"})
    assert event["line"] == f"PASS {_REDACTED}"


def test_nested_values_redacted():
    event = sanitize_secrets(None, "info", {
        "lines": ["PASS abc", "NICK bot"],
        "extra": {"token": "oauth:abcdefghij0123"},
        "count": 3,
    })
    assert event["lines"] == [f"PASS {_REDACTED}", "NICK bot"]
    assert event["extra"] == {"token": _REDACTED}
    assert event["count"] == 3


def test_plain_text_untouched():
    event = sanitize_secrets(None, "info", {"event": "registered", "nick": "shaken_bot"})
    assert event == {"event": "registered", "nick": "shaken_bot"}
