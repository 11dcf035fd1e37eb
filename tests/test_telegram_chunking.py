from __future__ import annotations

from domain_checks.telegram import TELEGRAM_MAX_MESSAGE_LEN, redact_telegram_response, split_telegram_message


def test_split_telegram_message_respects_max_len() -> None:
    text = ("line\n" * 2000).strip()
    parts = split_telegram_message(text, max_len=500)
    assert len(parts) > 1
    assert all(0 < len(p) <= 500 for p in parts)


def test_split_telegram_message_default_limit() -> None:
    text = "a" * (TELEGRAM_MAX_MESSAGE_LEN + 10)
    parts = split_telegram_message(text)
    assert len(parts) == 2
    assert len(parts[0]) <= TELEGRAM_MAX_MESSAGE_LEN
    assert len(parts[1]) <= TELEGRAM_MAX_MESSAGE_LEN


def test_split_telegram_message_keeps_domain_lines_whole() -> None:
    lines = [f"`domain-{i:04}.example`" for i in range(400)]
    parts = split_telegram_message("\n".join(lines), max_len=1000)
    assert len(parts) > 1
    for part in parts:
        for line in part.splitlines():
            assert line.startswith("`") and line.endswith("`")
    rejoined = [line for part in parts for line in part.splitlines()]
    assert rejoined == lines


def test_redact_telegram_response_keeps_only_safe_fields() -> None:
    out = redact_telegram_response(
        {"ok": True, "result": {"message_id": 7, "chat": {"id": 123}, "text": "secret"}}
    )
    assert '"message_id": 7' in out
    assert "secret" not in out
