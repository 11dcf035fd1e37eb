from __future__ import annotations

import json
from dataclasses import dataclass

import httpx


TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_MAX_MESSAGE_LEN = 3900


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str
    chat_id: str
    api_base: str = TELEGRAM_API_BASE
    parse_mode: str | None = "Markdown"


def split_telegram_message(text: str, *, max_len: int = TELEGRAM_MAX_MESSAGE_LEN) -> list[str]:
    s = (text or "").strip()
    if not s:
        return [""]

    max_len = max(1, int(max_len))
    parts: list[str] = []
    while s:
        if len(s) <= max_len:
            parts.append(s)
            break
        # Prefer line boundaries so `code` spans in Markdown stay intact.
        cut = s.rfind("\n", 0, max_len + 1)
        if cut < max_len * 0.6:
            cut = max_len
        chunk = s[:cut].rstrip()
        parts.append(chunk)
        s = s[cut:].lstrip()
    return parts


def _redact(text: str, config: TelegramConfig) -> str:
    if config.bot_token:
        return text.replace(config.bot_token, "<redacted>")
    return text


async def send_telegram_message(
    client: httpx.AsyncClient, config: TelegramConfig, text: str
) -> tuple[bool, dict]:
    url = f"{config.api_base.rstrip('/')}/bot{config.bot_token}/sendMessage"
    payload: dict[str, str] = {"chat_id": config.chat_id, "text": text}
    if config.parse_mode:
        payload["parse_mode"] = config.parse_mode
    try:
        resp = await client.post(url, json=payload, timeout=15.0)
        data = resp.json()
        if not isinstance(data, dict):
            data = {"ok": False, "error": f"unexpected_response: {str(data)[:200]}"}
        ok = bool(data.get("ok")) and resp.is_success
        if not ok and "error" not in data:
            data = {**data, "error": f"http_status: {resp.status_code}"}
        return ok, data
    except Exception as e:
        return False, {"ok": False, "error": _redact(f"{type(e).__name__}: {e}", config)}


async def send_telegram_message_chunked(
    client: httpx.AsyncClient,
    config: TelegramConfig,
    text: str,
    *,
    max_len: int = TELEGRAM_MAX_MESSAGE_LEN,
) -> tuple[bool, list[dict]]:
    parts = split_telegram_message(text, max_len=max_len)
    ok_all = True
    responses: list[dict] = []
    for part in parts:
        ok, resp = await send_telegram_message(client, config, part)
        ok_all = ok_all and ok
        responses.append(resp)
    return ok_all, responses


def redact_telegram_response(data: dict) -> str:
    safe = {"ok": data.get("ok")}
    if isinstance(data.get("result"), dict):
        safe["result"] = {"message_id": data["result"].get("message_id")}
    if data.get("description"):
        safe["description"] = data.get("description")
    if data.get("error"):
        safe["error"] = data.get("error")
    return json.dumps(safe, ensure_ascii=False)
