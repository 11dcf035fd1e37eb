from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx


LOGGER = logging.getLogger("domains-support")


@dataclass(frozen=True)
class WeChatConfig:
    api_url: str
    token: str


async def send_wechat_message(
    client: httpx.AsyncClient, config: WeChatConfig, *, title: str, text: str
) -> tuple[bool, str]:
    """
    Push a message through a WeChat relay (ServerChan / PushPlus style form API).

    Never raises: relay failures are logged and reported as (False, reason).
    """
    if not config.api_url or not config.token:
        LOGGER.info("WeChat not configured; skipping send")
        return False, "not_configured"

    LOGGER.info("Sending WeChat message title=%s text_len=%s", title, len(text or ""))
    form = {"title": title, "content": text, "token": config.token}
    try:
        resp = await client.post(config.api_url, data=form, timeout=15.0)
    except httpx.HTTPError as exc:
        LOGGER.error("WeChat send failed error=%s: %s", type(exc).__name__, exc)
        return False, f"{type(exc).__name__}: {exc}"

    body = (resp.text or "")[:500]
    if not resp.is_success:
        LOGGER.error("WeChat API error status=%s body=%s", resp.status_code, body)
        return False, body
    LOGGER.info("WeChat API response status=%s body=%s", resp.status_code, body)
    return True, body
