from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

import httpx
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from domain_checks.telegram import TelegramConfig, redact_telegram_response, send_telegram_message_chunked
from domain_checks.wechat import WeChatConfig, send_wechat_message
from domains_api.db import AlertConfig
from domains_api.settings import ServiceSettings


LOGGER = logging.getLogger("domains-support")

BRAND_HEADER = "*🔔 Domains-Support 通知*"
OFFLINE_TITLE = "域名服务离线告警"
EXPIRING_TITLE = "域名即将过期提醒"


class NotificationError(RuntimeError):
    pass


@dataclass(frozen=True)
class ExpiringDomain:
    domain: str
    expiry_date: str
    remaining_days: int


def load_timezone(name: str):
    cleaned = (name or "").strip()
    if not cleaned or cleaned.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(cleaned)
    except ZoneInfoNotFoundError:
        LOGGER.warning("Timezone not found; falling back to UTC tz=%s", cleaned)
        return timezone.utc


def format_notify_time(now: datetime) -> str:
    # zh-CN locale layout, e.g. 2025/3/7 09:05:01
    return f"{now.year}/{now.month}/{now.day} {now.hour:02}:{now.minute:02}:{now.second:02}"


def _build_message(*, title: str, intro: str, details: Iterable[str], now: datetime) -> str:
    body = "\n".join(details)
    return (
        f"{BRAND_HEADER}\n\n"
        f"⚠️ *{title}*\n\n"
        f"{intro}\n"
        f"{body}\n\n"
        f"⏰ 时间：{format_notify_time(now)}"
    )


def build_offline_message(domains: Iterable[str], *, now: datetime) -> str:
    return _build_message(
        title=OFFLINE_TITLE,
        intro="以下域名无法访问，请立即检查：",
        details=[f"`{d}`" for d in domains],
        now=now,
    )


def build_expiring_message(domains: Iterable[ExpiringDomain], *, days: int, now: datetime) -> str:
    return _build_message(
        title=EXPIRING_TITLE,
        intro=f"以下域名即将在 {int(days)} 天内过期，请及时续费：",
        details=[f"`{d.domain}` (还剩 {d.remaining_days} 天, {d.expiry_date})" for d in domains],
        now=now,
    )


async def send_alert(
    *,
    http_client: httpx.AsyncClient,
    settings: ServiceSettings,
    config: AlertConfig,
    title: str,
    msg: str,
) -> list[str]:
    """
    Deliver one alert to every configured channel; returns the channels that accepted it.

    Telegram rejections raise NotificationError before WeChat is tried. WeChat failures
    are logged only.
    """
    if not settings.alerts_enabled:
        LOGGER.info("Alerts disabled; skipping title=%s", title)
        return []

    sent: list[str] = []
    if config.telegram_enabled:
        tg = TelegramConfig(
            bot_token=config.tg_token,
            chat_id=config.tg_userid,
            api_base=settings.telegram_api_base,
        )
        ok_all, resps = await send_telegram_message_chunked(http_client, tg, msg)
        if not ok_all:
            failed = [redact_telegram_response(r) for r in resps if not r.get("ok")]
            raise NotificationError(f"Failed to send Telegram message: {'; '.join(failed)}")
        LOGGER.info("Telegram alert sent title=%s parts=%s", title, len(resps))
        sent.append("telegram")

    if config.wechat_enabled:
        wx = WeChatConfig(api_url=config.wx_api, token=config.wx_token)
        ok, _body = await send_wechat_message(http_client, wx, title=title, text=msg)
        if ok:
            sent.append("wechat")

    if not sent:
        LOGGER.warning("No notification channel delivered title=%s", title)
    return sent
