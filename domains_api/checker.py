from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

import httpx

from domain_checks.expiry import remaining_days
from domain_checks.reachability import ProbeResult, probe_domain
from domains_api import db as dbm
from domains_api.alerts import (
    EXPIRING_TITLE,
    OFFLINE_TITLE,
    ExpiringDomain,
    NotificationError,
    build_expiring_message,
    build_offline_message,
    load_timezone,
    send_alert,
)
from domains_api.settings import ServiceSettings


LOGGER = logging.getLogger("domains-support")


@dataclass(frozen=True)
class DomainCheckOutcome:
    row: dbm.DomainRow
    probe: ProbeResult
    remaining_days: int | None

    @property
    def status(self) -> str:
        return dbm.STATUS_ONLINE if self.probe.online else dbm.STATUS_OFFLINE


@dataclass
class BatchOutcome:
    total_domains: int
    offline: list[str] = field(default_factory=list)
    expiring: list[ExpiringDomain] = field(default_factory=list)
    notified: list[ExpiringDomain] = field(default_factory=list)


async def check_single_domain(
    settings: ServiceSettings, *, http_client: httpx.AsyncClient, domain: str
) -> ProbeResult:
    return await probe_domain(
        http_client,
        domain,
        timeout_seconds=settings.probe_timeout_seconds,
        attempts=settings.probe_attempts,
    )


async def _check_row(
    settings: ServiceSettings,
    *,
    http_client: httpx.AsyncClient,
    row: dbm.DomainRow,
    today: date,
) -> DomainCheckOutcome:
    days_left = remaining_days(row.expiry_date, today=today)
    if days_left is None:
        LOGGER.warning("Unparseable expiry date domain=%s expiry_date=%r", row.domain, row.expiry_date)
    else:
        LOGGER.info("Checking domain=%s expiry_date=%s remaining_days=%s", row.domain, row.expiry_date, days_left)

    probe = await check_single_domain(settings, http_client=http_client, domain=row.domain)
    outcome = DomainCheckOutcome(row=row, probe=probe, remaining_days=days_left)
    await asyncio.to_thread(dbm.update_domain_status, settings, domain=row.domain, status=outcome.status)
    return outcome


def _classify(outcome: BatchOutcome, check: DomainCheckOutcome, *, days: int) -> None:
    row = check.row
    if not check.probe.online and row.st_tgsend == 1:
        outcome.offline.append(row.domain)
    if check.remaining_days is not None and check.remaining_days <= days and row.tgsend == 1:
        outcome.expiring.append(
            ExpiringDomain(domain=row.domain, expiry_date=row.expiry_date, remaining_days=check.remaining_days)
        )


async def run_batch_check(
    settings: ServiceSettings,
    *,
    http_client: httpx.AsyncClient,
    config: dbm.AlertConfig,
    domains: list[str],
    now: datetime | None = None,
) -> BatchOutcome:
    """
    Probe every notification-enabled domain from `domains`, persist its status and send
    one grouped offline alert and one grouped expiry alert.
    """
    if now is None:
        now = datetime.now(load_timezone(settings.notify_timezone))
    today = now.date()

    rows = await asyncio.to_thread(dbm.list_notify_domains, settings, domains=domains)
    LOGGER.info("Found notification-enabled domains count=%s requested=%s", len(rows), len(domains))
    outcome = BatchOutcome(total_domains=len(rows))

    batch_size = max(1, int(settings.batch_size))
    for start in range(0, len(rows), batch_size):
        batch = rows[start : start + batch_size]
        LOGGER.info("Processing domains %s..%s of %s", start + 1, start + len(batch), len(rows))
        checks = await asyncio.gather(
            *(_check_row(settings, http_client=http_client, row=row, today=today) for row in batch)
        )
        for check in checks:
            _classify(outcome, check, days=config.days)

    if outcome.offline:
        msg = build_offline_message(outcome.offline, now=now)
        try:
            channels = await send_alert(
                http_client=http_client, settings=settings, config=config, title=OFFLINE_TITLE, msg=msg
            )
            LOGGER.info("Offline alert done domains=%s channels=%s", len(outcome.offline), channels)
        except NotificationError:
            LOGGER.exception("Failed to send offline alert domains=%s", len(outcome.offline))

    if outcome.expiring:
        msg = build_expiring_message(outcome.expiring, days=config.days, now=now)
        try:
            channels = await send_alert(
                http_client=http_client, settings=settings, config=config, title=EXPIRING_TITLE, msg=msg
            )
            LOGGER.info("Expiry alert done domains=%s channels=%s", len(outcome.expiring), channels)
            outcome.notified.extend(outcome.expiring)
        except NotificationError:
            LOGGER.exception("Failed to send expiry alert domains=%s", len(outcome.expiring))

    return outcome
