from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import httpx


LOGGER = logging.getLogger("domains-support")

PROBE_SCHEMES = ("https", "http")
DEFAULT_PROBE_TIMEOUT_SECONDS = 10.0
DEFAULT_PROBE_ATTEMPTS = 2

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    ),
}


@dataclass(frozen=True)
class ProbeResult:
    domain: str
    online: bool
    scheme: str | None
    status_code: int | None
    attempts: int
    elapsed_ms: float
    error: str | None = None


def _describe_error(exc: Exception) -> str:
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return "Timeout"
    return f"{type(exc).__name__}: {exc}"


async def _fetch_status(client: httpx.AsyncClient, url: str, *, timeout_seconds: float) -> int:
    # Headers only; the body is never read.
    async with client.stream(
        "GET",
        url,
        headers=BROWSER_HEADERS,
        follow_redirects=True,
        timeout=timeout_seconds,
    ) as resp:
        return int(resp.status_code)


async def probe_domain(
    client: httpx.AsyncClient,
    domain: str,
    *,
    timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    attempts: int = DEFAULT_PROBE_ATTEMPTS,
) -> ProbeResult:
    """
    Reachability probe: GET https://<domain>, falling back to http://<domain>.

    Each scheme gets `attempts` tries, each bounded by `timeout_seconds` in total. The
    first 2xx status (after redirects) marks the domain online; the body is not
    downloaded. Anything else, including transport errors and timeouts, counts as a
    failed attempt.
    """
    host = str(domain or "").strip()
    attempts = max(1, int(attempts))
    started = time.perf_counter()
    made = 0
    last_status: int | None = None
    last_error: str | None = None

    for scheme in PROBE_SCHEMES:
        url = f"{scheme}://{host}"
        for attempt in range(1, attempts + 1):
            made += 1
            LOGGER.info("Probing url=%s attempt=%s", url, attempt)
            try:
                last_status = await asyncio.wait_for(
                    _fetch_status(client, url, timeout_seconds=timeout_seconds),
                    timeout=timeout_seconds,
                )
            except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, ValueError) as exc:
                # ValueError covers hosts that fail IDNA encoding, e.g. xn--a.com.
                last_error = _describe_error(exc)
                LOGGER.warning(
                    "Probe failed domain=%s scheme=%s attempt=%s error=%s", host, scheme, attempt, last_error
                )
                continue

            if 200 <= last_status < 300:
                LOGGER.info("Domain online domain=%s scheme=%s status=%s", host, scheme, last_status)
                return ProbeResult(
                    domain=host,
                    online=True,
                    scheme=scheme,
                    status_code=last_status,
                    attempts=made,
                    elapsed_ms=round((time.perf_counter() - started) * 1000.0, 3),
                )
            last_error = f"http_status: {last_status}"
            LOGGER.info("Probe got non-success domain=%s scheme=%s status=%s attempt=%s", host, scheme, last_status, attempt)

        LOGGER.info("All probe attempts failed domain=%s scheme=%s", host, scheme)

    return ProbeResult(
        domain=host,
        online=False,
        scheme=None,
        status_code=last_status,
        attempts=made,
        elapsed_ms=round((time.perf_counter() - started) * 1000.0, 3),
        error=last_error,
    )
