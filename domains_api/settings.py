from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    s = str(raw).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        return int(str(raw).strip())
    except Exception:
        return int(default)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        return float(str(raw).strip())
    except Exception:
        return float(default)


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return str(default)
    s = str(raw).strip()
    return s if s else str(default)


@dataclass(frozen=True)
class ServiceSettings:
    db_path: str = field(default_factory=lambda: _env_str("DOMAINS_DB_PATH", "/data/domains.db"))

    # Shared secret for the batch check endpoint (query ?token= or Bearer header).
    api_token: str = field(
        default_factory=lambda: (os.getenv("DOMAINS_API_TOKEN", "") or os.getenv("API_TOKEN", "")).strip()
    )

    # Alerting. Channel credentials live in the alertcfg table, not here.
    alerts_enabled: bool = field(default_factory=lambda: _env_bool("DOMAINS_ALERTS_ENABLED", True))
    notify_timezone: str = field(default_factory=lambda: _env_str("DOMAINS_NOTIFY_TIMEZONE", "Asia/Shanghai"))
    telegram_api_base: str = field(
        default_factory=lambda: _env_str("DOMAINS_TELEGRAM_API_BASE", "https://api.telegram.org")
    )
    http_user_agent: str = field(default_factory=lambda: _env_str("DOMAINS_HTTP_USER_AGENT", "Domains-Support Checker"))

    # Reachability probing.
    batch_size: int = field(default_factory=lambda: max(1, _env_int("DOMAINS_CHECK_BATCH_SIZE", 20)))
    probe_timeout_seconds: float = field(default_factory=lambda: _env_float("DOMAINS_PROBE_TIMEOUT_SECONDS", 10.0))
    probe_attempts: int = field(default_factory=lambda: max(1, _env_int("DOMAINS_PROBE_ATTEMPTS", 2)))
