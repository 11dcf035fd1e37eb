from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from domains_api.settings import ServiceSettings


SCHEMA_VERSION = 2

STATUS_ONLINE = "在线"
STATUS_OFFLINE = "离线"


def _utc_ts() -> float:
    return float(time.time())


def _connect(path: str) -> sqlite3.Connection:
    p = str(path or "").strip()
    if not p:
        raise ValueError("Missing db_path")
    Path(p).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(p, timeout=30, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout = 5000;")
    # Status writes from one batch land concurrently; WAL keeps readers unblocked.
    try:
        conn.execute("PRAGMA journal_mode = WAL;")
    except Exception:
        pass
    return conn


def ensure_schema(settings: ServiceSettings) -> None:
    conn = _connect(settings.db_path)
    try:
        _ensure_schema_conn(conn)
    finally:
        conn.close()


def _ensure_schema_conn(conn: sqlite3.Connection) -> None:
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_meta (k TEXT PRIMARY KEY, v TEXT NOT NULL);"
    )
    row = conn.execute("SELECT v FROM schema_meta WHERE k='version'").fetchone()
    cur = int(row["v"]) if row and row["v"] else 0
    if cur >= SCHEMA_VERSION:
        return

    if cur == 0:
        _apply_v1(conn)
        _apply_v2(conn)
        conn.execute("INSERT OR REPLACE INTO schema_meta (k, v) VALUES ('version', ?)", (str(SCHEMA_VERSION),))
        return

    if cur == 1:
        _apply_v2(conn)
        conn.execute("UPDATE schema_meta SET v=? WHERE k='version'", (str(SCHEMA_VERSION),))
        return

    raise RuntimeError(f"Unsupported schema version upgrade path cur={cur} target={SCHEMA_VERSION}")


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    try:
        rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    except Exception:
        return False
    for r in rows:
        try:
            if str(r["name"]) == str(column):
                return True
        except Exception:
            continue
    return False


def _apply_v1(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS alertcfg (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          tg_token TEXT,
          tg_userid TEXT,
          wx_api TEXT,
          wx_token TEXT,
          days INTEGER NOT NULL DEFAULT 30
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS domains (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          domain TEXT NOT NULL UNIQUE,
          expiry_date TEXT,
          status TEXT NOT NULL DEFAULT '离线',
          tgsend INTEGER NOT NULL DEFAULT 0,
          st_tgsend INTEGER NOT NULL DEFAULT 0
        );
        """
    )


def _apply_v2(conn: sqlite3.Connection) -> None:
    """
    v2 tracks when the checker last wrote a status. Databases imported from the
    dashboard export may predate the notification flags, so backfill those too.
    """
    if not _column_exists(conn, "domains", "tgsend"):
        conn.execute("ALTER TABLE domains ADD COLUMN tgsend INTEGER NOT NULL DEFAULT 0;")
    if not _column_exists(conn, "domains", "st_tgsend"):
        conn.execute("ALTER TABLE domains ADD COLUMN st_tgsend INTEGER NOT NULL DEFAULT 0;")
    if not _column_exists(conn, "domains", "status_updated_at_ts"):
        conn.execute("ALTER TABLE domains ADD COLUMN status_updated_at_ts REAL;")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_domains_notify ON domains(tgsend, st_tgsend);")


@dataclass(frozen=True)
class AlertConfig:
    tg_token: str
    tg_userid: str
    wx_api: str
    wx_token: str
    days: int

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.tg_token and self.tg_userid)

    @property
    def wechat_enabled(self) -> bool:
        return bool(self.wx_api and self.wx_token)


@dataclass(frozen=True)
class DomainRow:
    domain: str
    expiry_date: str
    tgsend: int
    st_tgsend: int


def _row_str(row: sqlite3.Row, key: str) -> str:
    v = row[key]
    return "" if v is None else str(v).strip()


def _row_int(row: sqlite3.Row, key: str, default: int = 0) -> int:
    try:
        return int(row[key])
    except (TypeError, ValueError):
        return default


def get_alert_config(settings: ServiceSettings) -> AlertConfig | None:
    conn = _connect(settings.db_path)
    try:
        _ensure_schema_conn(conn)
        row = conn.execute("SELECT * FROM alertcfg LIMIT 1").fetchone()
        if row is None:
            return None
        return AlertConfig(
            tg_token=_row_str(row, "tg_token"),
            tg_userid=_row_str(row, "tg_userid"),
            wx_api=_row_str(row, "wx_api"),
            wx_token=_row_str(row, "wx_token"),
            days=_row_int(row, "days", 30),
        )
    finally:
        conn.close()


def save_alert_config(
    settings: ServiceSettings,
    *,
    tg_token: str = "",
    tg_userid: str = "",
    wx_api: str = "",
    wx_token: str = "",
    days: int = 30,
) -> None:
    """Replace the single alert configuration record."""
    conn = _connect(settings.db_path)
    try:
        _ensure_schema_conn(conn)
        conn.execute("BEGIN IMMEDIATE;")
        conn.execute("DELETE FROM alertcfg;")
        conn.execute(
            "INSERT INTO alertcfg (tg_token, tg_userid, wx_api, wx_token, days) VALUES (?, ?, ?, ?, ?)",
            (tg_token, tg_userid, wx_api, wx_token, int(days)),
        )
        conn.execute("COMMIT;")
    except Exception:
        conn.execute("ROLLBACK;")
        raise
    finally:
        conn.close()


def upsert_domain(
    settings: ServiceSettings,
    *,
    domain: str,
    expiry_date: str,
    tgsend: bool = False,
    st_tgsend: bool = False,
) -> None:
    d = str(domain or "").strip()
    if not d:
        raise ValueError("Missing domain")
    conn = _connect(settings.db_path)
    try:
        _ensure_schema_conn(conn)
        conn.execute(
            """
            INSERT INTO domains (domain, expiry_date, tgsend, st_tgsend) VALUES (?, ?, ?, ?)
            ON CONFLICT(domain) DO UPDATE SET
              expiry_date=excluded.expiry_date,
              tgsend=excluded.tgsend,
              st_tgsend=excluded.st_tgsend
            """,
            (d, str(expiry_date or "").strip(), 1 if tgsend else 0, 1 if st_tgsend else 0),
        )
    finally:
        conn.close()


def list_notify_domains(settings: ServiceSettings, *, domains: Iterable[str]) -> list[DomainRow]:
    """Rows for the requested domains that have expiry and/or offline notifications enabled."""
    wanted = [str(d) for d in domains]
    if not wanted:
        return []
    conn = _connect(settings.db_path)
    try:
        _ensure_schema_conn(conn)
        out: list[DomainRow] = []
        # SQLite caps bound parameters per statement; query in slices.
        step = 500
        for i in range(0, len(wanted), step):
            chunk = wanted[i : i + step]
            placeholders = ",".join("?" for _ in chunk)
            rows = conn.execute(
                f"""
                SELECT domain, expiry_date, tgsend, st_tgsend
                FROM domains
                WHERE (tgsend = 1 OR st_tgsend = 1) AND domain IN ({placeholders})
                ORDER BY id
                """,
                chunk,
            ).fetchall()
            for r in rows:
                out.append(
                    DomainRow(
                        domain=_row_str(r, "domain"),
                        expiry_date=_row_str(r, "expiry_date"),
                        tgsend=_row_int(r, "tgsend"),
                        st_tgsend=_row_int(r, "st_tgsend"),
                    )
                )
        return out
    finally:
        conn.close()


def update_domain_status(settings: ServiceSettings, *, domain: str, status: str) -> bool:
    if status not in {STATUS_ONLINE, STATUS_OFFLINE}:
        raise ValueError(f"invalid status: {status!r}")
    conn = _connect(settings.db_path)
    try:
        _ensure_schema_conn(conn)
        cur = conn.execute(
            "UPDATE domains SET status=?, status_updated_at_ts=? WHERE domain=?",
            (status, _utc_ts(), domain),
        )
        return int(cur.rowcount or 0) > 0
    finally:
        conn.close()


def get_domain(settings: ServiceSettings, *, domain: str) -> dict[str, Any] | None:
    conn = _connect(settings.db_path)
    try:
        _ensure_schema_conn(conn)
        row = conn.execute("SELECT * FROM domains WHERE domain=?", (domain,)).fetchone()
        return dict(row) if row is not None else None
    finally:
        conn.close()
