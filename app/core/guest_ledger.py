from __future__ import annotations

import logging
import os
import secrets
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.core.config import settings
from app.core.identity import GuestIdentity

logger = logging.getLogger(__name__)

LIMIT_REACHED_MESSAGE = (
    "You've reached your free resume analysis limit. Please login to analyze more resumes."
)
LEDGER_UNAVAILABLE_MESSAGE = "Unable to verify guest usage. Please try again or login."

_conn: sqlite3.Connection | None = None
_conn_lock = threading.Lock()


@dataclass(frozen=True)
class GuestUsageResult:
    allowed: bool
    guest_id: str | None = None
    analysis_count: int = 0
    message: str | None = None
    error_code: str | None = None

    @property
    def remaining(self) -> int:
        return max(0, settings.guest_analysis_quota - self.analysis_count)


@dataclass(frozen=True)
class GuestUsageRecord:
    id: str
    ip_address: str
    mac_address: str | None
    user_agent: str | None
    analysis_count: int
    last_analysis_at: datetime
    created_at: datetime
    updated_at: datetime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _get_connection() -> sqlite3.Connection:
    global _conn
    with _conn_lock:
        if _conn is not None:
            return _conn

        db_path = settings.guest_usage_db_path
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        _conn = sqlite3.connect(
            db_path,
            check_same_thread=False,
            timeout=5,
            isolation_level=None,
        )
        _conn.execute("PRAGMA journal_mode=WAL;")
        _conn.execute("PRAGMA synchronous=NORMAL;")
        _conn.execute("PRAGMA busy_timeout=5000;")
        _conn.execute(
            """
            CREATE TABLE IF NOT EXISTS guest_usage (
                id TEXT PRIMARY KEY,
                ip_address TEXT NOT NULL,
                mac_address TEXT,
                user_agent TEXT,
                analysis_count INTEGER NOT NULL DEFAULT 0 CHECK (analysis_count >= 0),
                last_analysis_at TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        _conn.execute("CREATE INDEX IF NOT EXISTS idx_guest_usage_ip ON guest_usage (ip_address);")
        _conn.execute("CREATE INDEX IF NOT EXISTS idx_guest_usage_mac ON guest_usage (mac_address);")
        _conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_guest_usage_last_analysis ON guest_usage (last_analysis_at);"
        )
        return _conn


def _find_matching(cursor: sqlite3.Cursor, identity: GuestIdentity) -> tuple[str, int] | None:
    # Either signal matching counts as the same guest.
    cursor.execute(
        """
        SELECT id, analysis_count
        FROM guest_usage
        WHERE ip_address = ? OR (mac_address IS NOT NULL AND mac_address = ?)
        ORDER BY last_analysis_at DESC
        LIMIT 1
        """,
        (identity.network_address, identity.hardware_tag),
    )
    row = cursor.fetchone()
    if not row:
        return None
    return str(row[0]), int(row[1] or 0)


def _new_guest_id() -> str:
    return f"guest_{secrets.token_hex(8)}"


def _consume(identity: GuestIdentity, quota: int) -> GuestUsageResult:
    conn = _get_connection()
    now_iso = _utc_now().isoformat()

    with _conn_lock:
        cursor = conn.cursor()
        cursor.execute("BEGIN IMMEDIATE")
        try:
            match = _find_matching(cursor, identity)
            if match is None:
                guest_id = _new_guest_id()
                cursor.execute(
                    """
                    INSERT INTO guest_usage (
                        id, ip_address, mac_address, user_agent, analysis_count,
                        last_analysis_at, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, 1, ?, ?, ?)
                    """,
                    (
                        guest_id,
                        identity.network_address,
                        identity.hardware_tag,
                        identity.user_agent,
                        now_iso,
                        now_iso,
                        now_iso,
                    ),
                )
                conn.commit()
                return GuestUsageResult(allowed=True, guest_id=guest_id, analysis_count=1)

            guest_id, count = match
            if count >= quota:
                conn.rollback()
                return GuestUsageResult(
                    allowed=False,
                    guest_id=guest_id,
                    analysis_count=count,
                    message=LIMIT_REACHED_MESSAGE,
                    error_code="limit_reached",
                )

            cursor.execute(
                """
                UPDATE guest_usage
                SET analysis_count = analysis_count + 1,
                    last_analysis_at = ?,
                    updated_at = ?
                WHERE id = ? AND analysis_count < ?
                """,
                (now_iso, now_iso, guest_id, quota),
            )
            if cursor.rowcount != 1:
                conn.rollback()
                return GuestUsageResult(
                    allowed=False,
                    guest_id=guest_id,
                    analysis_count=count,
                    message=LIMIT_REACHED_MESSAGE,
                    error_code="limit_reached",
                )
            conn.commit()
            return GuestUsageResult(allowed=True, guest_id=guest_id, analysis_count=count + 1)
        except Exception:
            conn.rollback()
            raise


def check_and_consume(identity: GuestIdentity, quota: int | None = None) -> GuestUsageResult:
    """Atomically admit one anonymous analysis for ``identity`` or refuse it.

    The lookup, the cap check and the increment run inside a single
    ``BEGIN IMMEDIATE`` transaction, so concurrent callers racing for the last
    slot are serialised by SQLite's write lock. Any storage failure refuses
    the request.
    """
    limit = settings.guest_analysis_quota if quota is None else quota
    try:
        return _consume(identity, limit)
    except Exception as exc:  # noqa: BLE001 - storage failures must refuse admission
        logger.error(
            "guest_ledger_failed ip=%s tag=%s: %s",
            identity.network_address,
            identity.hardware_tag or "-",
            exc,
        )
        return GuestUsageResult(
            allowed=False,
            message=LEDGER_UNAVAILABLE_MESSAGE,
            error_code="ledger_unavailable",
        )


def peek_usage(identity: GuestIdentity, quota: int | None = None) -> GuestUsageResult:
    """Read-only variant of :func:`check_and_consume`; storage errors propagate."""
    limit = settings.guest_analysis_quota if quota is None else quota
    conn = _get_connection()
    with _conn_lock:
        match = _find_matching(conn.cursor(), identity)
    if match is None:
        return GuestUsageResult(allowed=True)
    guest_id, count = match
    if count >= limit:
        return GuestUsageResult(
            allowed=False,
            guest_id=guest_id,
            analysis_count=count,
            message=LIMIT_REACHED_MESSAGE,
            error_code="limit_reached",
        )
    return GuestUsageResult(allowed=True, guest_id=guest_id, analysis_count=count)


def get_guest(guest_id: str) -> GuestUsageRecord | None:
    conn = _get_connection()
    with _conn_lock:
        cur = conn.execute(
            """
            SELECT id, ip_address, mac_address, user_agent, analysis_count,
                   last_analysis_at, created_at, updated_at
            FROM guest_usage
            WHERE id = ?
            """,
            (guest_id,),
        )
        row = cur.fetchone()
    if not row:
        return None
    return GuestUsageRecord(
        id=row[0],
        ip_address=row[1],
        mac_address=row[2],
        user_agent=row[3],
        analysis_count=int(row[4]),
        last_analysis_at=datetime.fromisoformat(row[5]),
        created_at=datetime.fromisoformat(row[6]),
        updated_at=datetime.fromisoformat(row[7]),
    )


def purge_stale_guests(retention_days: int | None = None) -> int:
    days = max(1, int(settings.guest_retention_days if retention_days is None else retention_days))
    cutoff = (_utc_now() - timedelta(days=days)).isoformat()
    conn = _get_connection()
    with _conn_lock:
        cur = conn.execute("DELETE FROM guest_usage WHERE last_analysis_at < ?", (cutoff,))
        conn.commit()
    return int(cur.rowcount or 0)


def clear_guest_usage() -> None:
    conn = _get_connection()
    with _conn_lock:
        conn.execute("DELETE FROM guest_usage")
        conn.commit()
