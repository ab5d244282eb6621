from __future__ import annotations

import json
import logging
import sqlite3
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from app.core.config import settings
from app.history.sanitize import (
    sanitize_ats_score,
    sanitize_overall_score,
    sanitize_score,
    sanitize_text,
    sanitize_text_list,
    sanitize_years,
)
from app.schemas.analysis import AnalysisSuccess

logger = logging.getLogger(__name__)

SCORE_TREND_POINTS = 20
SKILL_TREND_LIMIT = 20

_COLUMNS = (
    "id, user_id, resume_text, education_score, leadership_score, overall_score, "
    "experience_level, years_of_experience, missing_skills, suggestions, full_analysis, created_at"
)


class HistoryStoreError(RuntimeError):
    pass


class HistoryConflictError(HistoryStoreError):
    pass


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _get_db_path() -> Path:
    return Path(settings.history_db_path)


@contextmanager
def _connect() -> Iterator[sqlite3.Connection]:
    db_path = _get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=5)
    try:
        _ensure_schema(conn)
        yield conn
        conn.commit()
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        raise HistoryConflictError("History entry already exists.") from exc
    except sqlite3.Error as exc:
        conn.rollback()
        raise HistoryStoreError(f"History store failure: {exc}") from exc
    finally:
        conn.close()


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS analysis_history (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            resume_text TEXT NOT NULL,
            education_score INTEGER NOT NULL,
            leadership_score INTEGER NOT NULL,
            overall_score REAL NOT NULL,
            experience_level TEXT,
            years_of_experience INTEGER NOT NULL DEFAULT 0,
            missing_skills TEXT NOT NULL DEFAULT '[]',
            suggestions TEXT NOT NULL DEFAULT '[]',
            full_analysis TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_analysis_history_user_created
        ON analysis_history (user_id, created_at)
        """
    )


def init_db() -> None:
    with _connect():
        pass


def _row_to_dict(cursor: sqlite3.Cursor, row: tuple) -> dict[str, Any]:
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def _decode_entry(record: dict[str, Any]) -> dict[str, Any]:
    for key in ("missing_skills", "suggestions"):
        record[key] = json.loads(record[key]) if record.get(key) else []
    record["full_analysis"] = json.loads(record["full_analysis"]) if record.get("full_analysis") else {}
    return record


def sanitize_analysis(analysis: AnalysisSuccess) -> dict[str, Any]:
    """Camel-cased copy of ``analysis`` with every score forced into range."""
    data = analysis.model_dump(by_alias=True)
    data["overallScore"] = sanitize_overall_score(analysis.overall_score)
    data["dimensionScores"] = {
        key: sanitize_score(value) for key, value in data["dimensionScores"].items()
    }
    data["yearsOfExperience"] = sanitize_years(analysis.years_of_experience)
    data["atsCompatibility"] = {
        "score": sanitize_ats_score(analysis.ats_compatibility.score),
        "issues": sanitize_text_list(analysis.ats_compatibility.issues),
    }
    for key in ("strengths", "improvements", "missingSkills", "redFlags", "achievements"):
        data[key] = sanitize_text_list(data.get(key))
    data["detectedSkills"] = {
        group: sanitize_text_list(values) for group, values in data["detectedSkills"].items()
    }
    data["recommendations"] = {
        group: sanitize_text_list(values) for group, values in data["recommendations"].items()
    }
    for key in ("experienceLevel", "hiringRecommendation", "summary"):
        data[key] = sanitize_text(data.get(key))
    return data


def record_analysis(
    *,
    entry_id: str,
    user_id: str,
    resume_text: str,
    analysis: AnalysisSuccess,
) -> dict[str, Any]:
    full_analysis = sanitize_analysis(analysis)
    row = {
        "id": entry_id,
        "user_id": user_id,
        "resume_text": sanitize_text(resume_text),
        "education_score": full_analysis["dimensionScores"]["education"],
        "leadership_score": full_analysis["dimensionScores"]["leadership"],
        "overall_score": full_analysis["overallScore"],
        "experience_level": full_analysis["experienceLevel"],
        "years_of_experience": full_analysis["yearsOfExperience"],
        "missing_skills": full_analysis["missingSkills"],
        "suggestions": full_analysis["improvements"],
        "full_analysis": full_analysis,
        "created_at": _utc_now(),
    }
    with _connect() as conn:
        conn.execute(
            f"""
            INSERT INTO analysis_history ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                row["id"],
                row["user_id"],
                row["resume_text"],
                row["education_score"],
                row["leadership_score"],
                row["overall_score"],
                row["experience_level"],
                row["years_of_experience"],
                json.dumps(row["missing_skills"], ensure_ascii=False),
                json.dumps(row["suggestions"], ensure_ascii=False),
                json.dumps(row["full_analysis"], ensure_ascii=False),
                row["created_at"],
            ),
        )
    logger.info("history_recorded user=%s entry=%s", user_id, row["id"])
    return row


def list_history(user_id: str, limit: int = 50, offset: int = 0) -> tuple[list[dict[str, Any]], int]:
    with _connect() as conn:
        total = conn.execute(
            "SELECT COUNT(*) FROM analysis_history WHERE user_id = ?",
            (user_id,),
        ).fetchone()[0]
        cur = conn.execute(
            f"""
            SELECT {_COLUMNS}
            FROM analysis_history
            WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ? OFFSET ?
            """,
            (user_id, limit, offset),
        )
        rows = [_decode_entry(_row_to_dict(cur, row)) for row in cur.fetchall()]
    return rows, int(total or 0)


def get_history_entry(entry_id: str, user_id: str) -> dict[str, Any] | None:
    with _connect() as conn:
        cur = conn.execute(
            f"SELECT {_COLUMNS} FROM analysis_history WHERE id = ? AND user_id = ?",
            (entry_id, user_id),
        )
        row = cur.fetchone()
        if not row:
            return None
        return _decode_entry(_row_to_dict(cur, row))


def delete_history_entry(entry_id: str, user_id: str) -> bool:
    with _connect() as conn:
        cur = conn.execute(
            "DELETE FROM analysis_history WHERE id = ? AND user_id = ?",
            (entry_id, user_id),
        )
        return (cur.rowcount or 0) > 0


def delete_all_history(user_id: str) -> int:
    with _connect() as conn:
        cur = conn.execute("DELETE FROM analysis_history WHERE user_id = ?", (user_id,))
        deleted = int(cur.rowcount or 0)
    logger.info("history_cleared user=%s deleted=%s", user_id, deleted)
    return deleted


def get_summary(user_id: str) -> dict[str, Any]:
    with _connect() as conn:
        total, latest, average = conn.execute(
            """
            SELECT COUNT(*), MAX(created_at), AVG(overall_score)
            FROM analysis_history
            WHERE user_id = ?
            """,
            (user_id,),
        ).fetchone()
        cur = conn.execute(
            """
            SELECT created_at AS date, overall_score AS score
            FROM analysis_history
            WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (user_id, SCORE_TREND_POINTS),
        )
        trend = [_row_to_dict(cur, row) for row in cur.fetchall()]
    trend.reverse()
    return {
        "total_analyses": int(total or 0),
        "latest_analysis": latest,
        "average_score": round(float(average), 1) if average is not None else 0.0,
        "score_trend": trend,
    }


def get_skill_trends(user_id: str, limit: int = SKILL_TREND_LIMIT) -> dict[str, Any]:
    with _connect() as conn:
        rows = conn.execute(
            "SELECT full_analysis FROM analysis_history WHERE user_id = ?",
            (user_id,),
        ).fetchall()

    counts: Counter[str] = Counter()
    spelling: dict[str, str] = {}
    for (payload,) in rows:
        analysis = json.loads(payload) if payload else {}
        skills = analysis.get("detectedSkills") or {}
        seen: set[str] = set()
        for skill in (skills.get("technical") or []) + (skills.get("soft") or []):
            key = str(skill).strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            spelling.setdefault(key, str(skill).strip())
            counts[key] += 1

    trends = [{"skill": spelling[key], "frequency": count} for key, count in counts.most_common(limit)]
    return {"trends": trends}


def get_experience_progression(user_id: str) -> dict[str, Any]:
    with _connect() as conn:
        cur = conn.execute(
            """
            SELECT created_at AS date, experience_level, years_of_experience, overall_score AS score
            FROM analysis_history
            WHERE user_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (user_id,),
        )
        progression = [_row_to_dict(cur, row) for row in cur.fetchall()]
    return {"progression": progression}


def clear_history() -> None:
    with _connect() as conn:
        conn.execute("DELETE FROM analysis_history")
