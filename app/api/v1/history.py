import logging

from fastapi import APIRouter, Depends, Query, status

from app.core.admission import AuthenticatedPass, require_user
from app.core.errors import bad_request, conflict, internal_error, not_found
from app.history import db as history_db
from app.normalize.provider_response import build_analysis
from app.normalize.utils import MalformedProviderResponse
from app.schemas.history import (
    DeleteAllResponse,
    DeleteEntryResponse,
    ExperienceProgression,
    HistoryCreateRequest,
    HistoryEntry,
    HistoryListResponse,
    HistorySummary,
    Pagination,
    SkillTrends,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _store_failure(action: str, user: AuthenticatedPass, exc: Exception):
    logger.error("history_%s_failed user=%s: %s", action, user.user_id, exc)
    return internal_error("Unable to access analysis history. Please try again.")


@router.get("/history", response_model=HistoryListResponse)
def list_history(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: AuthenticatedPass = Depends(require_user),
):
    try:
        rows, total = history_db.list_history(user.user_id, limit=limit, offset=offset)
    except history_db.HistoryStoreError as exc:
        raise _store_failure("list", user, exc) from exc
    return HistoryListResponse(
        data=[HistoryEntry(**row) for row in rows],
        pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + len(rows) < total),
    )


@router.get("/history/summary", response_model=HistorySummary)
def history_summary(user: AuthenticatedPass = Depends(require_user)):
    try:
        return history_db.get_summary(user.user_id)
    except history_db.HistoryStoreError as exc:
        raise _store_failure("summary", user, exc) from exc


@router.get("/history/skill-trends", response_model=SkillTrends)
def skill_trends(user: AuthenticatedPass = Depends(require_user)):
    try:
        return history_db.get_skill_trends(user.user_id)
    except history_db.HistoryStoreError as exc:
        raise _store_failure("skill_trends", user, exc) from exc


@router.get("/history/progression", response_model=ExperienceProgression)
def progression(user: AuthenticatedPass = Depends(require_user)):
    try:
        return history_db.get_experience_progression(user.user_id)
    except history_db.HistoryStoreError as exc:
        raise _store_failure("progression", user, exc) from exc


@router.get("/history/{entry_id}", response_model=HistoryEntry)
def get_entry(entry_id: str, user: AuthenticatedPass = Depends(require_user)):
    try:
        row = history_db.get_history_entry(entry_id, user.user_id)
    except history_db.HistoryStoreError as exc:
        raise _store_failure("get", user, exc) from exc
    if row is None:
        raise not_found("Analysis not found.")
    return row


@router.post("/history", response_model=HistoryEntry, status_code=status.HTTP_201_CREATED)
def create_entry(payload: HistoryCreateRequest, user: AuthenticatedPass = Depends(require_user)):
    try:
        analysis = build_analysis(payload.analysis)
    except MalformedProviderResponse as exc:
        raise bad_request(str(exc), error="Invalid analysis data") from exc

    try:
        return history_db.record_analysis(
            entry_id=payload.id,
            user_id=user.user_id,
            resume_text=payload.resume_text,
            analysis=analysis,
        )
    except history_db.HistoryConflictError as exc:
        raise conflict("An analysis with this id already exists.") from exc
    except history_db.HistoryStoreError as exc:
        raise _store_failure("create", user, exc) from exc


@router.delete("/history/{entry_id}", response_model=DeleteEntryResponse)
def delete_entry(entry_id: str, user: AuthenticatedPass = Depends(require_user)):
    try:
        deleted = history_db.delete_history_entry(entry_id, user.user_id)
    except history_db.HistoryStoreError as exc:
        raise _store_failure("delete", user, exc) from exc
    if not deleted:
        raise not_found("Analysis not found.")
    return DeleteEntryResponse(success=True, message="Analysis deleted successfully.")


@router.delete("/history", response_model=DeleteAllResponse)
def delete_all(user: AuthenticatedPass = Depends(require_user)):
    try:
        deleted = history_db.delete_all_history(user.user_id)
    except history_db.HistoryStoreError as exc:
        raise _store_failure("delete_all", user, exc) from exc
    return DeleteAllResponse(success=True, deleted_count=deleted)
