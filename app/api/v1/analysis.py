import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from app.ai.types import AIClient, ProviderError
from app.core.admission import AuthenticatedPass, RoutePolicy, admit, enforce, require_user
from app.core.errors import ApiError, bad_request, conflict, internal_error
from app.core.rate_limit import rate_limit
from app.core.security import SessionVerifier, get_session_verifier
from app.history.db import HistoryConflictError, HistoryStoreError, record_analysis
from app.normalize.utils import MalformedProviderResponse
from app.schemas.analysis import (
    NOT_A_RESUME,
    AnalysisSuccess,
    AnalyzeRequest,
    AuthenticatedAnalysisResponse,
    CareerMapRequest,
    GuestAnalysisResponse,
    NotAResume,
    ResumeJobRequest,
    RewriteRequest,
)
from app.services.analysis_service import (
    analyze_resume,
    map_career,
    match_job,
    provide_ai_client,
    rewrite_text,
    tailor_resume,
)

logger = logging.getLogger(__name__)

router = APIRouter()

GUEST_RESULT_MESSAGE = "This was your free analysis. Login to analyze more resumes and save your history."


def _provider_failure(exc: Exception, *, error: str, message: str) -> ApiError:
    if isinstance(exc, ProviderError):
        logger.warning("provider_failure code=%s: %s", exc.code, exc)
    return internal_error(message, error=error)


async def _record(user: AuthenticatedPass, entry_id: str, resume_text: str, analysis: AnalysisSuccess) -> str:
    try:
        row = await run_in_threadpool(
            record_analysis,
            entry_id=entry_id,
            user_id=user.user_id,
            resume_text=resume_text,
            analysis=analysis,
        )
    except HistoryConflictError as exc:
        raise conflict("An analysis with this id already exists.") from exc
    except HistoryStoreError as exc:
        logger.error("history_record_failed user=%s entry=%s: %s", user.user_id, entry_id, exc)
        raise internal_error("Failed to save analysis history.") from exc
    return row["id"]


@router.post("/analyze")
@rate_limit()
async def analyze(
    request: Request,
    payload: AnalyzeRequest,
    verifier: SessionVerifier = Depends(get_session_verifier),
    client: AIClient = Depends(provide_ai_client),
):
    # Body is already validated here, so rejected input never consumes quota.
    admitted = enforce(await run_in_threadpool(admit, request, RoutePolicy.GUEST_ALLOWED, verifier))

    try:
        outcome = await analyze_resume(client, payload.resume_text)
    except (ProviderError, MalformedProviderResponse) as exc:
        raise _provider_failure(
            exc,
            error="Analysis failed",
            message="Failed to analyze resume. Please try again.",
        ) from exc

    if isinstance(outcome, NotAResume):
        raise bad_request(outcome.message, error=NOT_A_RESUME, detectedType=outcome.detected_type)

    if isinstance(admitted, AuthenticatedPass):
        history_id = None
        if payload.analysis_id:
            history_id = await _record(admitted, payload.analysis_id, payload.resume_text, outcome)
        response = AuthenticatedAnalysisResponse(**outcome.model_dump(), history_id=history_id)
        return response.model_dump(by_alias=True)

    logger.info("guest_analysis_served guest=%s remaining=%s", admitted.guest_id, admitted.remaining)
    response = GuestAnalysisResponse(
        **outcome.model_dump(),
        is_guest=True,
        guest_id=admitted.guest_id,
        remaining_analyses=admitted.remaining,
        message=GUEST_RESULT_MESSAGE,
    )
    return response.model_dump(by_alias=True)


@router.post("/job-match")
@rate_limit()
async def job_match(
    request: Request,
    payload: ResumeJobRequest,
    user: AuthenticatedPass = Depends(require_user),
    client: AIClient = Depends(provide_ai_client),
):
    try:
        result = await match_job(client, payload.resume_text, payload.job_description)
    except (ProviderError, MalformedProviderResponse) as exc:
        raise _provider_failure(exc, error="Job match failed", message="Failed to match job. Please try again.") from exc
    return result.model_dump(by_alias=True)


@router.post("/tailor")
@rate_limit()
async def tailor(
    request: Request,
    payload: ResumeJobRequest,
    user: AuthenticatedPass = Depends(require_user),
    client: AIClient = Depends(provide_ai_client),
):
    try:
        result = await tailor_resume(client, payload.resume_text, payload.job_description)
    except (ProviderError, MalformedProviderResponse) as exc:
        raise _provider_failure(
            exc,
            error="Tailoring failed",
            message="Failed to tailor resume. Please try again.",
        ) from exc
    return result.model_dump(by_alias=True)


@router.post("/career-map")
@rate_limit()
async def career_map(
    request: Request,
    payload: CareerMapRequest,
    user: AuthenticatedPass = Depends(require_user),
    client: AIClient = Depends(provide_ai_client),
):
    try:
        result = await map_career(client, payload.resume_text)
    except (ProviderError, MalformedProviderResponse) as exc:
        raise _provider_failure(
            exc,
            error="Career map failed",
            message="Failed to generate career map. Please try again.",
        ) from exc
    return result.model_dump(by_alias=True)


@router.post("/rewrite")
@rate_limit()
async def rewrite(
    request: Request,
    payload: RewriteRequest,
    user: AuthenticatedPass = Depends(require_user),
    client: AIClient = Depends(provide_ai_client),
):
    try:
        result = await rewrite_text(client, payload.original_text, payload.job_description)
    except (ProviderError, MalformedProviderResponse) as exc:
        raise _provider_failure(exc, error="Rewrite failed", message="Failed to rewrite text. Please try again.") from exc
    return result.model_dump(by_alias=True)
