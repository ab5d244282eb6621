from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Sequence, TypeVar

from app.ai.factory import get_ai_client
from app.ai.prompts import (
    analysis_messages,
    career_map_messages,
    job_match_messages,
    rewrite_messages,
    tailor_messages,
)
from app.ai.types import AIClient, ChatMessage, ProviderError
from app.core.config import settings
from app.core.errors import internal_error
from app.normalize.provider_response import (
    normalize_analysis,
    normalize_career_map,
    normalize_job_match,
    normalize_rewrite,
    normalize_tailoring,
)
from app.normalize.utils import MalformedProviderResponse
from app.schemas.analysis import (
    AnalysisOutcome,
    CareerMapResult,
    JobMatchResult,
    RewriteResult,
    TailoringResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def provide_ai_client() -> AIClient:
    try:
        return get_ai_client()
    except ProviderError as exc:
        logger.error("provider_not_available code=%s: %s", exc.code, exc)
        raise internal_error("Analysis service is not available. Please try again later.") from exc


def _truncate(raw: str) -> str:
    limit = max(0, settings.log_payload_max_chars)
    text = raw or ""
    return text if len(text) <= limit else text[:limit] + "..."


async def _complete(client: AIClient, messages: Sequence[ChatMessage], *, route: str) -> str:
    started = time.perf_counter()
    try:
        raw = await asyncio.wait_for(client.complete(messages), timeout=settings.provider_timeout_s)
    except asyncio.TimeoutError as exc:
        logger.error(
            "provider_call_timeout route=%s provider=%s timeout_s=%s",
            route,
            getattr(client, "name", "unknown"),
            settings.provider_timeout_s,
        )
        raise ProviderError("Provider call timed out.", code="provider_timeout") from exc
    except ProviderError:
        logger.error(
            "provider_call_failed route=%s provider=%s latency_ms=%s",
            route,
            getattr(client, "name", "unknown"),
            int((time.perf_counter() - started) * 1000),
            exc_info=True,
        )
        raise
    except Exception as exc:  # noqa: BLE001 - SDK errors are wrapped for the route
        logger.error(
            "provider_call_failed route=%s provider=%s latency_ms=%s: %s",
            route,
            getattr(client, "name", "unknown"),
            int((time.perf_counter() - started) * 1000),
            exc,
        )
        raise ProviderError(str(exc) or exc.__class__.__name__) from exc

    logger.info(
        "provider_call_ok route=%s provider=%s latency_ms=%s chars=%s",
        route,
        getattr(client, "name", "unknown"),
        int((time.perf_counter() - started) * 1000),
        len(raw or ""),
    )
    return raw


def _normalize(raw: str, normalizer: Callable[[str], T], *, route: str) -> T:
    try:
        return normalizer(raw)
    except MalformedProviderResponse as exc:
        logger.error("provider_response_malformed route=%s reason=%s payload=%s", route, exc, _truncate(raw))
        raise


async def analyze_resume(client: AIClient, resume_text: str) -> AnalysisOutcome:
    raw = await _complete(client, analysis_messages(resume_text), route="analyze")
    return _normalize(raw, normalize_analysis, route="analyze")


async def match_job(client: AIClient, resume_text: str, job_description: str) -> JobMatchResult:
    raw = await _complete(client, job_match_messages(resume_text, job_description), route="job-match")
    return _normalize(raw, normalize_job_match, route="job-match")


async def tailor_resume(client: AIClient, resume_text: str, job_description: str) -> TailoringResult:
    raw = await _complete(client, tailor_messages(resume_text, job_description), route="tailor")
    return _normalize(raw, normalize_tailoring, route="tailor")


async def map_career(client: AIClient, resume_text: str) -> CareerMapResult:
    raw = await _complete(client, career_map_messages(resume_text), route="career-map")
    return _normalize(raw, normalize_career_map, route="career-map")


async def rewrite_text(client: AIClient, original_text: str, job_description: str) -> RewriteResult:
    raw = await _complete(client, rewrite_messages(original_text, job_description), route="rewrite")
    return _normalize(
        raw,
        lambda text: normalize_rewrite(text, original_text=original_text),
        route="rewrite",
    )
