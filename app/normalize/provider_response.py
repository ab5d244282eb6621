"""Turn raw provider text into validated, typed results.

The provider is asked for bare JSON but is not trusted to deliver it. Every
normalizer strips wrapping, parses, checks the fields downstream code relies
on and fills absent arrays with ``[]``. Closed-set values outside their set are
passed through for display; numeric ranges are corrected only when a result
is persisted (see ``app.history.sanitize``).
"""

from __future__ import annotations

from typing import Any

from app.core.config.scoring import get_enum, get_scoring_value
from app.normalize.utils import (
    MalformedProviderResponse,
    as_mapping,
    as_mapping_list,
    as_str_list,
    as_text,
    check_enum,
    first_present,
    optional_number,
    parse_object,
    require_number,
)
from app.schemas.analysis import (
    AnalysisOutcome,
    AnalysisSuccess,
    AtsCompatibility,
    CareerMapResult,
    CareerPath,
    CareerPathStep,
    DetectedSkills,
    DimensionScores,
    ExperienceGap,
    JobMatchResult,
    KeywordAnalysis,
    MatchSuggestion,
    MissingSkillGroups,
    NotAResume,
    PresentSkillGroups,
    Recommendations,
    RewriteAtsScore,
    RewriteResult,
    RewriteVariation,
    TailoredBullet,
    TailoringResult,
)

DEFAULT_NOT_A_RESUME_MESSAGE = (
    "This document doesn't appear to be a professional resume. "
    "Please upload a valid resume containing your work experience, education, and skills."
)

_DIMENSION_FIELDS = {
    "technicalSkills": "technical_skills",
    "experience": "experience",
    "presentation": "presentation",
    "education": "education",
    "leadership": "leadership",
}


def _sentinel() -> str:
    return str(get_scoring_value("analysis.not_a_resume_sentinel", "NOT_A_RESUME"))


def build_analysis(payload: dict[str, Any]) -> AnalysisSuccess:
    """Validate an already-parsed analysis object against the success shape."""
    if not isinstance(payload, dict):
        raise MalformedProviderResponse("Analysis must be a JSON object.")
    context = "analysis"

    raw_scores = as_mapping(first_present(payload, "dimensionScores", "scores"))
    if not raw_scores:
        raise MalformedProviderResponse("analysis: 'dimensionScores' must be an object.")
    dimensions = {
        attr: require_number(raw_scores, key, context="analysis.dimensionScores")
        for key, attr in _DIMENSION_FIELDS.items()
    }

    detected = as_mapping(payload.get("detectedSkills"))
    recommendations = as_mapping(payload.get("recommendations"))
    ats = as_mapping(payload.get("atsCompatibility"))

    return AnalysisSuccess(
        overall_score=require_number(payload, "overallScore", context=context),
        dimension_scores=DimensionScores(**dimensions),
        experience_level=check_enum(
            payload.get("experienceLevel"),
            get_enum("analysis.enums.experience_level"),
            field="experienceLevel",
            context=context,
        ),
        years_of_experience=require_number(payload, "yearsOfExperience", context=context),
        strengths=as_str_list(first_present(payload, "strengths", "strengthAreas")),
        improvements=as_str_list(first_present(payload, "improvements", "improvementAreas")),
        missing_skills=as_str_list(payload.get("missingSkills")),
        red_flags=as_str_list(payload.get("redFlags")),
        detected_skills=DetectedSkills(
            technical=as_str_list(detected.get("technical")),
            soft=as_str_list(detected.get("soft")),
        ),
        achievements=as_str_list(first_present(payload, "achievements", "keyAchievements")),
        recommendations=Recommendations(
            immediate=as_str_list(recommendations.get("immediate")),
            short_term=as_str_list(recommendations.get("shortTerm")),
            long_term=as_str_list(recommendations.get("longTerm")),
        ),
        ats_compatibility=AtsCompatibility(
            score=optional_number(ats.get("score")),
            issues=as_str_list(ats.get("issues")),
        ),
        hiring_recommendation=check_enum(
            payload.get("hiringRecommendation"),
            get_enum("analysis.enums.hiring_recommendation"),
            field="hiringRecommendation",
            context=context,
        ),
        summary=as_text(payload.get("summary")),
    )


def normalize_analysis(raw: str) -> AnalysisOutcome:
    payload = parse_object(raw)
    if payload.get("error") == _sentinel():
        message = payload.get("message")
        detected_type = payload.get("detectedType", payload.get("detected_type"))
        return NotAResume(
            message=message if isinstance(message, str) and message else DEFAULT_NOT_A_RESUME_MESSAGE,
            detected_type=detected_type if isinstance(detected_type, str) else None,
        )
    try:
        return build_analysis(payload)
    except MalformedProviderResponse as exc:
        exc.raw = raw
        raise


def normalize_job_match(raw: str) -> JobMatchResult:
    payload = parse_object(raw)
    context = "job_match"
    missing = as_mapping(payload.get("missingSkills"))
    present = as_mapping(payload.get("presentSkills"))
    keywords = as_mapping(payload.get("keyword_analysis"))
    gap = as_mapping(payload.get("experience_gap"))
    priorities = get_enum("job_match.enums.priority")

    suggestions = [
        MatchSuggestion(
            priority=check_enum(item.get("priority"), priorities, field="suggestions.priority", context=context),
            category=as_text(item.get("category")),
            action=as_text(item.get("action")),
        )
        for item in as_mapping_list(payload.get("suggestions"))
    ]

    try:
        match_percentage = require_number(payload, "matchPercentage", context=context)
    except MalformedProviderResponse as exc:
        exc.raw = raw
        raise

    return JobMatchResult(
        match_percentage=match_percentage,
        match_level=check_enum(
            payload.get("matchLevel"),
            get_enum("job_match.enums.match_level"),
            field="matchLevel",
            context=context,
        ),
        missing_skills=MissingSkillGroups(
            critical=as_str_list(missing.get("critical")),
            important=as_str_list(missing.get("important")),
            nice_to_have=as_str_list(missing.get("nice_to_have")),
        ),
        present_skills=PresentSkillGroups(
            exact_matches=as_str_list(present.get("exact_matches")),
            partial_matches=as_str_list(present.get("partial_matches")),
            transferable_skills=as_str_list(present.get("transferable_skills")),
        ),
        suggestions=suggestions,
        keyword_analysis=KeywordAnalysis(
            total_keywords=optional_number(keywords.get("total_keywords")),
            matched_keywords=optional_number(keywords.get("matched_keywords")),
            missing_keywords=as_str_list(keywords.get("missing_keywords")),
        ),
        experience_gap=ExperienceGap(
            required_years=optional_number(gap.get("required_years")),
            candidate_years=optional_number(gap.get("candidate_years")),
            gap=optional_number(gap.get("gap")),
            assessment=as_text(gap.get("assessment")),
        ),
        recommendation=as_text(payload.get("recommendation")),
    )


def normalize_tailoring(raw: str) -> TailoringResult:
    payload = parse_object(raw)
    context = "tailor"
    try:
        before = require_number(payload, "atsScoreBefore", context=context)
        after = require_number(payload, "atsScoreAfter", context=context)
    except MalformedProviderResponse as exc:
        exc.raw = raw
        raise

    bullets = [
        TailoredBullet(
            original=as_text(item.get("original")),
            tailored=as_text(item.get("tailored")),
            keywords_added=as_str_list(item.get("keywordsAdded")),
        )
        for item in as_mapping_list(payload.get("tailoredBullets"))
    ]
    return TailoringResult(
        tailored_summary=as_text(payload.get("tailoredSummary")),
        tailored_bullets=bullets,
        keywords_added=as_str_list(payload.get("keywordsAdded")),
        ats_score_before=before,
        ats_score_after=after,
        recommendations=as_str_list(payload.get("recommendations")),
    )


def normalize_career_map(raw: str) -> CareerMapResult:
    payload = parse_object(raw)
    context = "career_map"
    if not isinstance(payload.get("paths"), list):
        raise MalformedProviderResponse("career_map: 'paths' must be a list.", raw=raw)

    difficulties = get_enum("career_map.enums.difficulty")
    statuses = get_enum("career_map.enums.step_status")
    paths = []
    for item in as_mapping_list(payload.get("paths")):
        steps = [
            CareerPathStep(
                role=as_text(step.get("role")),
                status=check_enum(step.get("status"), statuses, field="steps.status", context=context),
                skills_needed=as_str_list(step.get("skills_needed")),
                timeframe=as_text(step.get("timeframe")) or None,
                salary_range=as_text(step.get("salary_range")) or None,
            )
            for step in as_mapping_list(item.get("steps"))
        ]
        paths.append(
            CareerPath(
                name=as_text(item.get("name")),
                description=as_text(item.get("description")),
                difficulty=check_enum(item.get("difficulty"), difficulties, field="paths.difficulty", context=context),
                time_to_goal=as_text(item.get("timeToGoal")),
                steps=steps,
            )
        )

    return CareerMapResult(
        paths=paths,
        current_role=as_text(payload.get("currentRole")),
        current_skills=as_str_list(payload.get("currentSkills")),
        recommendations=as_str_list(payload.get("recommendations")),
    )


def normalize_rewrite(raw: str, *, original_text: str = "") -> RewriteResult:
    payload = parse_object(raw)
    context = "rewrite"
    styles = get_enum("rewrite.enums.style")
    impacts = get_enum("rewrite.enums.impact")
    scores = as_mapping(payload.get("ats_score"))

    variations = [
        RewriteVariation(
            style=check_enum(item.get("style"), styles, field="variations.style", context=context),
            text=as_text(item.get("text")),
            changes=as_str_list(item.get("changes")),
            impact=check_enum(item.get("impact"), impacts, field="variations.impact", context=context),
        )
        for item in as_mapping_list(payload.get("variations"))
    ]
    return RewriteResult(
        original=as_text(payload.get("original")) or original_text,
        variations=variations,
        keywords_matched=as_str_list(payload.get("keywords_matched")),
        ats_score=RewriteAtsScore(
            conservative=optional_number(scores.get("conservative")),
            balanced=optional_number(scores.get("balanced")),
            aggressive=optional_number(scores.get("aggressive")),
        ),
        recommendation=as_text(payload.get("recommendation")),
    )
