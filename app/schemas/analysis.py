from __future__ import annotations

import re
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.core.config import settings

NOT_A_RESUME = "NOT_A_RESUME"

_ID_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _required_text(value: str, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} is required")
    return value


def check_entry_id(value: str | None) -> str | None:
    if value is not None and _ID_CONTROL_CHARS_RE.search(value):
        raise ValueError("must not contain control characters")
    return value


# ---------------------------------------------------------------- requests


class AnalyzeRequest(CamelModel):
    resume_text: str = Field(max_length=settings.resume_text_max_chars)
    analysis_id: str | None = Field(default=None, min_length=1, max_length=128)

    @field_validator("resume_text")
    @classmethod
    def _check_resume(cls, value: str) -> str:
        return _required_text(value, "Resume text")

    @field_validator("analysis_id")
    @classmethod
    def _check_analysis_id(cls, value: str | None) -> str | None:
        return check_entry_id(value)


class ResumeJobRequest(CamelModel):
    resume_text: str = Field(max_length=settings.resume_text_max_chars)
    job_description: str = Field(max_length=settings.job_description_max_chars)

    @field_validator("resume_text")
    @classmethod
    def _check_resume(cls, value: str) -> str:
        return _required_text(value, "Resume text")

    @field_validator("job_description")
    @classmethod
    def _check_job(cls, value: str) -> str:
        return _required_text(value, "Job description")


class CareerMapRequest(CamelModel):
    resume_text: str = Field(max_length=settings.resume_text_max_chars)

    @field_validator("resume_text")
    @classmethod
    def _check_resume(cls, value: str) -> str:
        return _required_text(value, "Resume text")


class RewriteRequest(CamelModel):
    original_text: str = Field(max_length=5000)
    job_description: str = Field(max_length=settings.job_description_max_chars)

    @field_validator("original_text")
    @classmethod
    def _check_original(cls, value: str) -> str:
        return _required_text(value, "Original text")

    @field_validator("job_description")
    @classmethod
    def _check_job(cls, value: str) -> str:
        return _required_text(value, "Job description")


# ---------------------------------------------------------------- analysis outcome


class DimensionScores(CamelModel):
    technical_skills: float
    experience: float
    presentation: float
    education: float
    leadership: float


class DetectedSkills(CamelModel):
    technical: list[str] = Field(default_factory=list)
    soft: list[str] = Field(default_factory=list)


class Recommendations(CamelModel):
    immediate: list[str] = Field(default_factory=list)
    short_term: list[str] = Field(default_factory=list)
    long_term: list[str] = Field(default_factory=list)


class AtsCompatibility(CamelModel):
    score: float
    issues: list[str] = Field(default_factory=list)


class AnalysisSuccess(CamelModel):
    overall_score: float
    dimension_scores: DimensionScores
    experience_level: str
    years_of_experience: float
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    missing_skills: list[str] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)
    detected_skills: DetectedSkills = Field(default_factory=DetectedSkills)
    achievements: list[str] = Field(default_factory=list)
    recommendations: Recommendations = Field(default_factory=Recommendations)
    ats_compatibility: AtsCompatibility
    hiring_recommendation: str
    summary: str = ""


class NotAResume(CamelModel):
    error: Literal["NOT_A_RESUME"] = NOT_A_RESUME
    message: str
    detected_type: str | None = None


AnalysisOutcome = Union[AnalysisSuccess, NotAResume]


class GuestAnalysisResponse(AnalysisSuccess):
    is_guest: bool = True
    guest_id: str | None = None
    remaining_analyses: int = 0
    message: str = ""


class AuthenticatedAnalysisResponse(AnalysisSuccess):
    history_id: str | None = None


# ---------------------------------------------------------------- job match


class MissingSkillGroups(BaseModel):
    critical: list[str] = Field(default_factory=list)
    important: list[str] = Field(default_factory=list)
    nice_to_have: list[str] = Field(default_factory=list)


class PresentSkillGroups(BaseModel):
    exact_matches: list[str] = Field(default_factory=list)
    partial_matches: list[str] = Field(default_factory=list)
    transferable_skills: list[str] = Field(default_factory=list)


class MatchSuggestion(BaseModel):
    priority: str = "Medium"
    category: str = ""
    action: str = ""


class KeywordAnalysis(BaseModel):
    total_keywords: float = 0
    matched_keywords: float = 0
    missing_keywords: list[str] = Field(default_factory=list)


class ExperienceGap(BaseModel):
    required_years: float = 0
    candidate_years: float = 0
    gap: float = 0
    assessment: str = ""


class JobMatchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    match_percentage: float = Field(alias="matchPercentage")
    match_level: str = Field(alias="matchLevel")
    missing_skills: MissingSkillGroups = Field(default_factory=MissingSkillGroups, alias="missingSkills")
    present_skills: PresentSkillGroups = Field(default_factory=PresentSkillGroups, alias="presentSkills")
    suggestions: list[MatchSuggestion] = Field(default_factory=list)
    keyword_analysis: KeywordAnalysis = Field(default_factory=KeywordAnalysis)
    experience_gap: ExperienceGap = Field(default_factory=ExperienceGap)
    recommendation: str = ""


# ---------------------------------------------------------------- tailoring


class TailoredBullet(CamelModel):
    original: str = ""
    tailored: str = ""
    keywords_added: list[str] = Field(default_factory=list)


class TailoringResult(CamelModel):
    tailored_summary: str = ""
    tailored_bullets: list[TailoredBullet] = Field(default_factory=list)
    keywords_added: list[str] = Field(default_factory=list)
    ats_score_before: float
    ats_score_after: float
    recommendations: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------- career map


class CareerPathStep(BaseModel):
    role: str = ""
    status: str = "future"
    skills_needed: list[str] = Field(default_factory=list)
    timeframe: str | None = None
    salary_range: str | None = None


class CareerPath(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    description: str = ""
    difficulty: str = "Medium"
    time_to_goal: str = Field(default="", alias="timeToGoal")
    steps: list[CareerPathStep] = Field(default_factory=list)


class CareerMapResult(CamelModel):
    paths: list[CareerPath]
    current_role: str = ""
    current_skills: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------- rewrite


class RewriteVariation(BaseModel):
    style: str = ""
    text: str = ""
    changes: list[str] = Field(default_factory=list)
    impact: str = "Medium"


class RewriteAtsScore(BaseModel):
    conservative: float = 0
    balanced: float = 0
    aggressive: float = 0


class RewriteResult(BaseModel):
    original: str = ""
    variations: list[RewriteVariation] = Field(default_factory=list)
    keywords_matched: list[str] = Field(default_factory=list)
    ats_score: RewriteAtsScore = Field(default_factory=RewriteAtsScore)
    recommendation: str = ""
