from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings
from app.schemas.analysis import check_entry_id


class HistoryCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1, max_length=128)
    resume_text: str = Field(alias="resumeText", max_length=settings.resume_text_max_chars)
    analysis: dict[str, Any]

    @field_validator("id", "resume_text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        return check_entry_id(value)


class HistoryEntry(BaseModel):
    id: str
    user_id: str
    resume_text: str
    education_score: int
    leadership_score: int
    overall_score: float
    experience_level: str | None = None
    years_of_experience: int = 0
    missing_skills: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    full_analysis: dict[str, Any] = Field(default_factory=dict)
    created_at: str


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    limit: int
    offset: int
    has_more: bool = Field(alias="hasMore")


class HistoryListResponse(BaseModel):
    data: list[HistoryEntry]
    pagination: Pagination


class ScorePoint(BaseModel):
    date: str
    score: float


class HistorySummary(BaseModel):
    total_analyses: int
    latest_analysis: str | None = None
    average_score: float = 0.0
    score_trend: list[ScorePoint] = Field(default_factory=list)


class SkillFrequency(BaseModel):
    skill: str
    frequency: int


class SkillTrends(BaseModel):
    trends: list[SkillFrequency] = Field(default_factory=list)


class ProgressionPoint(BaseModel):
    date: str
    experience_level: str | None = None
    years_of_experience: int = 0
    score: float


class ExperienceProgression(BaseModel):
    progression: list[ProgressionPoint] = Field(default_factory=list)


class DeleteEntryResponse(BaseModel):
    success: bool
    message: str


class DeleteAllResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    deleted_count: int = Field(alias="deletedCount")
