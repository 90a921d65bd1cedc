from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

SourceType = Literal["reddit", "twitter", "quora"]
Mode = Literal["solver", "builder"]
AlertFrequency = Literal["daily", "weekly", "never"]

VALID_SOURCES: tuple[str, ...] = ("reddit", "twitter", "quora")
VALID_MODES: tuple[str, ...] = ("solver", "builder")


# --- Search ---


@dataclass
class SearchResult:
    """One discussion thread returned by the search provider."""
    url: str
    title: str
    snippet: str
    source: str


# --- Analysis ---


class SentimentScores(BaseModel):
    frustration_level: int
    urgency_score: int
    willingness_to_pay: int


class _PlanModel(BaseModel):
    """Lenient base for the parts of an action plan the model fills in."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    @field_validator("*", mode="before")
    @classmethod
    def _null_means_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class ActionResource(_PlanModel):
    type: str = ""
    title: str = ""
    url: str = ""
    platform: str | None = None
    cost: str | None = None


class DiyPlan(_PlanModel):
    description: str = ""
    resources: list[ActionResource] = Field(default_factory=list)


class ExistingSolution(_PlanModel):
    name: str = ""
    url: str = ""
    cost: str = ""
    description: str = ""


class BuildOpportunity(_PlanModel):
    viable: bool = False
    reason: str = ""
    search_query: str = ""


class ActionPlan(_PlanModel):
    # Keys outside the plan mean the model answered in some other shape.
    model_config = ConfigDict(extra="forbid")

    diy: DiyPlan = Field(default_factory=DiyPlan)
    existing_solutions: list[ExistingSolution] = Field(default_factory=list)
    build_opportunity: BuildOpportunity = Field(default_factory=BuildOpportunity)

    def urls(self) -> list[str]:
        return [r.url for r in self.diy.resources] + [s.url for s in self.existing_solutions]


class TextAction(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class StructuredAction(BaseModel):
    kind: Literal["structured"] = "structured"
    plan: ActionPlan


Action = Annotated[Union[TextAction, StructuredAction], Field(discriminator="kind")]


class NormalizedAnalysis(BaseModel):
    """An analysis record as produced by the normalizer, before it is stored."""

    title: str
    domain: str
    role: str = "General"
    overview: str = ""
    gap: str = ""
    automation: str = ""
    action: Action | None = None
    sentiment: SentimentScores | None = None
    source_type: str
    source_url: str
    quality_warnings: list[str] = Field(default_factory=list)
    completeness: float = 0.0

    def action_value(self) -> str | dict[str, Any] | None:
        if self.action is None:
            return None
        if isinstance(self.action, TextAction):
            return self.action.text
        return self.action.plan.model_dump()

    def to_payload(self) -> dict[str, Any]:
        """Render in the shape the model is asked to answer with."""
        return {
            "title": self.title,
            "domain": self.domain,
            "role": self.role,
            "overview": self.overview,
            "gap": self.gap,
            "automation": self.automation,
            "action": self.action_value(),
            "sentiment": self.sentiment.model_dump() if self.sentiment else None,
            "source_url": self.source_url,
            "quality_warnings": list(self.quality_warnings),
        }

    def to_row(self, search_query: str) -> dict[str, Any]:
        return {
            **self.to_payload(),
            "source_type": self.source_type,
            "search_query": search_query,
            "completeness": self.completeness,
        }


# --- Requests ---


class AnalyzeRequest(BaseModel):
    # Kept loose so bad values become 400 envelopes instead of 422s.
    query: str | None = None
    mode: str | None = None
    sources: list[str] | None = None


class SavedSearchCreate(BaseModel):
    search_type: Mode
    query: str = Field(min_length=1, max_length=500)
    sources: list[SourceType] = Field(default_factory=lambda: ["reddit"])
    alert_enabled: bool = False
    alert_frequency: AlertFrequency = "never"


class SavedSearchUpdate(BaseModel):
    query: str | None = Field(default=None, min_length=1, max_length=500)
    sources: list[SourceType] | None = None
    alert_enabled: bool | None = None
    alert_frequency: AlertFrequency | None = None


# --- Responses ---


class CitedSource(BaseModel):
    url: str
    title: str
    source: str


class AnalyzeResponse(BaseModel):
    success: bool
    data: list[dict[str, Any]] | None = None
    sources: list[CitedSource] | None = None
    error: str | None = None


class SavedSearchResponse(BaseModel):
    id: UUID
    user_id: UUID
    search_type: Mode
    query: str
    sources: list[str]
    created_at: datetime
    last_run_at: datetime | None = None
    alert_enabled: bool
    alert_frequency: AlertFrequency


class SubredditCount(BaseModel):
    name: str
    count: int
