"""Generated documents: the scored evaluation report and the pre-build brief."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DocumentKind(StrEnum):
    REPORT = "report"
    BRIEF = "brief"


# ---------------------------------------------------------------------------
# Evaluation report (structured LLM output)
# ---------------------------------------------------------------------------


def _clamp_score(value: object) -> int:
    try:
        number = round(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, number))


class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    tech: int = 0
    market: int = 0
    onboarding: int = 0
    user_match: int = 0

    @field_validator("tech", "market", "onboarding", "user_match", mode="before")
    @classmethod
    def _clamp(cls, value: object) -> int:
        return _clamp_score(value)


class ReportScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    feasibility: int = Field(default=0, description="Overall feasibility, 0 to 100")
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)

    @field_validator("feasibility", mode="before")
    @classmethod
    def _clamp(cls, value: object) -> int:
        return _clamp_score(value)


class Competitor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: str = ""
    pros: str = ""
    cons: str = ""


class MarketAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    opportunity: str = ""
    trends: str = ""
    competitors: list[Competitor] = Field(default_factory=list)


class TechOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    tools: list[str] = Field(default_factory=list)
    fit_for: str = ""
    dev_time: str = ""
    cost: str = ""


class TechOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    fastest: TechOption | None = None
    scalable: TechOption | None = None
    advice: str = ""


class BuildStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    description: str = ""
    action_url: str = ""


class CostEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: str = ""
    money: str = ""
    saving_tips: list[str] = Field(default_factory=list)


class NextSteps(BaseModel):
    model_config = ConfigDict(frozen=True)

    today: list[str] = Field(default_factory=list)
    this_week: list[str] = Field(default_factory=list)
    later: list[str] = Field(default_factory=list)


class EvaluationReport(BaseModel):
    """Scored feasibility report for one idea."""

    model_config = ConfigDict(frozen=True)

    conclusion: str = Field(description="One-sentence verdict")
    score: ReportScore = Field(default_factory=ReportScore)
    why_worth_it: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    market: MarketAnalysis = Field(default_factory=MarketAnalysis)
    tech_options: TechOptions = Field(default_factory=TechOptions)
    fastest_path: list[BuildStep] = Field(default_factory=list)
    cost_estimate: CostEstimate = Field(default_factory=CostEstimate)
    pitfalls: list[str] = Field(default_factory=list)
    next_steps: NextSteps = Field(default_factory=NextSteps)


# ---------------------------------------------------------------------------
# Persistence record
# ---------------------------------------------------------------------------


class Document(BaseModel):
    """A stored report (JSON) or brief (Markdown) for a conversation."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    conversation_id: str
    kind: DocumentKind
    content: str
    created_at: datetime = Field(default_factory=_utcnow)

    def report(self) -> EvaluationReport:
        """Parse the stored content of a report document."""
        if self.kind != DocumentKind.REPORT:
            raise ValueError(f"Document {self.id} is a {self.kind.value}, not a report")
        return EvaluationReport.model_validate_json(self.content)
