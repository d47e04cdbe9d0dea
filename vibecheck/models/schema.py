"""Evaluation schema: the structured profile of one project idea."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ConversationState(StrEnum):
    """Response mode of a conversation, derived from the completion score."""

    ASK_QUESTION = "ASK_QUESTION"
    PRELIMINARY_EVAL = "PRELIMINARY_EVAL"
    FULL_EVAL = "FULL_EVAL"


class PainLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class MVPType(StrEnum):
    CONTENT_TOOL = "content_tool"
    FUNCTIONAL_TOOL = "functional_tool"
    AI_TOOL = "ai_tool"
    OTHER = "other"
    UNKNOWN = "unknown"


class PlatformForm(StrEnum):
    WEB = "web"
    IOS = "ios"
    ANDROID = "android"
    PLUGIN = "plugin"
    CLI = "cli"
    UNKNOWN = "unknown"


class APIDependency(StrEnum):
    NONE = "none"
    POSSIBLE = "possible"
    CONFIRMED = "confirmed"
    UNKNOWN = "unknown"


class PrivacyLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class PriorityPreference(StrEnum):
    SHIP_FAST = "ship_fast"
    STABLE_FIRST = "stable_first"
    COST_FIRST = "cost_first"
    UNKNOWN = "unknown"


class TimelinePreference(StrEnum):
    WEEK = "7d"
    TWO_WEEKS = "14d"
    MONTH = "30d"
    FLEXIBLE = "flexible"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Schema sections
#
# Enum-backed fields are typed as plain ``str``: values outside the known set
# are stored as custom answers rather than rejected.
# ---------------------------------------------------------------------------


class IdeaSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    one_liner: str = Field(default="", description="One-sentence description of the product")
    background: str = Field(default="", description="Why the user wants to build it")


class ProblemSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    scenario: str = Field(default="", description="Concrete problem scenario")
    pain_level: str = Field(default=PainLevel.UNKNOWN.value)


class UserSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_user: str = Field(default="", description="Who the product is mainly for")
    usage_context: str = Field(default="", description="When and where it gets used")


class MVPSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_job: str = Field(default="", description="The single job the first version must do")
    type: str = Field(default=MVPType.UNKNOWN.value)


class PlatformSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    form: str = Field(default=PlatformForm.UNKNOWN.value)


class ConstraintsSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_or_data_dependency: str = Field(default=APIDependency.UNKNOWN.value)
    privacy_level: str = Field(default=PrivacyLevel.UNKNOWN.value)


class PreferenceSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: str = Field(default=PriorityPreference.UNKNOWN.value)
    timeline: str = Field(default=TimelinePreference.UNKNOWN.value)


class MetaSection(BaseModel):
    """Bookkeeping written only by the schema store."""

    model_config = ConfigDict(frozen=True)

    current_state: ConversationState = ConversationState.ASK_QUESTION
    completion_score: int = Field(default=0, ge=0, le=100)
    last_updated_field: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class EvaluationSchema(BaseModel):
    """Structured profile of one project idea under evaluation."""

    model_config = ConfigDict(
        frozen=True,
        validate_by_name=True,
        validate_by_alias=True,
        serialize_by_alias=True,
    )

    idea: IdeaSection = Field(default_factory=IdeaSection)
    problem: ProblemSection = Field(default_factory=ProblemSection)
    user: UserSection = Field(default_factory=UserSection)
    mvp: MVPSection = Field(default_factory=MVPSection)
    platform: PlatformSection = Field(default_factory=PlatformSection)
    constraints: ConstraintsSection = Field(default_factory=ConstraintsSection)
    preference: PreferenceSection = Field(default_factory=PreferenceSection)
    meta: MetaSection = Field(default_factory=MetaSection, alias="_meta")


# ---------------------------------------------------------------------------
# Partial updates: ``None`` means "not provided".
# ---------------------------------------------------------------------------


class IdeaUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    one_liner: str | None = None
    background: str | None = None


class ProblemUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    scenario: str | None = None
    pain_level: str | None = None


class UserUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_user: str | None = None
    usage_context: str | None = None


class MVPUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_job: str | None = None
    type: str | None = None


class PlatformUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    form: str | None = None


class ConstraintsUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_or_data_dependency: str | None = None
    privacy_level: str | None = None


class PreferenceUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: str | None = None
    timeline: str | None = None


class SchemaUpdate(BaseModel):
    """Partial schema produced by extraction or a direct answer."""

    model_config = ConfigDict(frozen=True)

    idea: IdeaUpdate | None = None
    problem: ProblemUpdate | None = None
    user: UserUpdate | None = None
    mvp: MVPUpdate | None = None
    platform: PlatformUpdate | None = None
    constraints: ConstraintsUpdate | None = None
    preference: PreferenceUpdate | None = None

    def is_empty(self) -> bool:
        return not any(self.model_dump(exclude_none=True).values())


SECTION_NAMES: tuple[str, ...] = (
    "idea",
    "problem",
    "user",
    "mvp",
    "platform",
    "constraints",
    "preference",
)
