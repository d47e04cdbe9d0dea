"""Question catalog entries and client-facing choices."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class QuestionType(StrEnum):
    OPEN = "open"
    CHOICE = "choice"


class QuestionOption(BaseModel):
    """One selectable answer; ``value`` is what gets stored in the schema."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    value: str


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    field: str = Field(description="Dotted schema path, e.g. 'platform.form'")
    question: str
    type: QuestionType
    options: tuple[QuestionOption, ...] = ()
    priority: int
    is_mvp: bool = False


class Choice(BaseModel):
    """A choice as rendered to the user (``---CHOICES---`` payload entry)."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
