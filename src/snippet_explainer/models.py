"""Pydantic models shared across generation, persistence, and the request layer."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

ReadingLevel = Literal["12", "15", "cs1", "pro"]
Difficulty = Literal["easy", "medium", "hard"]
SnippetStatus = Literal["pending", "ready"]

READING_LEVELS: tuple[str, ...] = ("12", "15", "cs1", "pro")
DEFAULT_READING_LEVEL: ReadingLevel = "cs1"


def normalize_reading_level(value: Any) -> ReadingLevel:
    """Map a raw reading level to a known one, defaulting to ``cs1``."""
    text = str(value).strip().lower() if value is not None else ""
    if text in READING_LEVELS:
        return text  # type: ignore[return-value]
    return DEFAULT_READING_LEVEL


class TraceStep(BaseModel):
    """One executed line and the variables visible after it ran."""

    line: int = Field(gt=0)
    variables: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("vars", "variables"),
        serialization_alias="vars",
    )


class Trace(BaseModel):
    input: str = ""
    steps: list[TraceStep] = Field(default_factory=list)


class QuizItem(BaseModel):
    """A single multiple-choice question whose answer is one of its choices."""

    question: str = Field(min_length=1)
    choices: list[str] = Field(min_length=2)
    answer: str
    hint: str = ""
    difficulty: Difficulty

    @field_validator("difficulty", mode="before")
    @classmethod
    def lowercase_difficulty(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("choices")
    @classmethod
    def unique_choices(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("Quiz choices must be unique")
        return value

    @model_validator(mode="after")
    def answer_is_a_choice(self) -> QuizItem:
        if self.answer not in self.choices:
            raise ValueError("Quiz answer must be one of its choices")
        return self


class ContentBundle(BaseModel):
    """Explanation, diagram, trace, and quizzes generated for one snippet.

    On the wire the diagram is carried under ``mermaid`` and trace step
    variables under ``vars``; both Python field names are accepted as well.
    """

    explanation: str = Field(min_length=1)
    diagram: str = Field(
        validation_alias=AliasChoices("mermaid", "diagram"),
        serialization_alias="mermaid",
    )
    trace: Trace
    quizzes: list[QuizItem] = Field(min_length=3, max_length=3)


class ExplainRequest(BaseModel):
    """Validated body of one generation request."""

    snippet_id: str | None = None
    title: str | None = None
    language: str = Field(min_length=1)
    code: str = Field(min_length=1)
    reading_level: ReadingLevel = DEFAULT_READING_LEVEL

    @field_validator("reading_level", mode="before")
    @classmethod
    def coerce_reading_level(cls, value: Any) -> ReadingLevel:
        return normalize_reading_level(value)

    @field_validator("snippet_id", "title", mode="before")
    @classmethod
    def optional_text(cls, value: Any) -> str | None:
        """Numbers become text; other non-string values are ignored."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if not isinstance(value, str):
            return None
        return value

    @field_validator("snippet_id")
    @classmethod
    def blank_snippet_id_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


class SnippetRecord(BaseModel):
    """Snippet as returned to the caller, stored or synthesized."""

    id: str
    owner: str | None = None
    title: str | None = None
    language: str | None = None
    code: str | None = None
    status: SnippetStatus = "ready"
    explanation: str | None = None
    mermaid_diagram: str | None = None
    trace_table: dict[str, Any] | None = None
    created_at: str | None = None
    updated_at: str | None = None


class QuizRecord(BaseModel):
    id: str
    snippet_id: str
    question: str
    choices: list[str]
    answer: str
    hint: str
    difficulty: Difficulty


class ExplainResponse(BaseModel):
    snippet: SnippetRecord
    quizzes: list[QuizRecord]
