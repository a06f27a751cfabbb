"""Data models for review findings and normalized model replies."""

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReviewFinding(BaseModel):
    """A single model-proposed review comment on a new-file line."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    line_number: int = Field(
        alias="lineNumber", gt=0, description="Line number in the new file"
    )
    comment: str = Field(min_length=1, description="What the issue is")

    @field_validator("line_number", mode="before")
    @classmethod
    def _coerce_line_number(cls, value):
        # bool is an int subclass; "true" is not a line number
        if isinstance(value, bool):
            raise ValueError("lineNumber must be a number")
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("comment", mode="before")
    @classmethod
    def _strip_comment(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


# ---------------------------------------------------------------------------
# Normalizer outcomes
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class EmptyResponse:
    """The model returned no content (often an upstream safety filter)."""

    reason: str = "empty content"


@dataclass(frozen=True)
class MalformedResponse:
    """The reply could not be decoded as JSON."""

    raw: str
    error: str


@dataclass(frozen=True)
class ParsedReview:
    """Decoded findings; an empty list means the model found no issues."""

    findings: list[ReviewFinding] = field(default_factory=list)
    dropped: int = 0  # elements discarded for missing/invalid fields


ReviewOutcome = EmptyResponse | MalformedResponse | ParsedReview
