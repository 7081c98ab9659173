"""Validated schema for analysis results returned by the review model.

The model answers with loosely-typed JSON (camelCase keys, floats where
integers are expected, occasional missing fields). Everything passes through
``parse_analysis`` before it reaches storage; structural problems raise
``UpstreamAnalysisError`` and out-of-range numbers are clamped.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from .errors import UpstreamAnalysisError

OverallRating = Literal["approved", "changes_requested", "commented"]
CommentType = Literal["security", "enhancement", "bug", "style"]
Severity = Literal["low", "medium", "high", "critical"]

DEFAULT_SUMMARY = "Code review completed."
DEFAULT_MESSAGE = "No specific comment"


def _round_number(value: Any) -> Any:
    if isinstance(value, float):
        return round(value)
    return value


class _AnalysisModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AnalysisComment(_AnalysisModel):
    """A single finding as reported by the model."""

    filename: Optional[str] = None
    line_number: Optional[int] = None
    comment_type: CommentType = "enhancement"
    severity: Severity = "low"
    message: str = DEFAULT_MESSAGE
    suggestion: Optional[str] = None

    @field_validator("comment_type", "severity", "message", mode="before")
    @classmethod
    def _drop_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or value == "":
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("line_number", mode="before")
    @classmethod
    def _round_line(cls, value: Any) -> Any:
        return _round_number(value)

    @field_validator("line_number")
    @classmethod
    def _positive_line(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            return None
        return value


class AnalysisInsight(_AnalysisModel):
    """Risk and impact classification of the change as a whole."""

    category: Optional[str] = None
    risk_level: Optional[str] = None
    change_type: Optional[str] = None
    impact_score: Optional[int] = None
    review_time: Optional[int] = None
    educational_value: Optional[str] = None

    @field_validator("impact_score", "review_time", mode="before")
    @classmethod
    def _round(cls, value: Any) -> Any:
        return _round_number(value)

    @field_validator("impact_score")
    @classmethod
    def _clamp_impact(cls, value: Optional[int]) -> Optional[int]:
        return None if value is None else max(1, min(10, value))

    @field_validator("review_time")
    @classmethod
    def _clamp_review_time(cls, value: Optional[int]) -> Optional[int]:
        return None if value is None else max(0, value)


class FileContextAnalysis(_AnalysisModel):
    """Dependency and maintainability figures for one changed file."""

    filename: str
    dependencies: list[str] = Field(default_factory=list)
    complexity: Optional[int] = None
    maintainability_index: Optional[float] = None
    tech_debt_score: Optional[float] = None

    @field_validator("complexity", mode="before")
    @classmethod
    def _round_complexity(cls, value: Any) -> Any:
        return _round_number(value)

    @field_validator("maintainability_index")
    @classmethod
    def _clamp_maintainability(cls, value: Optional[float]) -> Optional[float]:
        return None if value is None else max(0.0, min(100.0, value))


class PatternObservation(_AnalysisModel):
    """A recurring pattern the model noticed in the repository."""

    pattern_type: str
    pattern: str
    confidence: float = 0.5

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return max(0.0, min(1.0, value))


class CodeReviewAnalysis(_AnalysisModel):
    """Full analysis of a pull request."""

    overall_rating: OverallRating
    code_quality_score: int
    test_coverage: float
    security_issues: int = 0
    performance_issues: int = 0
    summary: str = DEFAULT_SUMMARY
    comments: list[AnalysisComment] = Field(default_factory=list)
    insights: Optional[AnalysisInsight] = None
    context_analysis: list[FileContextAnalysis] = Field(default_factory=list)
    learning_patterns: list[PatternObservation] = Field(default_factory=list)

    @field_validator("code_quality_score", "security_issues", "performance_issues", mode="before")
    @classmethod
    def _round_counts(cls, value: Any) -> Any:
        return _round_number(value)

    @field_validator("code_quality_score")
    @classmethod
    def _clamp_score(cls, value: int) -> int:
        return max(1, min(100, value))

    @field_validator("test_coverage")
    @classmethod
    def _clamp_coverage(cls, value: float) -> float:
        return max(0.0, min(100.0, value))

    @field_validator("security_issues", "performance_issues")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(0, value)

    @field_validator("summary", mode="before")
    @classmethod
    def _default_summary(cls, value: Any) -> Any:
        return value or DEFAULT_SUMMARY

    @field_validator("comments", "context_analysis", "learning_patterns", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []


def parse_analysis(payload: CodeReviewAnalysis | dict[str, Any]) -> CodeReviewAnalysis:
    """Validate a raw analysis payload.

    Args:
        payload: Decoded JSON from the model, or an already validated analysis.

    Returns:
        The validated analysis.

    Raises:
        UpstreamAnalysisError: If required fields are missing or malformed.
    """
    if isinstance(payload, CodeReviewAnalysis):
        return payload
    if not isinstance(payload, dict):
        raise UpstreamAnalysisError(
            f"Analysis must be a JSON object, got {type(payload).__name__}"
        )

    try:
        return CodeReviewAnalysis.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise UpstreamAnalysisError(f"Malformed analysis result: {problems}") from e
