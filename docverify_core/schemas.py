from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .languages import SUPPORTED_LANGUAGES, SupportedLanguage, normalize_language


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


TBaseSchema = TypeVar("TBaseSchema", bound="BaseSchema")

ExecutionStatus = Literal["passed", "failed", "error", "skipped"]
CheckRunConclusion = Literal["success", "failure", "neutral"]

DEFAULT_HEADING = "Introduction"


class BaseSchema(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    def to_dict(self) -> dict[str, object]:
        return self.model_dump(mode="json")

    @classmethod
    def from_json(cls: type[TBaseSchema], data: str) -> TBaseSchema:
        return cls.model_validate_json(data)

    @classmethod
    def from_dict(cls: type[TBaseSchema], data: Mapping[str, object]) -> TBaseSchema:
        return cls.model_validate(data)


class Document(BaseSchema):
    id: str
    path: str
    content: str = ""


class CodeExample(BaseSchema):
    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    document_path: str
    language: SupportedLanguage
    code: str
    line_start: int = Field(ge=1)
    line_end: int = Field(ge=1)
    heading: str = DEFAULT_HEADING
    expected_output: str | None = None


class ExecutionResult(BaseSchema):
    model_config = ConfigDict(frozen=True)

    example_id: str
    language: SupportedLanguage
    status: ExecutionStatus
    output: str = ""
    error_message: str | None = None
    execution_time_ms: float = Field(default=0.0, ge=0)
    exit_code: int | None = None
    truncated: bool = False


class DocTestSuite(BaseSchema):
    repository_id: str
    document_id: str | None = None
    total_examples: int = Field(ge=0)
    passed: int = Field(ge=0)
    failed: int = Field(ge=0)
    errors: int = Field(ge=0)
    skipped: int = Field(ge=0)
    results: list[ExecutionResult] = Field(default_factory=list)
    executed_at: datetime = Field(default_factory=_utcnow)
    duration: float = Field(default=0.0, ge=0)

    @field_validator("executed_at")
    @classmethod
    def executed_at_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)

    @model_validator(mode="after")
    def counts_add_up(self) -> "DocTestSuite":
        counted = self.passed + self.failed + self.errors + self.skipped
        if counted != self.total_examples:
            raise ValueError(
                f"total_examples={self.total_examples} but status counts sum to {counted}"
            )
        return self

    @classmethod
    def from_results(
        cls,
        repository_id: str,
        results: Sequence[ExecutionResult],
        *,
        document_id: str | None = None,
        executed_at: datetime | None = None,
        duration: float = 0.0,
    ) -> "DocTestSuite":
        """Build a suite, deriving every counter from the result statuses."""
        counts = {"passed": 0, "failed": 0, "error": 0, "skipped": 0}
        for result in results:
            counts[result.status] += 1
        return cls(
            repository_id=repository_id,
            document_id=document_id,
            total_examples=len(results),
            passed=counts["passed"],
            failed=counts["failed"],
            errors=counts["error"],
            skipped=counts["skipped"],
            results=list(results),
            executed_at=executed_at or _utcnow(),
            duration=duration,
        )

    @property
    def succeeded(self) -> bool:
        return self.failed == 0 and self.errors == 0


class DocTestConfig(BaseSchema):
    enabled: bool = False
    languages: list[SupportedLanguage] = Field(
        default_factory=lambda: ["javascript", "typescript", "python"]
    )
    exclude_paths: list[str] = Field(
        default_factory=lambda: ["node_modules", ".git", "dist", "build"]
    )
    timeout: int = Field(default=30, ge=1)
    run_on_pr: bool = False
    create_check_run: bool = False

    @field_validator("languages", mode="before")
    @classmethod
    def normalize_languages(cls, value: object) -> object:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple, set, frozenset)):
            return value
        normalized: list[str] = []
        for tag in value:
            language = normalize_language(str(tag))
            if language is None:
                supported = ", ".join(SUPPORTED_LANGUAGES)
                raise ValueError(f"Unsupported language '{tag}' (supported: {supported})")
            if language not in normalized:
                normalized.append(language)
        return normalized


class DocTestHistory(BaseSchema):
    id: str
    repository_id: str
    document_id: str | None = None
    total_examples: int = Field(ge=0)
    passed: int = Field(ge=0)
    failed: int = Field(ge=0)
    errors: int = Field(ge=0)
    skipped: int = Field(ge=0)
    duration: float = Field(ge=0)
    executed_at: datetime
    metadata: dict[str, object] | None = None

    @field_validator("executed_at")
    @classmethod
    def executed_at_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)


class CoverageStats(BaseSchema):
    repository_id: str
    total_documents: int = Field(ge=0)
    documents_with_examples: int = Field(ge=0)
    documents_with_tested_examples: int = Field(ge=0)
    total_examples: int = Field(ge=0)
    tested_examples: int = Field(ge=0)
    coverage_percentage: float = Field(ge=0, le=100)


class CheckRunOutput(BaseSchema):
    title: str
    summary: str
    conclusion: CheckRunConclusion
