"""Data model shared by every stage of the dispatch pipeline."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

ResultStatus = Literal["ok", "error", "partial"]


@dataclass(frozen=True, slots=True)
class TaskSignature:
    """Dispatch key. Several capabilities may share one signature."""

    task_type: str
    domain: str

    def __str__(self) -> str:
        return f"{self.task_type}/{self.domain}"


def _new_id() -> str:
    return uuid.uuid4().hex


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class Task(BaseModel):
    """A unit of work travelling through classification, binding and dispatch.

    ``id`` and ``trace_id`` are fixed once the task exists. ``payload`` and
    ``context`` are mutated in place by the pipeline stages; ``context`` is the
    scratch space for routing decisions, conversation history and
    partial-failure flags.
    """

    id: str = Field(default_factory=_new_id, frozen=True)
    task_type: str
    domain: str
    payload: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)
    trace_id: str = Field(default_factory=_new_id, frozen=True)
    user_id: str | None = None
    locale: str = "en-US"
    timezone: str = "UTC"
    priority: int = Field(default=5, ge=1, le=10)
    timeout_ms: int = Field(default=300_000, gt=0)
    created_at: datetime = Field(default_factory=_utc_now)

    @property
    def signature(self) -> TaskSignature:
        return TaskSignature(self.task_type, self.domain)

    def put_payload(self, key: str, value: Any) -> Task:
        self.payload[key] = value
        return self

    def put_context(self, key: str, value: Any) -> Task:
        self.context[key] = value
        return self


class ExecutionResult(BaseModel):
    """Uniform outcome of a capability invocation.

    ``ok`` results carry no errors; ``error`` results carry at least one.
    """

    status: ResultStatus
    summary: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    debug: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    latency_ms: int | None = None
    handler_name: str | None = None
    completed_at: datetime = Field(default_factory=_utc_now)

    @model_validator(mode="after")
    def _check_errors_match_status(self) -> ExecutionResult:
        if self.status == "ok" and self.errors:
            raise ValueError("an ok result cannot carry errors")
        if self.status == "error" and not self.errors:
            raise ValueError("an error result needs at least one error")
        return self

    @classmethod
    def ok(cls, summary: str, data: dict[str, Any] | None = None) -> ExecutionResult:
        return cls(status="ok", summary=summary, data=data or {})

    @classmethod
    def error(cls, message: str, data: dict[str, Any] | None = None) -> ExecutionResult:
        return cls(status="error", summary=message, data=data or {}, errors=[message])

    def add_debug(self, key: str, value: Any) -> ExecutionResult:
        self.debug[key] = value
        return self

    @property
    def is_success(self) -> bool:
        return self.status == "ok"

    @property
    def is_error(self) -> bool:
        return self.status == "error"


@dataclass(frozen=True, slots=True)
class TaskSelection:
    """Classifier decision: which capability should handle the input."""

    capability_name: str
    signature: TaskSignature
    confidence: float
    rationale: str
    extracted_params: dict[str, Any] = field(default_factory=dict)

    @property
    def task_type(self) -> str:
        return self.signature.task_type

    @property
    def domain(self) -> str:
        return self.signature.domain


@dataclass(frozen=True, slots=True)
class CollectionFailed:
    """Terminal routing outcome: required parameters could not be obtained."""

    missing_fields: list[str]
    prompt: str


class ContentPart(BaseModel):
    type: str = "text"
    text: str | None = None
    image_url: dict[str, str] | None = None


class ConversationMessage(BaseModel):
    """One conversation turn. ``content`` is plain text or a list of parts."""

    role: str
    content: str | list[ContentPart] = ""
    timestamp: int | None = None

    @property
    def text_content(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "".join(p.text for p in self.content if p.type == "text" and p.text)

    @property
    def image_urls(self) -> list[str]:
        if isinstance(self.content, str):
            return []
        return [
            p.image_url["url"]
            for p in self.content
            if p.type == "image_url" and p.image_url and p.image_url.get("url")
        ]
