"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from agent_runtime.audit.store import ExecutionRecord
from agent_runtime.core.models import ConversationMessage

ApiStatus = Literal["ok", "error", "partial", "collection_failed"]


class HandleTaskRequest(BaseModel):
    """A structured task whose signature is already known."""

    task_type: str
    domain: str
    payload: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None
    locale: str = "en-US"
    timezone: str = "UTC"
    priority: int = Field(default=5, ge=1, le=10)


class ApiTaskResult(BaseModel):
    task_id: str
    trace_id: str
    status: ApiStatus
    summary: str
    data: dict[str, Any] = Field(default_factory=dict)
    debug: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    latency_ms: int | None = None
    handler_name: str | None = None
    missing_fields: list[str] = Field(default_factory=list)
    lifecycle: list[str] = Field(default_factory=list)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    user_id: str | None = None
    session_id: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)


class ConversationRequest(BaseModel):
    messages: list[ConversationMessage] = Field(min_length=1)
    user_id: str | None = None
    session_id: str | None = None


class PreviewRequest(BaseModel):
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    message: str
    success: bool
    status: ApiStatus
    task_id: str
    trace_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    debug: dict[str, Any] = Field(default_factory=dict)
    routing_info: dict[str, Any] = Field(default_factory=dict)
    missing_fields: list[str] = Field(default_factory=list)


class RoutePreview(BaseModel):
    selected_agent: str
    task_type: str
    domain: str
    confidence: float
    reason: str
    extracted_params: dict[str, Any] = Field(default_factory=dict)


class ApiParam(BaseModel):
    name: str
    type: str
    required: bool
    description: str = ""
    example: str = ""
    default_value: str | None = None


class ApiCapability(BaseModel):
    name: str
    description: str
    version: str
    signatures: list[str]
    params: list[ApiParam] = Field(default_factory=list)


class ApiRecordPage(BaseModel):
    items: list[ExecutionRecord]
    total: int
    page: int
    size: int


class ApiStatistics(BaseModel):
    agent_statistics: dict[str, int]
    failed_task_count: int
    total_executions: int | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class CleanupResponse(BaseModel):
    deleted_count: int
    before: datetime
