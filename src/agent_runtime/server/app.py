"""FastAPI app factory.

Endpoints are intentionally thin wrappers over ``DispatchRuntime`` and the
execution record store.
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware

from agent_runtime import __version__
from agent_runtime.audit.store import ExecutionRecord, ExecutionRecordStore
from agent_runtime.core.capability import Capability
from agent_runtime.core.lifecycle import state_history
from agent_runtime.core.models import Task
from agent_runtime.runtime.runtime import DispatchOutcome, DispatchRuntime, build_runtime
from agent_runtime.server.config import ServerSettings
from agent_runtime.server.models import (
    ApiCapability,
    ApiParam,
    ApiRecordPage,
    ApiStatistics,
    ApiTaskResult,
    ChatRequest,
    ChatResponse,
    CleanupResponse,
    ConversationRequest,
    HandleTaskRequest,
    PreviewRequest,
    RoutePreview,
)

logger = logging.getLogger(__name__)


def _to_api_capability(capability: Capability) -> ApiCapability:
    spec = capability.spec
    return ApiCapability(
        name=spec.name,
        description=spec.description,
        version=spec.version,
        signatures=sorted(str(s) for s in spec.signatures),
        params=[
            ApiParam(
                name=p.name,
                type=p.declared_type.value,
                required=p.required,
                description=p.description,
                example=p.example,
                default_value=p.default_value,
            )
            for p in spec.param_specs
        ],
    )


def _to_api_result(outcome: DispatchOutcome) -> ApiTaskResult:
    task = outcome.task
    lifecycle = [s.value for s in state_history(task)]
    if outcome.collection_failed is not None:
        failed = outcome.collection_failed
        return ApiTaskResult(
            task_id=task.id,
            trace_id=task.trace_id,
            status="collection_failed",
            summary=failed.prompt,
            missing_fields=list(failed.missing_fields),
            lifecycle=lifecycle,
        )
    result = outcome.result
    assert result is not None
    return ApiTaskResult(
        task_id=task.id,
        trace_id=task.trace_id,
        status=result.status,
        summary=result.summary,
        data=result.data,
        debug=result.debug,
        errors=result.errors,
        latency_ms=result.latency_ms,
        handler_name=result.handler_name,
        lifecycle=lifecycle,
    )


def _to_chat_response(outcome: DispatchOutcome) -> ChatResponse:
    api = _to_api_result(outcome)
    return ChatResponse(
        message=api.summary,
        success=outcome.result is not None and outcome.result.is_success,
        status=api.status,
        task_id=api.task_id,
        trace_id=api.trace_id,
        data=api.data,
        debug=api.debug,
        routing_info=outcome.task.context.get("routingInfo") or {},
        missing_fields=api.missing_fields,
    )


def create_app(runtime: DispatchRuntime | None = None) -> FastAPI:
    settings = ServerSettings()
    runtime = runtime or build_runtime()

    app = FastAPI(
        title="Agent Runtime",
        version=__version__,
        description="REST API over the capability dispatch runtime.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def records() -> ExecutionRecordStore:
        if runtime.records is None:
            raise HTTPException(status_code=503, detail="Execution records are disabled")
        return runtime.records

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/capabilities", response_model=list[ApiCapability])
    def list_capabilities() -> list[ApiCapability]:
        return [_to_api_capability(c) for c in runtime.registry.all()]

    @app.post("/api/v1/agent/handle", response_model=ApiTaskResult)
    def handle_task(req: HandleTaskRequest) -> ApiTaskResult:
        task = Task(**req.model_dump())
        logger.info(
            "Structured task received",
            extra={"task_id": task.id, "task_type": task.task_type, "domain": task.domain},
        )
        return _to_api_result(runtime.run(task))

    @app.post("/api/v1/chat/send", response_model=ChatResponse)
    def chat_send(req: ChatRequest) -> ChatResponse:
        context = dict(req.context)
        if req.session_id:
            context["sessionId"] = req.session_id
        outcome = runtime.handle_text(req.message, context, user_id=req.user_id)
        return _to_chat_response(outcome)

    @app.post("/api/v1/chat/conversation", response_model=ChatResponse)
    def chat_conversation(req: ConversationRequest) -> ChatResponse:
        context = {"sessionId": req.session_id} if req.session_id else {}
        try:
            outcome = runtime.handle_conversation(
                req.messages, user_id=req.user_id, context=context
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return _to_chat_response(outcome)

    @app.post("/api/v1/chat/preview", response_model=RoutePreview)
    def chat_preview(req: PreviewRequest) -> RoutePreview:
        selection = runtime.router.preview(req.message)
        return RoutePreview(
            selected_agent=selection.capability_name,
            task_type=selection.task_type,
            domain=selection.domain,
            confidence=selection.confidence,
            reason=selection.rationale,
            extracted_params=selection.extracted_params,
        )

    # Fixed paths are declared before /tasks/{task_id} so they are not shadowed.
    @app.get("/api/v1/tasks/recent", response_model=list[ExecutionRecord])
    def recent_tasks(limit: int = Query(default=10, ge=1, le=100)) -> list[ExecutionRecord]:
        return records().recent(limit)

    @app.get("/api/v1/tasks/trace/{trace_id}", response_model=list[ExecutionRecord])
    def tasks_by_trace(trace_id: str) -> list[ExecutionRecord]:
        return records().find_by_trace(trace_id)

    @app.get("/api/v1/tasks/user/{user_id}", response_model=ApiRecordPage)
    def tasks_by_user(
        user_id: str,
        page: int = Query(default=0, ge=0),
        size: int = Query(default=20, ge=1, le=200),
    ) -> ApiRecordPage:
        result = records().find_by_user(user_id, page=page, size=size)
        return ApiRecordPage(
            items=result.items, total=result.total, page=result.page, size=result.size
        )

    @app.get("/api/v1/tasks/range", response_model=list[ExecutionRecord])
    def tasks_in_range(start_time: datetime, end_time: datetime) -> list[ExecutionRecord]:
        return records().find_by_time_range(start_time, end_time)

    @app.get("/api/v1/tasks/statistics", response_model=ApiStatistics)
    def task_statistics(
        start_time: datetime | None = None, end_time: datetime | None = None
    ) -> ApiStatistics:
        store = records()
        stats = ApiStatistics(
            agent_statistics=store.handler_statistics(),
            failed_task_count=store.count_by_status("error"),
        )
        if start_time is not None and end_time is not None:
            stats.total_executions = store.count_by_time_range(start_time, end_time)
            stats.start_time = start_time
            stats.end_time = end_time
        return stats

    @app.delete("/api/v1/tasks/cleanup", response_model=CleanupResponse)
    def cleanup_tasks(before: datetime) -> CleanupResponse:
        deleted = records().delete_before(before)
        logger.info("Cleaned up execution records", extra={"deleted": deleted})
        return CleanupResponse(deleted_count=deleted, before=before)

    @app.get("/api/v1/tasks/{task_id}", response_model=ExecutionRecord)
    def get_task(task_id: str) -> ExecutionRecord:
        record = records().get(task_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return record

    @app.delete("/api/v1/tasks/{task_id}", status_code=204)
    def delete_task(task_id: str) -> Response:
        if not records().delete(task_id):
            raise HTTPException(status_code=404, detail="Task not found")
        return Response(status_code=204)

    return app
