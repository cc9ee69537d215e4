"""End-to-end tests for routing, binding and dispatch."""

from __future__ import annotations

import json
from unittest.mock import Mock

import pytest

from agent_runtime.audit.store import ExecutionRecordStore
from agent_runtime.core.capability import ParamSpec, ParamType
from agent_runtime.core.config import RoutingConfig
from agent_runtime.core.lifecycle import TaskState, current_state, state_history
from agent_runtime.core.models import (
    CollectionFailed,
    ContentPart,
    ConversationMessage,
    ExecutionResult,
    Task,
)
from agent_runtime.core.registry import CapabilityRegistry
from agent_runtime.params.binder import ParamBinder
from agent_runtime.params.extractor import ParamExtractor
from agent_runtime.routing.classifier import Classifier
from agent_runtime.runtime.dispatcher import Dispatcher
from agent_runtime.runtime.router import TaskRouter
from agent_runtime.runtime.runtime import DispatchRuntime

REPORT_DECISION = json.dumps(
    {"agentName": "ReportAgent", "taskType": "report", "domain": "live", "confidence": 0.9}
)


def _runtime(llm, registry: CapabilityRegistry, store: ExecutionRecordStore) -> DispatchRuntime:
    binder = ParamBinder()
    router = TaskRouter(
        registry,
        Classifier(llm, registry, RoutingConfig(fallback_capability="GenericAgent")),
        ParamExtractor(llm, binder),
    )
    return DispatchRuntime(registry, router, Dispatcher(registry, store), store)


@pytest.fixture
def report_handler() -> Mock:
    return Mock(return_value=ExecutionResult.ok("report ready"))


@pytest.fixture
def registry(make_capability, report_handler: Mock) -> CapabilityRegistry:
    registry = CapabilityRegistry()
    registry.register(
        make_capability(
            "ReportAgent",
            task_type="report",
            domain="live",
            params=[ParamSpec("metrics", declared_type=ParamType.MAPPING)],
            handler=report_handler,
        )
    )
    registry.register(
        make_capability(
            "GenericAgent",
            task_type="analysis",
            domain="generic",
            params=[ParamSpec("text")],
            handler=lambda task: ExecutionResult.ok(f"echo: {task.payload['text']}"),
        )
    )
    return registry


def test_fallback_routes_to_generic_capability(fake_llm, registry, record_store) -> None:
    """Test classifier failure routes to the generic capability."""
    runtime = _runtime(fake_llm(TimeoutError("classifier down")), registry, record_store)

    outcome = runtime.handle_text("summarize: hello")

    assert outcome.result is not None
    assert outcome.result.status == "ok"
    assert outcome.result.handler_name == "GenericAgent"
    assert outcome.result.summary == "echo: summarize: hello"
    assert outcome.task.signature.task_type == "analysis"
    assert outcome.task.payload["originalInput"] == "summarize: hello"
    assert outcome.task.context["routingInfo"]["confidence"] == 0.5
    assert current_state(outcome.task) is TaskState.COMPLETED


def test_missing_params_end_in_collection_failed(
    fake_llm, registry, record_store, report_handler: Mock
) -> None:
    """Test unfillable parameters end in CollectionFailed."""
    runtime = _runtime(fake_llm(REPORT_DECISION, "{}"), registry, record_store)

    outcome = runtime.handle_text("how did the live room do?")

    assert outcome.result is None
    failed = outcome.collection_failed
    assert isinstance(failed, CollectionFailed)
    assert failed.missing_fields == ["metrics"]
    assert "metrics" in failed.prompt
    report_handler.assert_not_called()
    assert record_store.get(outcome.task.id) is None
    assert outcome.task.context["paramCollectionFailed"] is True
    assert outcome.task.context["missingParams"] == ["metrics"]
    assert state_history(outcome.task) == [
        TaskState.CREATED,
        TaskState.CLASSIFIED,
        TaskState.PARAM_PENDING,
        TaskState.PARAM_FAILED,
        TaskState.TERMINATED_AT_PARAM_FAILED,
    ]


def test_handler_fault_is_recorded_as_error(
    fake_llm, registry, record_store, report_handler
) -> None:
    """Test a handler fault is recorded as an error."""
    seen_status: list[str] = []

    def explode(task: Task) -> ExecutionResult:
        record = record_store.get(task.id)
        seen_status.append(record.status if record else "absent")
        raise RuntimeError("warehouse timeout")

    report_handler.side_effect = explode
    runtime = _runtime(fake_llm(), registry, record_store)
    task = Task(task_type="report", domain="live", payload={"metrics": {"gmv": 10}})

    result = runtime.submit(task)

    assert isinstance(result, ExecutionResult)
    assert result.status == "error"
    assert "warehouse timeout" in result.summary
    assert seen_status == ["running"]
    record = record_store.get(task.id)
    assert record is not None
    assert record.status == "error"


def test_extraction_round_trip_dispatches_once(
    fake_llm, make_capability, record_store
) -> None:
    """Test a successful extraction dispatches exactly once."""
    handler = Mock(return_value=ExecutionResult.ok("done"))
    registry = CapabilityRegistry()
    registry.register(
        make_capability(
            "ReportAgent",
            task_type="report",
            domain="live",
            params=[ParamSpec("timeRange", declared_type=ParamType.MAPPING)],
            handler=handler,
        )
    )
    reply = json.dumps(
        {"timeRange": {"start": "2025-01-01T00:00:00", "end": "2025-01-02T00:00:00"}}
    )
    runtime = _runtime(fake_llm(reply), registry, record_store)
    task = Task(task_type="report", domain="live")

    result = runtime.submit(task, "report for yesterday")

    assert isinstance(result, ExecutionResult)
    assert result.status == "ok"
    handler.assert_called_once()
    assert task.payload["timeRange"]["start"] == "2025-01-01T00:00:00"
    assert state_history(task)[1:] == [
        TaskState.CLASSIFIED,
        TaskState.PARAM_PENDING,
        TaskState.PARAM_BOUND,
        TaskState.DISPATCHED,
        TaskState.COMPLETED,
    ]


def test_invalid_payload_is_rejected_without_extraction(
    fake_llm, registry, record_store, report_handler
) -> None:
    """Test an invalid payload is rejected without extraction."""
    llm = fake_llm()
    runtime = _runtime(llm, registry, record_store)
    task = Task(task_type="report", domain="live", payload={"metrics": "not a map"})

    result = runtime.submit(task)

    assert isinstance(result, ExecutionResult)
    assert result.status == "error"
    assert "metrics" in result.summary
    assert llm.calls == []
    report_handler.assert_not_called()
    record = record_store.get(task.id)
    assert record is not None
    assert record.handler_name == "ReportAgent"
    assert current_state(task) is TaskState.TERMINATED_AT_PARAM_FAILED


def test_empty_registry_returns_error_naming_signature(fake_llm, record_store) -> None:
    """Test an empty registry returns an error naming the signature."""
    runtime = _runtime(fake_llm(RuntimeError("down")), CapabilityRegistry(), record_store)

    outcome = runtime.handle_text("anything")

    assert outcome.result is not None
    assert outcome.result.status == "error"
    assert "analysis" in outcome.result.summary
    assert "generic" in outcome.result.summary
    assert current_state(outcome.task) is TaskState.NO_CAPABILITY
    record = record_store.get(outcome.task.id)
    assert record is not None
    assert record.status == "error"


def test_classifier_params_flow_into_payload(
    fake_llm, registry, record_store, report_handler
) -> None:
    """Test classifier-extracted params reach the handler payload."""
    decision = json.dumps(
        {"taskType": "report", "domain": "live", "extractedParams": {"metrics": {"gmv": 5}}}
    )
    runtime = _runtime(fake_llm(decision), registry, record_store)

    outcome = runtime.handle_text("report: gmv was 5", user_id="u1")

    assert outcome.result is not None
    assert outcome.result.status == "ok"
    dispatched: Task = report_handler.call_args.args[0]
    assert dispatched.payload["metrics"] == {"gmv": 5}
    assert dispatched.user_id == "u1"
    assert dispatched.context["paramValidationPassed"] is True


def test_conversation_routes_latest_user_turn(fake_llm, registry, record_store) -> None:
    """Test a conversation routes its latest user turn."""
    llm = fake_llm(RuntimeError("down"))
    runtime = _runtime(llm, registry, record_store)
    messages = [
        ConversationMessage(role="user", content="hi"),
        ConversationMessage(role="assistant", content="hello, how can I help?"),
        ConversationMessage(
            role="user",
            content=[
                ContentPart(type="text", text="what is in this picture?"),
                ContentPart(type="image_url", image_url={"url": "https://img.example/a.png"}),
            ],
        ),
    ]

    outcome = runtime.handle_conversation(messages, user_id="u1")

    assert outcome.result is not None
    assert outcome.result.summary == "echo: what is in this picture?"
    assert outcome.task.context["messageCount"] == 3
    assert outcome.task.payload["images"] == ["https://img.example/a.png"]
    user_prompt = llm.calls[0][1]["content"]
    assert "assistant: hello, how can I help?" in user_prompt
    assert user_prompt.count("what is in this picture?") == 1


def test_conversation_without_user_turn_is_rejected(fake_llm, registry, record_store) -> None:
    """Test a conversation without a user turn is rejected."""
    runtime = _runtime(fake_llm(), registry, record_store)

    with pytest.raises(ValueError):
        runtime.handle_conversation([ConversationMessage(role="assistant", content="hi")])


def test_resubmitting_after_collection_failure_starts_a_new_run(
    fake_llm, registry, record_store, report_handler
) -> None:
    """Test a task completed by the user after CollectionFailed dispatches normally."""
    runtime = _runtime(fake_llm("{}"), registry, record_store)
    task = Task(task_type="report", domain="live")

    first = runtime.submit(task, "how did the live room do?")
    assert isinstance(first, CollectionFailed)

    task.put_payload("metrics", {"gmv": 1200})
    second = runtime.submit(task)

    assert isinstance(second, ExecutionResult)
    assert second.status == "ok"
    assert "missingParams" not in task.context
    report_handler.assert_called_once()
    assert state_history(task) == [
        TaskState.CREATED,
        TaskState.CLASSIFIED,
        TaskState.PARAM_BOUND,
        TaskState.DISPATCHED,
        TaskState.COMPLETED,
    ]
    record = record_store.get(task.id)
    assert record is not None
    assert record.status == "ok"


def test_rerun_updates_the_newest_record(fake_llm, registry, record_store) -> None:
    """Test running a task twice leaves no record stuck in running."""
    runtime = _runtime(fake_llm(), registry, record_store)
    task = Task(task_type="report", domain="live", payload={"metrics": {"gmv": 1}})

    runtime.submit(task)
    runtime.submit(task)

    records = [r for r in record_store.list() if r.task_id == task.id]
    assert [r.status for r in records] == ["ok", "ok"]


@pytest.mark.parametrize(
    "lifecycle",
    [
        {"state": "queued"},
        {"state": "completed", "history": ["created", "completed"]},
        "not a mapping",
    ],
)
def test_caller_supplied_lifecycle_is_replaced(
    fake_llm, registry, record_store, lifecycle
) -> None:
    """Test a lifecycle entry in the caller's context never breaks dispatch."""
    runtime = _runtime(fake_llm(RuntimeError("down")), registry, record_store)
    task = Task(
        task_type="report",
        domain="live",
        payload={"metrics": {"gmv": 1}},
        context={"lifecycle": lifecycle},
    )

    result = runtime.submit(task)
    outcome = runtime.handle_text("summarize: hi", {"lifecycle": lifecycle})

    assert isinstance(result, ExecutionResult)
    assert result.status == "ok"
    assert current_state(task) is TaskState.COMPLETED
    assert outcome.result is not None
    assert outcome.result.status == "ok"
    assert state_history(outcome.task)[0] is TaskState.CREATED
