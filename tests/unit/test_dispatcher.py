"""Unit tests for the dispatcher failure boundary."""

from __future__ import annotations

import time
from unittest.mock import Mock

from agent_runtime.audit.store import ExecutionRecordStore
from agent_runtime.core.models import ExecutionResult, Task
from agent_runtime.core.registry import CapabilityRegistry
from agent_runtime.runtime.dispatcher import Dispatcher


def _task() -> Task:
    return Task(task_type="report", domain="live", payload={"metrics": {"gmv": 1}})


def test_successful_dispatch_is_stamped_and_recorded(make_capability) -> None:
    """Test a dispatched result is stamped and recorded."""
    registry = CapabilityRegistry()
    registry.register(make_capability("ReportAgent", task_type="report", domain="live"))
    audit = Mock(spec=ExecutionRecordStore)
    task = _task()

    result = Dispatcher(registry, audit).dispatch(task)

    assert result.status == "ok"
    assert result.handler_name == "ReportAgent"
    assert result.latency_ms is not None and result.latency_ms >= 0
    assert result.debug == {"taskType": "report", "domain": "live", "traceId": task.trace_id}
    audit.create_record.assert_called_once_with(task, "ReportAgent")
    audit.update_record.assert_called_once_with(task.id, result)


def test_throwing_handler_becomes_error_result(make_capability) -> None:
    """Test a raising handler becomes an error result."""
    def boom(task: Task) -> ExecutionResult:
        raise RuntimeError("metrics backend unavailable")

    registry = CapabilityRegistry()
    registry.register(
        make_capability("ReportAgent", task_type="report", domain="live", handler=boom)
    )
    audit = Mock(spec=ExecutionRecordStore)

    result = Dispatcher(registry, audit).dispatch(_task())

    assert result.status == "error"
    assert "metrics backend unavailable" in result.summary
    assert result.errors
    updated = audit.update_record.call_args.args[1]
    assert updated.status == "error"


def test_non_result_return_is_an_error(make_capability) -> None:
    """Test a handler returning the wrong type becomes an error result."""
    registry = CapabilityRegistry()
    registry.register(
        make_capability("Bad", task_type="report", domain="live", handler=lambda t: {"ok": True})
    )

    result = Dispatcher(registry).dispatch(_task())

    assert result.status == "error"
    assert "not ExecutionResult" in result.summary


def test_empty_registry_names_signature_in_error() -> None:
    """Test the no-capability error names the signature."""
    audit = Mock(spec=ExecutionRecordStore)
    task = Task(task_type="forecast", domain="shop")

    result = Dispatcher(CapabilityRegistry(), audit).dispatch(task)

    assert result.status == "error"
    assert "forecast" in result.summary
    assert "shop" in result.summary
    assert result.handler_name is None
    audit.create_record.assert_called_once_with(task, None)
    audit.update_record.assert_called_once()


def test_persistence_failures_do_not_change_result(make_capability) -> None:
    """Test audit store failures leave the result unchanged."""
    registry = CapabilityRegistry()
    registry.register(make_capability("ReportAgent", task_type="report", domain="live"))
    audit = Mock(spec=ExecutionRecordStore)
    audit.create_record.side_effect = OSError("disk full")
    audit.update_record.side_effect = OSError("disk full")

    result = Dispatcher(registry, audit).dispatch(_task())

    assert result.status == "ok"


def test_latency_covers_handle_only(make_capability) -> None:
    """Test latency measures only the handler call."""
    def slow(task: Task) -> ExecutionResult:
        time.sleep(0.05)
        return ExecutionResult.ok("done")

    registry = CapabilityRegistry()
    registry.register(make_capability("Slow", task_type="report", domain="live", handler=slow))
    audit = Mock(spec=ExecutionRecordStore)
    audit.create_record.side_effect = lambda *a: time.sleep(0.3)

    result = Dispatcher(registry, audit).dispatch(_task())

    assert 45 <= result.latency_ms < 300


def test_reject_records_pre_dispatch_failure(record_store: ExecutionRecordStore) -> None:
    """Test reject() records a failure before dispatch."""
    task = _task()

    result = Dispatcher(CapabilityRegistry(), record_store).reject(
        task, "ReportAgent", "Invalid payload: metrics"
    )

    assert result.status == "error"
    record = record_store.get(task.id)
    assert record is not None
    assert record.handler_name == "ReportAgent"
    assert record.status == "error"
    assert record.error_message == "Invalid payload: metrics"
