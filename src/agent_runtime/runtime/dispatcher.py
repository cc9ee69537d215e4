"""Failure-bounded capability invocation with audit records."""

from __future__ import annotations

import logging
import time

from agent_runtime.audit.store import AuditStore
from agent_runtime.core.capability import Capability
from agent_runtime.core.models import ExecutionResult, Task
from agent_runtime.core.registry import CapabilityRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    """Invoke the capability serving a task and record the outcome.

    Nothing raised by a capability or by the audit store escapes ``dispatch``;
    the caller always gets an ``ExecutionResult``.
    """

    def __init__(self, registry: CapabilityRegistry, audit: AuditStore | None = None) -> None:
        self.registry = registry
        self.audit = audit

    def dispatch(self, task: Task, capability: Capability | None = None) -> ExecutionResult:
        capability = capability or self.registry.find(task.task_type, task.domain)
        if capability is None:
            return self.no_capability(task)

        name = capability.spec.name
        self._create(task, name)
        logger.debug(
            "Dispatching task",
            extra={
                "task_id": task.id,
                "capability": name,
                "task_type": task.task_type,
                "domain": task.domain,
                "trace_id": task.trace_id,
            },
        )

        # Latency covers handle() only.
        started = time.perf_counter()
        try:
            result = capability.handle(task)
            if not isinstance(result, ExecutionResult):
                raise TypeError(
                    f"{name}.handle returned {type(result).__name__}, not ExecutionResult"
                )
        except Exception as e:
            logger.exception(
                "Capability raised during execution",
                extra={"task_id": task.id, "capability": name},
            )
            result = ExecutionResult.error(f"{name} failed: {e}")
        latency_ms = int((time.perf_counter() - started) * 1000)

        self._stamp(result, task, handler_name=name, latency_ms=latency_ms)
        self._update(task, result)
        logger.info(
            "Task completed",
            extra={
                "task_id": task.id,
                "capability": name,
                "status": result.status,
                "latency_ms": latency_ms,
            },
        )
        return result

    def no_capability(self, task: Task) -> ExecutionResult:
        """Record and return the error for a task nothing can serve."""

        logger.error(
            "No capability for task",
            extra={"task_id": task.id, "task_type": task.task_type, "domain": task.domain},
        )
        return self.reject(task, None, f"no capability for {task.task_type}/{task.domain}")

    def reject(self, task: Task, handler_name: str | None, message: str) -> ExecutionResult:
        """Record a task that failed before reaching its capability."""

        result = ExecutionResult.error(message)
        self._stamp(result, task, handler_name=handler_name, latency_ms=0)
        self._create(task, handler_name)
        self._update(task, result)
        return result

    @staticmethod
    def _stamp(
        result: ExecutionResult, task: Task, *, handler_name: str | None, latency_ms: int
    ) -> None:
        result.latency_ms = latency_ms
        result.handler_name = handler_name
        result.add_debug("taskType", task.task_type)
        result.add_debug("domain", task.domain)
        result.add_debug("traceId", task.trace_id)

    def _create(self, task: Task, handler_name: str | None) -> None:
        if self.audit is None:
            return
        try:
            self.audit.create_record(task, handler_name)
        except Exception:
            logger.exception("Failed to create execution record", extra={"task_id": task.id})

    def _update(self, task: Task, result: ExecutionResult) -> None:
        if self.audit is None:
            return
        try:
            self.audit.update_record(task.id, result)
        except Exception:
            logger.exception("Failed to update execution record", extra={"task_id": task.id})
