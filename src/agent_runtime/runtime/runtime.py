"""Runtime facade: routing, binding and dispatch wired together."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from agent_runtime.audit.store import ExecutionRecordStore
from agent_runtime.capabilities import register_builtin_capabilities
from agent_runtime.core.config import RuntimeConfig
from agent_runtime.core.lifecycle import TaskState, advance, start
from agent_runtime.core.models import CollectionFailed, ConversationMessage, ExecutionResult, Task
from agent_runtime.core.registry import CapabilityRegistry
from agent_runtime.llm.factory import LLMFactory
from agent_runtime.llm.provider import LLMProvider
from agent_runtime.params.binder import ParamBinder
from agent_runtime.params.extractor import ParamExtractor
from agent_runtime.routing.classifier import Classifier
from agent_runtime.runtime.dispatcher import Dispatcher
from agent_runtime.runtime.router import RoutingOutcome, TaskRouter

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """Final outcome of one task: a result, or a request for more input."""

    task: Task
    result: ExecutionResult | None = None
    collection_failed: CollectionFailed | None = None

    @property
    def value(self) -> ExecutionResult | CollectionFailed:
        if self.result is not None:
            return self.result
        assert self.collection_failed is not None
        return self.collection_failed


class DispatchRuntime:
    def __init__(
        self,
        registry: CapabilityRegistry,
        router: TaskRouter,
        dispatcher: Dispatcher,
        records: ExecutionRecordStore | None = None,
    ) -> None:
        self.registry = registry
        self.router = router
        self.dispatcher = dispatcher
        self.records = records

    def submit(
        self, task: Task, user_input: str | None = None
    ) -> ExecutionResult | CollectionFailed:
        """Run a structured task whose signature is already known."""

        return self.run(task, user_input).value

    def run(self, task: Task, user_input: str | None = None) -> DispatchOutcome:
        # Structured tasks skip classification.
        start(task)
        advance(task, TaskState.CLASSIFIED)
        return self.complete(self.router.prepare(task, user_input))

    def handle_text(
        self,
        user_input: str,
        context: Mapping[str, Any] | None = None,
        *,
        user_id: str | None = None,
    ) -> DispatchOutcome:
        return self.complete(self.router.route_text(user_input, context, user_id=user_id))

    def handle_conversation(
        self,
        messages: Sequence[ConversationMessage],
        *,
        user_id: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> DispatchOutcome:
        return self.complete(
            self.router.route_conversation(messages, user_id=user_id, context=context)
        )

    def complete(self, outcome: RoutingOutcome) -> DispatchOutcome:
        """Take a routed task to its terminal state."""

        task = outcome.task
        if outcome.capability is None:
            return DispatchOutcome(task, result=self.dispatcher.no_capability(task))

        if outcome.invalid is not None:
            advance(task, TaskState.TERMINATED_AT_PARAM_FAILED)
            result = self.dispatcher.reject(
                task, outcome.capability.spec.name, f"Invalid payload: {outcome.invalid}"
            )
            return DispatchOutcome(task, result=result)

        if outcome.collection_failed is not None:
            advance(task, TaskState.TERMINATED_AT_PARAM_FAILED)
            logger.info(
                "Task needs more input from the user",
                extra={"task_id": task.id, "missing": outcome.collection_failed.missing_fields},
            )
            return DispatchOutcome(task, collection_failed=outcome.collection_failed)

        advance(task, TaskState.DISPATCHED)
        result = self.dispatcher.dispatch(task, outcome.capability)
        advance(task, TaskState.COMPLETED)
        return DispatchOutcome(task, result=result)


def build_runtime(
    config: RuntimeConfig | None = None, llm: LLMProvider | None = None
) -> DispatchRuntime:
    """Assemble a runtime with the built-in capabilities registered.

    Args:
        config: Runtime settings; read from the environment when omitted.
        llm: Model provider; created from ``config.llm`` when omitted.
    """
    config = config or RuntimeConfig()
    llm = llm or LLMFactory.create(config.llm)

    binder = ParamBinder(fill_non_string_defaults=config.routing.fill_non_string_defaults)
    registry = CapabilityRegistry()
    register_builtin_capabilities(registry, llm, binder)

    records = ExecutionRecordStore(config.audit.records_file) if config.audit.enabled else None
    classifier = Classifier(llm, registry, config.routing)
    extractor = ParamExtractor(llm, binder, history_limit=config.routing.history_limit)
    router = TaskRouter(registry, classifier, extractor)
    return DispatchRuntime(registry, router, Dispatcher(registry, records), records)
