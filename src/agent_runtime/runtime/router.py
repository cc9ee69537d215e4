"""Free-form input to a dispatch-ready task."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from agent_runtime.core.capability import Capability
from agent_runtime.core.errors import InvalidPayload
from agent_runtime.core.lifecycle import TaskState, advance, start
from agent_runtime.core.models import CollectionFailed, ConversationMessage, Task, TaskSelection
from agent_runtime.core.registry import CapabilityRegistry
from agent_runtime.params.binder import BoundParams
from agent_runtime.params.extractor import ParamExtractor
from agent_runtime.routing.classifier import Classifier
from agent_runtime.routing.prompts import HISTORY_KEY

logger = logging.getLogger(__name__)

IMAGES_KEY = "images"


@dataclass(slots=True)
class RoutingOutcome:
    """A routed task and what stands between it and dispatch.

    ``capability`` is None when nothing serves the task's signature.
    ``invalid`` holds the binding error message for a payload of the wrong
    shape. ``collection_failed`` is set when required fields stayed missing.
    """

    task: Task
    capability: Capability | None = None
    params: BoundParams | None = None
    collection_failed: CollectionFailed | None = None
    invalid: str | None = None


class TaskRouter:
    def __init__(
        self,
        registry: CapabilityRegistry,
        classifier: Classifier,
        extractor: ParamExtractor,
    ) -> None:
        self.registry = registry
        self.classifier = classifier
        self.extractor = extractor

    def preview(
        self, user_input: str, context: Mapping[str, Any] | None = None
    ) -> TaskSelection:
        """Classify only; nothing is bound or dispatched."""

        return self.classifier.classify(user_input, context)

    def route_text(
        self,
        user_input: str,
        context: Mapping[str, Any] | None = None,
        *,
        user_id: str | None = None,
    ) -> RoutingOutcome:
        context = dict(context or {})
        selection = self.classifier.classify(user_input, context)
        task = self.build_task(selection, user_input, context, user_id=user_id)
        start(task)
        advance(task, TaskState.CLASSIFIED)
        return self.prepare(task, user_input)

    def route_conversation(
        self,
        messages: Sequence[ConversationMessage],
        *,
        user_id: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> RoutingOutcome:
        """Route the latest user turn with the whole conversation as context.

        Raises:
            ValueError: The conversation holds no user message.
        """
        latest = next((m for m in reversed(messages) if m.role == "user"), None)
        if latest is None:
            raise ValueError("conversation has no user message")

        merged = dict(context or {})
        merged[HISTORY_KEY] = [m.model_dump(mode="json") for m in messages]
        merged["messageCount"] = len(messages)
        if latest.image_urls:
            merged[IMAGES_KEY] = latest.image_urls
        return self.route_text(latest.text_content, merged, user_id=user_id)

    @staticmethod
    def build_task(
        selection: TaskSelection,
        user_input: str,
        context: dict[str, Any],
        *,
        user_id: str | None = None,
    ) -> Task:
        task = Task(
            task_type=selection.task_type,
            domain=selection.domain,
            context=context,
            user_id=user_id,
        )
        task.put_payload("text", user_input)
        task.put_payload("originalInput", user_input)
        for key, value in selection.extracted_params.items():
            task.put_payload(key, value)
        if IMAGES_KEY in context:
            task.put_payload(IMAGES_KEY, context[IMAGES_KEY])
        task.put_context(
            "routingInfo",
            {
                "selectedAgent": selection.capability_name,
                "confidence": selection.confidence,
                "reason": selection.rationale,
            },
        )
        return task

    def prepare(self, task: Task, user_input: str | None = None) -> RoutingOutcome:
        """Look up the capability for a classified task and bind its parameters."""

        capability = self.registry.find(task.task_type, task.domain)
        if capability is None:
            advance(task, TaskState.NO_CAPABILITY)
            return RoutingOutcome(task=task)

        text = user_input if user_input is not None else str(task.payload.get("text", ""))
        try:
            resolution = self.extractor.ensure_params(capability, task, text)
        except InvalidPayload as e:
            logger.warning(
                "Invalid payload",
                extra={"task_id": task.id, "capability": capability.spec.name, "error": str(e)},
            )
            advance(task, TaskState.PARAM_FAILED)
            task.put_context("paramValidationPassed", False)
            return RoutingOutcome(task=task, capability=capability, invalid=str(e))

        if resolution.extraction_attempted:
            advance(task, TaskState.PARAM_PENDING)

        if resolution.collection_failed is not None:
            failed = resolution.collection_failed
            advance(task, TaskState.PARAM_FAILED)
            task.put_context("paramValidationPassed", False)
            task.put_context("paramCollectionFailed", True)
            task.put_context("missingParams", list(failed.missing_fields))
            task.put_context("missingPrompt", failed.prompt)
            return RoutingOutcome(task=task, capability=capability, collection_failed=failed)

        advance(task, TaskState.PARAM_BOUND)
        task.put_context("paramValidationPassed", True)
        for key in ("paramCollectionFailed", "missingParams", "missingPrompt"):
            task.context.pop(key, None)
        return RoutingOutcome(task=task, capability=capability, params=resolution.params)
