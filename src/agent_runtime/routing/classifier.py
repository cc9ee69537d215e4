"""Intent classification: free-form input to a capability selection."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from agent_runtime.core.config import RoutingConfig
from agent_runtime.core.models import TaskSelection, TaskSignature
from agent_runtime.core.registry import CapabilityRegistry
from agent_runtime.llm.provider import LLMProvider
from agent_runtime.routing.json_response import load_json_object, strip_code_fence
from agent_runtime.routing.prompts import (
    HISTORY_KEY,
    build_selection_prompt,
    build_user_prompt,
    recent_history,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.5
FALLBACK_REASON = "default fallback"


class Classifier:
    """Select a capability for user input with one model call.

    Every failure on the way (transport error, timeout, unparseable or empty
    reply) degrades to the deterministic default selection. ``classify`` never
    raises.
    """

    def __init__(
        self,
        llm: LLMProvider,
        registry: CapabilityRegistry,
        routing: RoutingConfig | None = None,
    ) -> None:
        self.llm = llm
        self.registry = registry
        self.routing = routing or RoutingConfig()

    def default_selection(self) -> TaskSelection:
        return TaskSelection(
            capability_name=self.routing.fallback_capability,
            signature=TaskSignature(
                self.routing.fallback_task_type, self.routing.fallback_domain
            ),
            confidence=FALLBACK_CONFIDENCE,
            rationale=FALLBACK_REASON,
            extracted_params={},
        )

    def classify(
        self, user_input: str, context: Mapping[str, Any] | None = None
    ) -> TaskSelection:
        context = context or {}
        history = recent_history(
            context.get(HISTORY_KEY), user_input, self.routing.history_limit
        )
        try:
            system_prompt = build_selection_prompt(
                self.registry.all(), self.routing.fallback_capability
            )
            response = self.llm.chat(system_prompt, build_user_prompt(user_input, history))
            selection = self.parse_selection(response)
        except Exception as e:
            logger.warning(
                "Classification failed, using default selection",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return self.default_selection()

        logger.info(
            "Classified input",
            extra={
                "capability": selection.capability_name,
                "signature": str(selection.signature),
                "confidence": selection.confidence,
            },
        )
        return selection

    def parse_selection(self, response: str) -> TaskSelection:
        """Parse a model decision.

        Raises:
            ValueError: The reply holds no usable decision.
        """
        if not response or not response.strip():
            raise ValueError("empty classifier response")

        decision = load_json_object(strip_code_fence(response))
        task_type = decision.get("taskType")
        domain = decision.get("domain")
        if not isinstance(task_type, str) or not task_type.strip():
            raise ValueError("classifier response has no taskType")
        if not isinstance(domain, str) or not domain.strip():
            raise ValueError("classifier response has no domain")

        extracted = decision.get("extractedParams")
        return TaskSelection(
            capability_name=str(decision.get("agentName") or ""),
            signature=TaskSignature(task_type.strip(), domain.strip()),
            confidence=float(decision.get("confidence", DEFAULT_CONFIDENCE)),
            rationale=str(decision.get("reason") or ""),
            extracted_params=extracted if isinstance(extracted, dict) else {},
        )
