"""Second-chance parameter collection.

When binding reports missing required fields, one narrow model call asks for
exactly those fields. Whatever comes back is merged into the task payload and
binding runs again. If fields are still missing the caller gets a
``CollectionFailed`` with a prompt to show the user.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from agent_runtime.core.capability import Capability
from agent_runtime.core.errors import MissingRequiredParameter
from agent_runtime.core.models import CollectionFailed, Task
from agent_runtime.llm.provider import LLMProvider
from agent_runtime.params.binder import BoundParams, ParamBinder
from agent_runtime.routing.json_response import (
    load_json_object,
    outermost_object,
    strip_code_fence,
)
from agent_runtime.routing.prompts import (
    HISTORY_KEY,
    build_extraction_prompt,
    build_missing_params_prompt,
    recent_history,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ParamResolution:
    """Outcome of ``ParamExtractor.ensure_params``.

    Exactly one of ``params`` or ``collection_failed`` is set.
    """

    params: BoundParams | None = None
    collection_failed: CollectionFailed | None = None
    extraction_attempted: bool = False
    extracted_fields: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.params is not None


class ParamExtractor:
    def __init__(
        self,
        llm: LLMProvider,
        binder: ParamBinder | None = None,
        *,
        history_limit: int = 10,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.llm = llm
        self.binder = binder or ParamBinder()
        self.history_limit = history_limit
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def ensure_params(
        self, capability: Capability, task: Task, user_input: str
    ) -> ParamResolution:
        """Bind the task payload, extracting missing fields once if needed.

        Raises:
            InvalidPayload: A payload value has the wrong shape; no extraction
                is attempted.
        """
        specs = capability.spec.param_specs
        try:
            return ParamResolution(params=self.binder.bind(task.payload, specs))
        except MissingRequiredParameter as e:
            missing = e.names

        logger.info(
            "Required parameters missing, attempting extraction",
            extra={"capability": capability.spec.name, "missing": missing},
        )
        extracted = self.extract(capability, task, missing, user_input)
        for key, value in extracted.items():
            task.put_payload(key, value)

        try:
            params = self.binder.bind(task.payload, specs)
        except MissingRequiredParameter as e:
            still_missing = [s for s in specs if s.name in set(e.names)]
            logger.warning(
                "Parameter collection failed",
                extra={"capability": capability.spec.name, "missing": e.names},
            )
            return ParamResolution(
                collection_failed=CollectionFailed(
                    missing_fields=[s.name for s in still_missing],
                    prompt=build_missing_params_prompt(still_missing),
                ),
                extraction_attempted=True,
                extracted_fields=tuple(extracted),
            )

        return ParamResolution(
            params=params, extraction_attempted=True, extracted_fields=tuple(extracted)
        )

    def extract(
        self,
        capability: Capability,
        task: Task,
        missing: list[str],
        user_input: str,
    ) -> dict[str, Any]:
        """Ask the model for ``missing`` fields; any failure yields ``{}``."""

        wanted = [s for s in capability.spec.param_specs if s.name in set(missing)]
        history = recent_history(task.context.get(HISTORY_KEY), user_input, self.history_limit)
        try:
            system_prompt = build_extraction_prompt(wanted, user_input, history, self._clock())
            logger.debug("Parameter extraction prompt", extra={"prompt": system_prompt})
            response = self.llm.chat(system_prompt, user_input)
            decoded = load_json_object(outermost_object(strip_code_fence(response)))
        except Exception as e:
            logger.warning(
                "Parameter extraction failed, treating as no fields extracted",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return {}

        extracted = {k: v for k, v in decoded.items() if v is not None}
        if extracted:
            logger.info("Extracted parameters", extra={"fields": sorted(extracted)})
        return extracted
