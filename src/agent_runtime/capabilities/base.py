"""Base class for capabilities with a declared parameter schema."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from agent_runtime.core.capability import CapabilitySpec
from agent_runtime.core.errors import ParamBindingError
from agent_runtime.core.models import ExecutionResult, Task
from agent_runtime.params.binder import BoundParams, ParamBinder

logger = logging.getLogger(__name__)


class BaseCapability(ABC):
    """Bind the task payload against ``spec.param_specs``, then ``execute``.

    Subclasses set ``spec`` and implement ``execute``. A payload that does not
    bind becomes an error result; anything ``execute`` raises is left to the
    dispatcher.
    """

    spec: CapabilitySpec

    def __init__(self, binder: ParamBinder | None = None) -> None:
        self.binder = binder or ParamBinder()

    @property
    def name(self) -> str:
        return self.spec.name

    def handle(self, task: Task) -> ExecutionResult:
        try:
            params = self.binder.bind(task.payload, self.spec.param_specs)
        except ParamBindingError as e:
            logger.warning(
                "Parameter validation failed",
                extra={"capability": self.name, "task_id": task.id, "error": str(e)},
            )
            return ExecutionResult.error(f"Parameter validation failed: {e}")

        logger.info("Handling task", extra={"capability": self.name, "task_id": task.id})
        return self.execute(task, params)

    @abstractmethod
    def execute(self, task: Task, params: BoundParams) -> ExecutionResult:
        """Run the capability with bound and validated parameters."""
