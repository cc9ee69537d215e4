"""Capability contract and the static metadata describing a capability."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from agent_runtime.core.models import ExecutionResult, Task, TaskSignature


class ParamType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    MAPPING = "mapping"
    LIST = "list"
    ANY = "any"


@dataclass(frozen=True, slots=True)
class ParamSpec:
    """Declarative metadata for one capability parameter.

    ``default_value`` is kept as text; by default it is only applied to
    fields whose declared type is string (see ``ParamBinder``).
    """

    name: str
    declared_type: ParamType = ParamType.STRING
    required: bool = True
    description: str = ""
    example: str = ""
    default_value: str | None = None


@dataclass(frozen=True, slots=True)
class CapabilitySpec:
    name: str
    signatures: frozenset[TaskSignature]
    param_specs: tuple[ParamSpec, ...] = ()
    description: str = ""
    version: str = "1.0.0"

    @classmethod
    def create(
        cls,
        name: str,
        *,
        task_type: str,
        domains: Iterable[str],
        params: Iterable[ParamSpec] = (),
        description: str = "",
        version: str = "1.0.0",
    ) -> CapabilitySpec:
        """Build a spec for a capability serving one task type across domains."""

        return cls(
            name=name,
            signatures=frozenset(TaskSignature(task_type, d) for d in domains),
            param_specs=tuple(params),
            description=description or f"Capability implementation: {name}",
            version=version,
        )

    @property
    def domains(self) -> list[str]:
        return sorted({s.domain for s in self.signatures})

    @property
    def task_types(self) -> list[str]:
        return sorted({s.task_type for s in self.signatures})


@runtime_checkable
class Capability(Protocol):
    """Anything with a spec and a ``handle`` method can be registered."""

    spec: CapabilitySpec

    def handle(self, task: Task) -> ExecutionResult: ...


@dataclass(frozen=True, slots=True)
class FunctionCapability:
    """Adapt a plain ``Task -> ExecutionResult`` callable to the contract."""

    spec: CapabilitySpec
    handler: Callable[[Task], ExecutionResult] = field(repr=False)

    def handle(self, task: Task) -> ExecutionResult:
        return self.handler(task)
