"""Core package initialization."""

from agent_runtime.core.capability import (
    Capability,
    CapabilitySpec,
    FunctionCapability,
    ParamSpec,
    ParamType,
)
from agent_runtime.core.config import RuntimeConfig
from agent_runtime.core.models import (
    CollectionFailed,
    ExecutionResult,
    Task,
    TaskSelection,
    TaskSignature,
)
from agent_runtime.core.registry import CapabilityRegistry

__all__ = [
    "Capability",
    "CapabilityRegistry",
    "CapabilitySpec",
    "CollectionFailed",
    "ExecutionResult",
    "FunctionCapability",
    "ParamSpec",
    "ParamType",
    "RuntimeConfig",
    "Task",
    "TaskSelection",
    "TaskSignature",
]
