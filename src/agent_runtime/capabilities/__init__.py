"""Built-in capabilities and their startup registration."""

from __future__ import annotations

from agent_runtime.capabilities.base import BaseCapability
from agent_runtime.capabilities.generic_analysis import GenericAnalysisAgent
from agent_runtime.capabilities.live_report import LiveReportAgent
from agent_runtime.core.registry import CapabilityRegistry
from agent_runtime.llm.provider import LLMProvider
from agent_runtime.params.binder import ParamBinder


def register_builtin_capabilities(
    registry: CapabilityRegistry,
    llm: LLMProvider,
    binder: ParamBinder | None = None,
) -> None:
    """Register the capabilities shipped with the runtime."""

    registry.register(GenericAnalysisAgent(llm, binder))
    registry.register(LiveReportAgent(binder))


__all__ = [
    "BaseCapability",
    "GenericAnalysisAgent",
    "LiveReportAgent",
    "register_builtin_capabilities",
]
