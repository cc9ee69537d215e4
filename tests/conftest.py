"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

from agent_runtime.audit.store import ExecutionRecordStore
from agent_runtime.core.capability import CapabilitySpec, FunctionCapability, ParamSpec
from agent_runtime.core.config import AuditConfig, LLMConfig, RoutingConfig, RuntimeConfig
from agent_runtime.core.models import ExecutionResult, Task
from agent_runtime.llm.provider import LLMProvider


class FakeLLM(LLMProvider):
    """Scripted provider: each call pops the next reply; exceptions are raised."""

    def __init__(self, *replies: str | BaseException) -> None:
        self.replies = list(replies)
        self.calls: list[list[dict[str, Any]]] = []

    def complete(
        self,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        self.calls.append(messages)
        if not self.replies:
            raise RuntimeError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def fake_llm() -> type[FakeLLM]:
    """Provide the scripted LLM provider class."""
    return FakeLLM


@pytest.fixture
def make_capability() -> Callable[..., FunctionCapability]:
    """Build a capability from a handler and a short signature description."""

    def _make(
        name: str,
        *,
        task_type: str,
        domain: str,
        params: Iterable[ParamSpec] = (),
        handler: Callable[[Task], ExecutionResult] | None = None,
    ) -> FunctionCapability:
        spec = CapabilitySpec.create(
            name, task_type=task_type, domains=[domain], params=params
        )
        return FunctionCapability(
            spec=spec, handler=handler or (lambda task: ExecutionResult.ok(f"{name} done"))
        )

    return _make


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    path = tmp_path / "agent_state"
    path.mkdir()
    return path


@pytest.fixture
def record_store(state_dir: Path) -> ExecutionRecordStore:
    return ExecutionRecordStore(state_dir / "executions.json")


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
    )


@pytest.fixture
def runtime_config(llm_config: LLMConfig, state_dir: Path) -> RuntimeConfig:
    """Provide a test runtime configuration."""
    return RuntimeConfig(
        log_level="DEBUG",
        llm=llm_config,
        routing=RoutingConfig(),
        audit=AuditConfig(storage_path=state_dir),
    )
