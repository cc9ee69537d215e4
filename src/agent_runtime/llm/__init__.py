"""LLM package initialization."""

from agent_runtime.llm.factory import LLMFactory
from agent_runtime.llm.provider import LLMProvider

__all__ = [
    "LLMFactory",
    "LLMProvider",
]
