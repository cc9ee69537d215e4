"""Local LLaMA LLM provider implementation."""

import logging
from typing import Any

from agent_runtime.core.config import LLMConfig
from agent_runtime.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


def _text_only(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    # llama.cpp chat templates take plain strings; image parts are dropped.
    flattened: list[dict[str, str]] = []
    for message in messages:
        content = message.get("content", "")
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") for part in content if part.get("type") == "text"
            )
        flattened.append({"role": message["role"], "content": str(content)})
    return flattened


class LLaMAProvider(LLMProvider):
    """Local LLaMA model provider implementation.

    Requires llama-cpp-python to be installed:
        pip install agent-runtime[llama]

    Local inference has no request timeout; ``LLMConfig.timeout_seconds`` only
    applies to remote providers.
    """

    def __init__(self, config: LLMConfig) -> None:
        """Initialize the LLaMA provider.

        Args:
            config: LLM configuration.

        Raises:
            ValueError: If model path is not provided.
            ImportError: If llama-cpp-python is not installed.
        """
        if not config.llama_model_path:
            raise ValueError("LLaMA model path is required")

        try:
            from llama_cpp import Llama
        except ImportError as e:
            raise ImportError(
                "llama-cpp-python is required for LLaMA provider. "
                "Install it with: pip install agent-runtime[llama]"
            ) from e

        self.config = config

        logger.info(f"Loading LLaMA model from: {config.llama_model_path}")

        self.llm = Llama(
            model_path=str(config.llama_model_path),
            n_ctx=config.llama_n_ctx,
            n_threads=config.llama_n_threads,
            verbose=False,
        )

        logger.info("LLaMA model loaded successfully")

    def complete(
        self,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Generate chat completion using local LLaMA model.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            **kwargs: Additional llama-cpp-specific parameters.

        Returns:
            Generated chat response.
        """
        logger.debug(f"Generating chat completion with {len(messages)} messages")

        result = self.llm.create_chat_completion(
            messages=_text_only(messages),
            max_tokens=max_tokens or 512,
            temperature=temperature if temperature is not None else 0.7,
            **kwargs,
        )

        content = result["choices"][0]["message"]["content"] or ""
        logger.debug(f"Generated {len(content)} characters")

        return content
