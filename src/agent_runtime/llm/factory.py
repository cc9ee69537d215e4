"""Provider selection for the classifier, the extractor and built-in capabilities.

One provider instance is shared by everything ``build_runtime`` wires up.
``llama`` needs the optional extra: ``pip install agent-runtime[llama]``.
"""

import logging

from agent_runtime.core.config import LLMConfig
from agent_runtime.llm.llama_provider import LLaMAProvider
from agent_runtime.llm.openai_provider import OpenAIProvider
from agent_runtime.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "llama": LLaMAProvider,
}


class LLMFactory:
    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """Build the provider named by ``config.provider``.

        Raises:
            ValueError: Unknown provider name, or the provider's own settings
                are incomplete (no API key, no model path).
            ImportError: ``llama`` was chosen without the ``llama`` extra.
        """
        provider_cls = PROVIDERS.get(config.provider)
        if provider_cls is None:
            supported = ", ".join(sorted(PROVIDERS))
            raise ValueError(
                f"Unsupported LLM provider {config.provider!r} "
                f"(AGENT_RUNTIME_LLM_PROVIDER must be one of: {supported})"
            )

        logger.info("Creating LLM provider", extra={"provider": config.provider})
        return provider_cls(config)
