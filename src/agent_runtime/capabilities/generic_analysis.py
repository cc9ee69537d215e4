"""General-purpose analysis of free text and images."""

from __future__ import annotations

import logging
from typing import Any

from agent_runtime.capabilities.base import BaseCapability
from agent_runtime.core.capability import CapabilitySpec, ParamSpec, ParamType
from agent_runtime.core.models import ExecutionResult, Task
from agent_runtime.llm.provider import LLMProvider
from agent_runtime.params.binder import BoundParams, ParamBinder

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional analysis assistant. Summarise the key points of the "
    "user input and extract the essential information."
)
DEFAULT_IMAGE_PROMPT = "Please analyse these images."


def image_url(image: Any) -> str | None:
    """Normalise one image reference to a URL the model API accepts.

    Accepts a plain URL or data URL, ``{"url": ...}``, or
    ``{"base64Data": ..., "mimeType": ...}``.
    """

    if isinstance(image, str):
        return image or None
    if not isinstance(image, dict):
        return None
    if image.get("url"):
        return str(image["url"])
    data = image.get("base64Data")
    if not data:
        return None
    mime = image.get("mimeType") or "image/jpeg"
    return f"data:{mime};base64,{data}"


class GenericAnalysisAgent(BaseCapability):
    spec = CapabilitySpec.create(
        "GenericAnalysisAgent",
        task_type="analysis",
        domains=["generic"],
        description="Generic analysis agent powered by an LLM (supports images)",
        params=[
            ParamSpec(
                "text",
                description="User text to analyse",
                example="summarize: yesterday's sales dropped 10%",
            ),
            ParamSpec(
                "images",
                declared_type=ParamType.LIST,
                required=False,
                description="Uploaded images as URLs or base64 data",
            ),
        ],
    )

    def __init__(self, llm: LLMProvider, binder: ParamBinder | None = None) -> None:
        super().__init__(binder)
        self.llm = llm

    def execute(self, task: Task, params: BoundParams) -> ExecutionResult:
        text: str = params["text"]
        urls = [u for u in (image_url(i) for i in params.get("images") or []) if u]

        if urls:
            logger.info(
                "Running multimodal analysis",
                extra={"task_id": task.id, "image_count": len(urls)},
            )
            content: list[dict[str, Any]] = [
                {"type": "text", "text": text or DEFAULT_IMAGE_PROMPT}
            ]
            content.extend({"type": "image_url", "image_url": {"url": u}} for u in urls)
            response = self.llm.complete([{"role": "user", "content": content}])
        else:
            response = self.llm.chat(SYSTEM_PROMPT, text)

        return ExecutionResult.ok(
            response,
            {"raw_input": text, "image_count": len(urls), "analysis": response},
        )
