"""Prompt construction for capability selection and parameter extraction."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from agent_runtime.core.capability import Capability, ParamSpec
from agent_runtime.core.models import ConversationMessage
from agent_runtime.params.binder import ParamBinder

logger = logging.getLogger(__name__)

HISTORY_KEY = "conversationHistory"

_SELECTION_SCHEMA = """{
  "agentName": "name of the selected capability",
  "taskType": "task type",
  "domain": "business domain",
  "confidence": 0.95,
  "reason": "why this capability was chosen",
  "extractedParams": {
    "key": "parameter value stated in the user input"
  }
}"""


def build_selection_prompt(capabilities: Sequence[Capability], fallback_name: str) -> str:
    lines = [
        "You are an intelligent task router. Based on the user input and the "
        "conversation history, choose the single most suitable capability below.",
        "",
        "Available capabilities:",
    ]
    for index, capability in enumerate(capabilities, start=1):
        spec = capability.spec
        lines.append(f"{index}. {spec.name}")
        lines.append(f"   - Domains: {', '.join(spec.domains)}")
        lines.append(f"   - Task type: {', '.join(spec.task_types)}")
        lines.append(f"   - Description: {spec.description}")
        if spec.param_specs:
            params = ", ".join(
                p.name + ("" if p.required else "?") for p in spec.param_specs
            )
            lines.append(f"   - Parameters: {params}")
        lines.append("")

    lines.append("Analyse the user input and reply with JSON in exactly this shape:")
    lines.append(_SELECTION_SCHEMA)
    lines.append("")
    lines.append(f"If the user input is unclear, choose {fallback_name}.")
    return "\n".join(lines)


def recent_history(
    history: Any, current_input: str, limit: int
) -> list[ConversationMessage]:
    """Return up to ``limit`` recent turns, oldest first, minus the active query.

    The window is taken first and the active query dropped afterwards, so at
    most ``limit - 1`` turns come back when the history already ends with it.
    Entries that are not conversation messages are skipped.
    """

    if not isinstance(history, list) or limit <= 0:
        return []

    messages: list[ConversationMessage] = []
    for item in history[-limit:]:
        if isinstance(item, ConversationMessage):
            messages.append(item)
            continue
        try:
            messages.append(ConversationMessage.model_validate(item))
        except ValidationError:
            logger.debug("Skipping malformed conversation entry")

    if messages and messages[-1].role == "user" and messages[-1].text_content == current_input:
        messages.pop()
    return messages


def build_user_prompt(user_input: str, history: Iterable[ConversationMessage]) -> str:
    turns = list(history)
    if not turns:
        return user_input
    lines = ["Conversation history:"]
    lines.extend(f"{m.role}: {m.text_content}" for m in turns)
    lines.append("")
    lines.append(f"Current user input: {user_input}")
    return "\n".join(lines)


def build_extraction_prompt(
    missing: Sequence[ParamSpec],
    user_input: str,
    history: Iterable[ConversationMessage],
    now: datetime,
) -> str:
    return f"""You are a parameter extraction assistant. Extract the following parameters
from the user input and the conversation history.

Parameters to extract:
{ParamBinder.describe(missing)}
Rules:
1. Only extract values that are explicitly stated. Never guess.
2. Convert relative dates and times to absolute timestamps (YYYY-MM-DD HH:MM:SS).
   The current time is {now.strftime("%Y-%m-%d %H:%M:%S")}.
   - "yesterday" becomes the concrete date
   - "last 7 days" becomes a start and an end timestamp
3. Omit any parameter you cannot determine.
4. Reply with a single JSON object keyed by parameter name.

User input (with context): "{build_user_prompt(user_input, history)}"
"""


def _hint(spec: ParamSpec) -> str:
    name = spec.name
    lowered = name.lower()
    detail = f": {spec.description}" if spec.description else ""
    if "time" in lowered:
        return (
            f"**Time range** (`{name}`){detail}\n"
            '   e.g. "yesterday", "2025-01-01" or "2025-01-01 to 2025-01-07"'
        )
    if "filter" in lowered:
        return (
            f"**Filters** (`{name}`){detail}\n"
            '   e.g. "channel = app", "region = EU"'
        )
    return f"Please provide `{name}`{detail}"


def build_missing_params_prompt(missing: Sequence[ParamSpec]) -> str:
    """User-facing request for the fields that could not be collected."""

    lines = ["To help you further I still need the following information:", ""]
    for index, spec in enumerate(missing, start=1):
        lines.append(f"{index}. {_hint(spec)}")
    lines.append("")
    lines.append("Please add the details above.")
    return "\n".join(lines)
