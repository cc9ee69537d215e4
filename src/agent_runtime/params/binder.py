"""Parameter binding against a capability's declared schema.

Binding runs in two steps:

1. structural conversion of every present value to its declared type; a value
   of the wrong shape fails immediately with ``InvalidPayload``;
2. a required-field scan in declaration order that collects *every* missing
   name before failing with ``MissingRequiredParameter``.

Declared defaults only fill string-typed fields. A required field of another
type with a default is still reported missing unless the binder is built with
``fill_non_string_defaults=True``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from pydantic import ConfigDict, TypeAdapter, ValidationError

from agent_runtime.core.capability import ParamSpec, ParamType
from agent_runtime.core.errors import InvalidPayload, MissingRequiredParameter

logger = logging.getLogger(__name__)

_ADAPTERS: dict[ParamType, TypeAdapter[Any]] = {
    ParamType.STRING: TypeAdapter(str, config=ConfigDict(coerce_numbers_to_str=True)),
    ParamType.INTEGER: TypeAdapter(int),
    ParamType.NUMBER: TypeAdapter(float),
    ParamType.BOOLEAN: TypeAdapter(bool),
    ParamType.MAPPING: TypeAdapter(dict[str, Any]),
    ParamType.LIST: TypeAdapter(list[Any]),
    ParamType.ANY: TypeAdapter(Any),
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class BoundParams(Mapping[str, Any]):
    """Read-only view of bound parameter values, keyed by declared name."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"BoundParams({self._values!r})"

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


class ParamBinder:
    def __init__(self, *, fill_non_string_defaults: bool = False) -> None:
        self.fill_non_string_defaults = fill_non_string_defaults

    def bind(self, payload: Mapping[str, Any] | None, specs: Sequence[ParamSpec]) -> BoundParams:
        """Bind ``payload`` to ``specs``.

        Raises:
            InvalidPayload: A present value cannot be converted to its type.
            MissingRequiredParameter: Required fields are absent; lists all of them.
        """
        payload = payload or {}

        converted: dict[str, Any] = {}
        for spec in specs:
            raw = payload.get(spec.name)
            if _is_blank(raw):
                converted[spec.name] = None
                continue
            converted[spec.name] = self._convert(spec, raw)

        missing: list[str] = []
        for spec in specs:
            if converted[spec.name] is not None:
                continue
            default = self._default_for(spec)
            if default is not None:
                converted[spec.name] = default
                logger.debug(
                    "Filled parameter from declared default",
                    extra={"param": spec.name, "default": spec.default_value},
                )
                continue
            if spec.required:
                missing.append(spec.name)

        if missing:
            raise MissingRequiredParameter(missing)

        return BoundParams(converted)

    def _convert(self, spec: ParamSpec, raw: Any) -> Any:
        try:
            return _ADAPTERS[spec.declared_type].validate_python(raw)
        except ValidationError as e:
            expected = spec.declared_type.value
            raise InvalidPayload(
                spec.name, f"expected {expected}, got {type(raw).__name__}"
            ) from e

    def _default_for(self, spec: ParamSpec) -> Any:
        if not spec.default_value:
            return None
        if spec.declared_type is ParamType.STRING:
            return spec.default_value
        if not self.fill_non_string_defaults:
            return None
        try:
            decoded = json.loads(spec.default_value)
        except json.JSONDecodeError:
            decoded = spec.default_value
        try:
            return _ADAPTERS[spec.declared_type].validate_python(decoded)
        except ValidationError:
            logger.warning(
                "Declared default does not match parameter type; ignoring it",
                extra={"param": spec.name, "type": spec.declared_type.value},
            )
            return None

    @staticmethod
    def describe(specs: Sequence[ParamSpec]) -> str:
        """Render one prompt line per parameter for LLM extraction."""

        lines = []
        for spec in specs:
            flag = "[required]" if spec.required else "[optional]"
            example = f" (e.g. {spec.example})" if spec.example else ""
            lines.append(
                f"- {flag} {spec.name} ({spec.declared_type.value}): {spec.description}{example}"
            )
        return "\n".join(lines) + ("\n" if lines else "")
