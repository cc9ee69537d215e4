"""Exceptions raised by the dispatch runtime."""

from __future__ import annotations

from collections.abc import Sequence


class DispatchError(Exception):
    """Base class for runtime errors."""


class ParamBindingError(DispatchError):
    """A payload could not be bound to a capability's parameter schema."""


class InvalidPayload(ParamBindingError):
    """A payload value is present but has the wrong shape for its declared type."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid value for parameter {name!r}: {reason}")


class MissingRequiredParameter(ParamBindingError):
    """One or more required parameters are absent after binding.

    ``names`` lists every missing field in declaration order.
    """

    def __init__(self, names: Sequence[str]) -> None:
        self.names = list(names)
        super().__init__("Missing required parameter(s): " + ", ".join(self.names))
