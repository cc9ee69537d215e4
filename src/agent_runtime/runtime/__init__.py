"""Execution: the failure-bounded dispatcher and the runtime facade."""

__all__: list[str] = []
