"""Audit trail for dispatched tasks."""

__all__: list[str] = []
