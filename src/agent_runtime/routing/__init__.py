"""Routing: intent classification, prompts and the text-to-task front end."""

__all__: list[str] = []
