"""Parameter binding and second-chance extraction."""

__all__: list[str] = []
