"""HTTP adapter over the dispatch runtime."""

from agent_runtime.server.app import create_app

__all__ = ["create_app"]
