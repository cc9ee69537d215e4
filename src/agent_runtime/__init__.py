"""Agent Runtime.

Dispatch runtime for pluggable capabilities:
- capability registry keyed by (task type, domain)
- LLM-backed intent classification with a deterministic fallback
- parameter binding with a second-chance LLM extraction pass
- failure-bounded execution with a JSON-file audit trail
"""

__version__ = "0.1.0"

from agent_runtime.core.config import RuntimeConfig
from agent_runtime.runtime.runtime import DispatchRuntime, build_runtime

__all__ = ["__version__", "DispatchRuntime", "RuntimeConfig", "build_runtime"]
