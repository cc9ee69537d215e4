"""Capability registry.

Capabilities are indexed by unique name and by every (task type, domain)
signature they serve. Lookups never take a lock: writers build new indexes
and swap them in whole, so a reader always sees a consistent bucket and the
capability behind it. Writers are serialized among themselves only.
"""

from __future__ import annotations

import logging
import threading

from agent_runtime.core.capability import Capability
from agent_runtime.core.models import TaskSignature

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """Concurrent index of capabilities by name and by signature."""

    def __init__(self) -> None:
        self._by_name: dict[str, Capability] = {}
        self._by_signature: dict[TaskSignature, tuple[str, ...]] = {}
        self._write_lock = threading.Lock()

    def register(self, capability: Capability) -> None:
        """Register ``capability``; a duplicate name replaces the earlier one."""

        spec = capability.spec
        with self._write_lock:
            # Build both indexes aside and swap them in, so a concurrent find()
            # never sees a served signature without its capability.
            by_name = dict(self._by_name)
            by_signature = dict(self._by_signature)
            previous = by_name.pop(spec.name, None)
            if previous is not None:
                logger.warning(
                    "Capability already registered, replacing it",
                    extra={"capability": spec.name},
                )
                for signature in previous.spec.signatures:
                    remaining = tuple(
                        n for n in by_signature.get(signature, ()) if n != spec.name
                    )
                    if remaining:
                        by_signature[signature] = remaining
                    else:
                        by_signature.pop(signature, None)

            by_name[spec.name] = capability
            for signature in spec.signatures:
                by_signature[signature] = by_signature.get(signature, ()) + (spec.name,)

            self._by_name = by_name
            self._by_signature = by_signature

        logger.info(
            "Registered capability",
            extra={
                "capability": spec.name,
                "signatures": sorted(str(s) for s in spec.signatures),
            },
        )

    def find(self, task_type: str, domain: str) -> Capability | None:
        """Return the earliest-registered capability serving the signature."""

        for name in self._by_signature.get(TaskSignature(task_type, domain), ()):
            capability = self._by_name.get(name)
            if capability is not None:
                return capability
        logger.debug(
            "No capability for signature", extra={"task_type": task_type, "domain": domain}
        )
        return None

    def get(self, name: str) -> Capability | None:
        return self._by_name.get(name)

    def all(self) -> list[Capability]:
        """All capabilities in registration order."""

        return list(tuple(self._by_name.values()))

    def by_domain(self, domain: str) -> list[Capability]:
        return [c for c in self.all() if any(s.domain == domain for s in c.spec.signatures)]

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name
