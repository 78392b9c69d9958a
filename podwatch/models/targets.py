"""Target data structure."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Target:
    """One (pod, container) pair selected for observation.

    Built fresh for every notification emitted by the target watcher and
    never mutated afterwards.
    """

    namespace: str
    pod: str
    container: str

    @property
    def id(self) -> str:
        """Stable identifier used for logging and deduplication."""
        return f"{self.namespace}-{self.pod}-{self.container}"
