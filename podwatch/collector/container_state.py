"""Container-state classification for the target watcher.

ContainerStateClassifier -- capability the watcher depends on.
ContainerStateFilter     -- classifier built from state names
                            (``running``, ``waiting``, ``terminated``, ``all``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import StrEnum
from typing import Any


class ContainerStateName(StrEnum):
    """Container state names accepted in configuration."""

    RUNNING = "running"
    WAITING = "waiting"
    TERMINATED = "terminated"
    ALL = "all"


class InvalidContainerStateError(ValueError):
    """Raised when a configured container state name is not recognised."""

    def __init__(self, name: str) -> None:
        allowed = ", ".join(f"'{s.value}'" for s in ContainerStateName)
        super().__init__(f"container state {name!r} should be one of {allowed}")
        self.name = name


class ContainerStateClassifier(ABC):
    """Decides which runtime container states count as active."""

    @abstractmethod
    def matches(self, state: Any) -> bool:
        """Return True if *state* (a ``V1ContainerState`` or None) is active."""

    @abstractmethod
    def has_wildcard(self) -> bool:
        """Return True if every container should be reported on first sight."""


class ContainerStateFilter(ContainerStateClassifier):
    """Classifier over a fixed set of container state names.

    ``all`` never makes :meth:`matches` true on its own; it switches on the
    first-sight behaviour reported by :meth:`has_wildcard`.
    """

    def __init__(self, states: Iterable[str]) -> None:
        parsed: list[ContainerStateName] = []
        for raw in states:
            try:
                parsed.append(ContainerStateName(raw.strip().lower()))
            except ValueError:
                raise InvalidContainerStateError(raw) from None
        self._states = tuple(parsed)

    @classmethod
    def parse(cls, value: str) -> ContainerStateFilter:
        """Build a filter from a comma separated list such as ``"running,waiting"``."""
        return cls(part for part in value.split(",") if part.strip())

    @property
    def states(self) -> tuple[ContainerStateName, ...]:
        return self._states

    def matches(self, state: Any) -> bool:
        if state is None:
            return False
        for name in self._states:
            if name is ContainerStateName.ALL:
                continue
            if getattr(state, name.value, None) is not None:
                return True
        return False

    def has_wildcard(self) -> bool:
        return ContainerStateName.ALL in self._states

    def __repr__(self) -> str:
        return f"ContainerStateFilter({[s.value for s in self._states]!r})"
