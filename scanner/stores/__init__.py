"""Stores - Endpoint-keyed tested/errored parameter tracking."""

import logging
from dataclasses import dataclass, field
from typing import Any

from common.models import Parameter

logger = logging.getLogger(__name__)


class ParamStore:
    """Append-only set of parameter identities per endpoint."""

    def __init__(self, name: str = "params") -> None:
        self._name = name
        self._entries: dict[str, set[tuple[str, str, str, int]]] = {}

    def has(self, endpoint: str, param: Parameter) -> bool:
        return param.identity in self._entries.get(endpoint, ())

    def add(self, endpoint: str, param: Parameter) -> bool:
        """
        Record a parameter for an endpoint.

        Returns:
            True if the parameter was not already recorded
        """
        seen = self._entries.setdefault(endpoint, set())
        if param.identity in seen:
            return False
        seen.add(param.identity)
        return True

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        return {
            "name": self._name,
            "endpoints": len(self._entries),
            "entries": len(self),
        }


class ErrorStore(ParamStore):
    """Parameters whose probes failed; later scans skip them."""

    def __init__(self) -> None:
        super().__init__(name="errors")

    def mark(self, endpoint: str, param: Parameter, reason: str = "") -> None:
        if self.add(endpoint, param):
            logger.debug(f"Marked {param.source} parameter {param.key!r} errored on {endpoint}: {reason}")


@dataclass
class ScanState:
    """Tracking state shared by every scan in one session."""

    tested: ParamStore = field(default_factory=ParamStore)
    errored: ErrorStore = field(default_factory=ErrorStore)

    def reset(self) -> None:
        self.tested.clear()
        self.errored.clear()
