"""
Dispatch results and inbound payload helpers.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass
class DispatchResult:
    """Outcome of handling one inbound event."""

    delivered: int = 0
    dropped: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.dropped is None and self.error is None

    @classmethod
    def drop(cls, reason: str) -> "DispatchResult":
        return cls(dropped=reason)

    @classmethod
    def failed(cls, error: str) -> "DispatchResult":
        return cls(error=error)


def coerce_id(value: Any, key: Optional[str] = None) -> Optional[str]:
    """
    Extract an identifier from a bare value or from ``value[key]``.

    Clients send ids either bare (``"abc"``, ``42``) or inside an object.
    Booleans, empty strings and anything else yield None.
    """
    if key is not None and isinstance(value, Mapping):
        value = value.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def as_mapping(payload: Any) -> Optional[Mapping[str, Any]]:
    return payload if isinstance(payload, Mapping) else None
