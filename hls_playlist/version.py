"""Protocol compatibility versions and the required-version aggregator."""

from enum import IntEnum
from typing import Iterable, Optional, Protocol


class ProtocolVersion(IntEnum):
    """Value of the EXT-X-VERSION tag."""

    V1 = 1
    V2 = 2
    V3 = 3
    V4 = 4
    V5 = 5
    V6 = 6
    V7 = 7

    @classmethod
    def latest(cls) -> "ProtocolVersion":
        return cls.V7


class RequiresVersion(Protocol):
    def required_version(self) -> ProtocolVersion: ...


def max_version(versions: Iterable[Optional[ProtocolVersion]]) -> ProtocolVersion:
    """Return the highest version, V1 when nothing is given. ``None`` entries are skipped."""
    return max((v for v in versions if v is not None), default=ProtocolVersion.V1)


def required_version(items: Iterable[Optional[RequiresVersion]]) -> ProtocolVersion:
    """
    Compute the minimum protocol version a collection of values needs.

    Args:
        items: Values exposing ``required_version()``; ``None`` entries stand for
            absent optional fields and are skipped

    Returns:
        The maximum of the items' required versions, ``ProtocolVersion.V1`` if empty
    """
    return max_version(item.required_version() for item in items if item is not None)
