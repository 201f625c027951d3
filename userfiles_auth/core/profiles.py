"""
Value objects produced by the config parser.
"""
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional


def _freeze(parameters: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(parameters))


@dataclass(frozen=True)
class ConnectionProfile:
    """A named backend connection: protocol plus key/value parameters."""

    protocol: str
    parameters: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Copy so later changes to the caller's dict are not observed
        object.__setattr__(self, "parameters", _freeze(self.parameters))

    def with_parameters(self, parameters: Mapping[str, str]) -> "ConnectionProfile":
        """Return a new profile with the same protocol and replaced parameters."""
        return ConnectionProfile(protocol=self.protocol, parameters=parameters)

    def to_dict(self) -> dict:
        return {"protocol": self.protocol, "parameters": dict(self.parameters)}


ProfileSet = Mapping[str, ConnectionProfile]

EMPTY_PROFILES: ProfileSet = MappingProxyType({})


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one config document."""

    profiles: ProfileSet = field(default_factory=lambda: EMPTY_PROFILES)
    valid_to: Optional[datetime] = None
    delete_after_read: bool = False

    def is_expired(self, now: datetime) -> bool:
        """
        Check whether the document's valid_to lies before ``now``.

        A document without valid_to never expires. ``now`` must be
        timezone-aware.
        """
        if self.valid_to is None:
            return False
        return self.valid_to < now
