from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .portal.errors import ExtractionError


# Opaque JSON object returned by the portal's internal usage endpoint. Its shape is owned by Xfinity.
UsagePayload = Dict[str, Any]


@dataclass(frozen=True)
class Credentials:
    identity: str
    secret: str = field(repr=False)

    def __post_init__(self) -> None:
        if not (self.identity or "").strip():
            raise ValueError("Credentials.identity must be non-empty")
        if not self.secret:
            raise ValueError("Credentials.secret must be non-empty")


class TrafficDecision(Enum):
    ALLOW = "allow"
    ABORT = "abort"


@dataclass(frozen=True)
class ExtractionOutcome:
    """
    Result of exactly one extraction attempt: either a payload or an error, never both.
    """

    payload: Optional[UsagePayload] = None
    error: Optional[ExtractionError] = None

    def __post_init__(self) -> None:
        if (self.payload is None) == (self.error is None):
            raise ValueError("ExtractionOutcome requires exactly one of payload/error")

    @classmethod
    def success(cls, payload: UsagePayload) -> "ExtractionOutcome":
        return cls(payload=payload)

    @classmethod
    def failure(cls, error: ExtractionError) -> "ExtractionOutcome":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str:
        return self.error.reason if self.error is not None else ""

    def unwrap(self) -> UsagePayload:
        if self.error is not None:
            raise self.error
        assert self.payload is not None
        return self.payload
