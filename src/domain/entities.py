"""
Domain entities and errors.

Patterns used
-------------
- **Value Objects**: ``Trip`` and ``LedgerEvent`` are frozen; a recorded trip
  is never mutated or deleted.
- **Null Object**: ``Trip.empty()`` stands in for a trip id that was never
  assigned, so look-ups never fail.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .enums import LedgerEventType, Role

NULL_PRINCIPAL = "0x" + "0" * 40
ZERO_HASH = bytes(32)

_PRINCIPAL_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


# ── Errors ────────────────────────────────────────────────────────────


class LedgerError(Exception):
    """Base class for every error raised by the ledger."""


class Unauthorized(LedgerError):
    """Raised when the caller does not hold the role an operation requires."""

    def __init__(self, caller: str, role: Role, message: str | None = None):
        self.caller = caller
        self.role = role
        super().__init__(message or f"{caller} is not the {role.value.lower()}")


class InvalidPrincipal(LedgerError):
    """Raised for a malformed principal, or the null principal where forbidden."""


class InvalidAmount(LedgerError):
    """Raised for an amount that is negative or wider than 256 bits."""


class FareOverflow(LedgerError):
    """Raised when a computed fare does not fit in 256 bits."""


class LedgerNotInitialized(LedgerError):
    """Raised when an operation needs ledger state that does not exist yet."""


class LedgerAlreadyInitialized(LedgerError):
    """Raised on a second ``initialize``."""


# ── Principals ────────────────────────────────────────────────────────


def normalize_principal(value: str, *, allow_null: bool = True) -> str:
    """Validate a ``0x`` address and return it lowercased."""
    if not isinstance(value, str) or not _PRINCIPAL_RE.match(value):
        raise InvalidPrincipal(f"Malformed principal: {value!r}")
    principal = value.lower()
    if not allow_null and principal == NULL_PRINCIPAL:
        raise InvalidPrincipal("The null principal is not allowed here")
    return principal


def parse_data_hash(value: str | bytes) -> bytes:
    """Accept 32 raw bytes or a ``0x``-prefixed 64 digit hex string."""
    if isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            value = bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"data hash is not hex: {text!r}") from exc
    if len(value) != 32:
        raise ValueError(f"data hash must be 32 bytes, got {len(value)}")
    return bytes(value)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Trip:
    id: int
    driver: str
    distance_meters: int
    duration_seconds: int
    fare: int
    timestamp: int
    data_hash: bytes = ZERO_HASH

    @classmethod
    def empty(cls) -> Trip:
        """The zero-valued record returned for an id that was never issued."""
        return cls(
            id=0,
            driver=NULL_PRINCIPAL,
            distance_meters=0,
            duration_seconds=0,
            fare=0,
            timestamp=0,
        )

    @property
    def found(self) -> bool:
        return self.id != 0


@dataclass(frozen=True)
class LedgerEvent:
    sequence: int
    event_type: LedgerEventType
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0

    def as_message(self) -> dict[str, Any]:
        """JSON-ready form published to external observers."""
        return {
            "sequence": self.sequence,
            "event": self.event_type.value,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }
