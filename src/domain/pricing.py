"""
Metered Fare Calculation
========================

Formula
-------
Fare = Base_Fare + floor(Distance_m / 1000) x Per_Km_Fare
                 + floor(Duration_s / 60) x Per_Minute_Fare

All amounts are integers in currency subunits (millimes).  Partial
kilometres and partial minutes are not charged.

Integer width
-------------
Amounts keep the unsigned 256-bit range of the ledger they were designed
for, but never wrap: inputs outside ``[0, UINT256_MAX]`` raise
``InvalidAmount`` and a fare above ``UINT256_MAX`` raises ``FareOverflow``.

Complexity: O(1) per fare.
"""

from __future__ import annotations

from dataclasses import dataclass

from .entities import FareOverflow, InvalidAmount

UINT256_MAX = 2**256 - 1

METERS_PER_KM = 1_000
SECONDS_PER_MINUTE = 60


def ensure_uint256(name: str, value: int) -> int:
    """Return *value* if it is an integer in the unsigned 256-bit range."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise InvalidAmount(f"{name} is outside the unsigned 256-bit range")
    return value


@dataclass(frozen=True)
class FareRates:
    """The three tariff parameters; replaced as a whole, never field by field."""

    base_fare: int
    per_km_fare: int
    per_minute_fare: int

    def __post_init__(self) -> None:
        ensure_uint256("base_fare", self.base_fare)
        ensure_uint256("per_km_fare", self.per_km_fare)
        ensure_uint256("per_minute_fare", self.per_minute_fare)

    def calculate_fare(self, distance_meters: int, duration_seconds: int) -> int:
        ensure_uint256("distance_meters", distance_meters)
        ensure_uint256("duration_seconds", duration_seconds)

        km = distance_meters // METERS_PER_KM
        minutes = duration_seconds // SECONDS_PER_MINUTE
        fare = self.base_fare + km * self.per_km_fare + minutes * self.per_minute_fare
        if fare > UINT256_MAX:
            raise FareOverflow(
                f"Fare for {distance_meters} m / {duration_seconds} s "
                "exceeds the unsigned 256-bit range"
            )
        return fare

    def as_dict(self) -> dict[str, int]:
        return {
            "base_fare": self.base_fare,
            "per_km_fare": self.per_km_fare,
            "per_minute_fare": self.per_minute_fare,
        }
