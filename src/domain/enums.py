"""Domain enumerations: caller roles and notification types."""

import enum


class Role(str, enum.Enum):
    ADMINISTRATOR = "ADMINISTRATOR"
    DRIVER = "DRIVER"


class LedgerEventType(str, enum.Enum):
    OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
    DRIVER_REGISTERED = "DriverRegistered"
    DRIVER_REMOVED = "DriverRemoved"
    FARE_UPDATED = "FareUpdated"
    TRIP_RECORDED = "TripRecorded"
