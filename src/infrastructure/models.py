"""
SQLAlchemy ORM models.

Tables
------
* ``ledger_state``   -- single row: administrator, fare rates, trip counter
* ``drivers``        -- driver registry (principal -> registered flag)
* ``trips``          -- immutable trip records, id assigned by the ledger
* ``ledger_events``  -- append-only notification log

Amounts (rates, distances, durations, fares) are unsigned 256-bit integers.
They are stored through ``UInt256``, a decimal-string column, so no backend
truncates or rounds them.

Indexes
-------
* **B-Tree** on ``trips.driver`` for per-driver history and on
  ``drivers.is_registered``.
"""

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    LargeBinary,
    String,
    func,
)
from sqlalchemy.types import TypeDecorator

from .database import Base

LEDGER_STATE_ID = 1


class UInt256(TypeDecorator):
    """Arbitrary-width non-negative integer stored as its decimal digits."""

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(int(value))

    def process_result_value(self, value, dialect):
        return None if value is None else int(value)


class LedgerStateModel(Base):
    __tablename__ = "ledger_state"

    id = Column(Integer, primary_key=True, default=LEDGER_STATE_ID)
    administrator = Column(String(42), nullable=False)
    base_fare = Column(UInt256, nullable=False)
    per_km_fare = Column(UInt256, nullable=False)
    per_minute_fare = Column(UInt256, nullable=False)
    trip_count = Column(BigInteger, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class DriverModel(Base):
    __tablename__ = "drivers"

    principal = Column(String(42), primary_key=True)
    is_registered = Column(Boolean, default=False, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_drivers_registered", "is_registered"),)


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    driver = Column(String(42), nullable=False)
    distance_meters = Column(UInt256, nullable=False)
    duration_seconds = Column(UInt256, nullable=False)
    fare = Column(UInt256, nullable=False)
    timestamp = Column(BigInteger, nullable=False)  # unix seconds
    data_hash = Column(LargeBinary(32), nullable=False)

    __table_args__ = (Index("idx_trips_driver", "driver"),)


class LedgerEventModel(Base):
    __tablename__ = "ledger_events"

    sequence = Column(BigInteger, primary_key=True, autoincrement=False)
    event_type = Column(String(40), nullable=False)
    payload = Column(JSON, nullable=False)
    timestamp = Column(BigInteger, nullable=False)
