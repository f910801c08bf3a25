"""
Seed script -- populates the ledger with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - the ledger state (rates 700 / 500 / 80 millimes, administrator from
    INITIAL_ADMINISTRATOR or the first well-known dev account)
  - 3 registered drivers
  - 6 sample trips around Tunis
"""

import asyncio
import hashlib
import json

from src.config import settings
from src.domain.ledger import LedgerStateMachine
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.repositories import SqlLedgerStore

# Well-known local development accounts (never hold real funds)
DEV_ADMINISTRATOR = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"
DRIVERS = [
    "0x70997970c51812dc3a010c7d01b50e0d17dc79c8",
    "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc",
    "0x90f79bf6eb2c4f870365e785982e1f101e93b906",
]

TRIPS = [
    # (driver index, metres, seconds, route)
    (0, 5_000, 600, "Tunis-Carthage Airport -> Lac 1"),
    (0, 12_400, 1_380, "Lac 1 -> La Marsa"),
    (1, 8_750, 1_020, "Bab Bhar -> Ariana"),
    (1, 950, 240, "Avenue Habib Bourguiba -> Medina"),
    (2, 21_300, 1_920, "Tunis Marine -> Hammam Lif"),
    (2, 0, 45, "Cancelled on pickup"),
]


def trip_digest(route: str, metres: int, seconds: int) -> bytes:
    """Stand-in for the hash of the off-ledger trip record (GPS trace etc.)."""
    record = json.dumps({"route": route, "m": metres, "s": seconds}, sort_keys=True)
    return hashlib.sha256(record.encode()).digest()


async def seed():
    async with async_session_factory() as session:
        store = SqlLedgerStore(session)
        if await store.load_state() is not None:
            print("Ledger already initialized. Skipping.")
            return

        ledger = LedgerStateMachine(store)
        admin = settings.initial_administrator or DEV_ADMINISTRATOR

        # ── Ledger state ──────────────────────────────────────────────
        await ledger.initialize(
            settings.initial_base_fare,
            settings.initial_per_km_fare,
            settings.initial_per_minute_fare,
            admin,
        )
        print(f"  Initialized ledger (administrator {admin})")

        # ── Drivers ───────────────────────────────────────────────────
        for driver in DRIVERS:
            await ledger.register_driver(admin, driver)
        print(f"  Registered {len(DRIVERS)} drivers")

        # ── Trips ─────────────────────────────────────────────────────
        for idx, metres, seconds, route in TRIPS:
            trip = await ledger.record_trip(
                DRIVERS[idx], metres, seconds, trip_digest(route, metres, seconds)
            )
            print(f"    trip {trip.id}: {route} -> {trip.fare} millimes")
        print(f"  Recorded {len(TRIPS)} trips")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding ledger...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
