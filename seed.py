"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample customers
  - 6 sample bookings covering every lifecycle status, with payments
  - 1 taxi assignment and 1 completed trip with fare adjustments
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from cabbooking.domain.enums import (
    AdjustmentType,
    BookingStatus,
    PaymentStatus,
    TaxiAssignStatus,
)
from cabbooking.infrastructure.database import async_session_factory, engine
from cabbooking.infrastructure.models import (
    BookingModel,
    FareAdjustmentModel,
    PaymentModel,
    TaxiAssignmentModel,
    UserModel,
)

USERS = [
    {"name": "Aarav Sharma", "email": "aarav@example.com", "phone": "9820000001"},
    {"name": "Priya Patel", "email": "priya@example.com", "phone": "9820000002"},
    {"name": "Rohan Mehta", "email": "rohan@example.com", "phone": "9820000003"},
    {"name": "Sneha Gupta", "email": "sneha@example.com", "phone": "9820000004"},
    {"name": "Vikram Singh", "email": "vikram@example.com", "phone": "+919820000005"},
    {"name": "Ananya Reddy", "email": "ananya@example.com", "phone": None},
]

TOMORROW = datetime.now(timezone.utc) + timedelta(days=1)


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        users = [UserModel(**u) for u in USERS]
        session.add_all(users)
        await session.flush()
        print(f"  Created {len(users)} users")

        # ── Bookings ──────────────────────────────────────────────────
        bookings_data = [
            # Gateway order opened, never paid
            {
                "user": users[0], "pickup": "Mumbai Airport T2", "drop": "Andheri West",
                "km": 8.5, "total": 450.0, "status": BookingStatus.PENDING_PAYMENT,
                "payment": (450.0, PaymentStatus.PENDING, "order_seed_0001", 0.0),
            },
            # Part payment settled, balance due to the driver
            {
                "user": users[1], "pickup": "Bandra", "drop": "Mumbai Airport T1",
                "km": 12.0, "total": 600.0, "status": BookingStatus.PENDING_PAYMENT,
                "payment": (200.0, PaymentStatus.SUCCESS, "pay_seed_0002", 400.0),
            },
            # Paid, waiting for a taxi
            {
                "user": users[2], "pickup": "Powai", "drop": "Mumbai Airport T2",
                "km": 15.0, "total": 720.0, "status": BookingStatus.PAID,
                "payment": (720.0, PaymentStatus.SUCCESS, "pay_seed_0003", 0.0),
            },
            # Taxi assigned, trip running
            {
                "user": users[3], "pickup": "Dadar", "drop": "Mumbai Airport T2",
                "km": 18.0, "total": 800.0, "status": BookingStatus.IN_PROGRESS,
                "payment": (800.0, PaymentStatus.SUCCESS, "pay_seed_0004", 0.0),
            },
            # Completed with extra km and toll
            {
                "user": users[4], "pickup": "Mumbai Airport T2", "drop": "Thane",
                "km": 25.0, "total": 1095.0, "status": BookingStatus.COMPLETED,
                "payment": (1000.0, PaymentStatus.SUCCESS, "pay_seed_0005", 0.0),
            },
            # Cancelled before payment
            {
                "user": users[5], "pickup": "Colaba", "drop": "Mumbai Airport T1",
                "km": 28.0, "total": 1100.0, "status": BookingStatus.CANCELLED,
                "payment": None,
            },
        ]

        bookings = []
        for b in bookings_data:
            booking = BookingModel(
                user_id=b["user"].id,
                pickup_location=b["pickup"],
                drop_location=b["drop"],
                scheduled_at=TOMORROW,
                distance_km=b["km"],
                estimated_fare=b["total"],
                total_amount=b["total"],
                status=b["status"],
            )
            session.add(booking)
            bookings.append((booking, b["payment"]))
        await session.flush()

        for booking, payment in bookings:
            if payment is None:
                continue
            amount, status, txn_id, remaining = payment
            session.add(
                PaymentModel(
                    booking_id=booking.id,
                    amount=amount,
                    currency="INR",
                    status=status,
                    provider="razorpay",
                    provider_txn_id=txn_id,
                    remaining_amount=remaining,
                )
            )
        print(f"  Created {len(bookings)} bookings with payments")

        # ── Assignment on the running trip ────────────────────────────
        running = bookings[3][0]
        running.taxi_assign_status = TaxiAssignStatus.ASSIGNED
        session.add(
            TaxiAssignmentModel(
                booking_id=running.id,
                driver_name="Ramesh Yadav",
                driver_number="9930000001",
                cab_number="MH01AB1234",
                cab_name="Toyota Innova",
            )
        )

        # ── Completed trip details ────────────────────────────────────
        completed = bookings[4][0]
        completed.actual_km = 30.0
        completed.extra_km = 5.0
        completed.extra_charge = 95.0
        session.add_all(
            [
                FareAdjustmentModel(
                    booking_id=completed.id,
                    type=AdjustmentType.EXTRA_KM,
                    amount=60.0,
                    description="Extra 5.0 km @ ₹12/km",
                ),
                FareAdjustmentModel(
                    booking_id=completed.id,
                    type=AdjustmentType.TOLL,
                    amount=35.0,
                    description="Toll charges",
                ),
            ]
        )
        bookings[5][0].cancellation_reason = "Customer changed travel plans"
        await session.flush()
        print("  Created 1 taxi assignment and 2 fare adjustments")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
