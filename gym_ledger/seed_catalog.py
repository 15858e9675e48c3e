"""
Database seeding script for local development.

Creates a payments-enabled staff member, a member, and sample
membership-type / PT-package catalogs.
Run this script after database is set up but before first use.
"""

import asyncio
from datetime import date

from sqlalchemy import select

from gym_ledger.app.db.session import AsyncSessionLocal, engine, Base
from gym_ledger.app.models.member import Member
from gym_ledger.app.models.staff import Staff
from gym_ledger.app.models.membership_type import MembershipType
from gym_ledger.app.models.pt_package import PTPackage
# Registered so create_all builds every ledger table
from gym_ledger.app.models import (  # noqa: F401
    payment, payment_item, membership_history, pt_membership,
    locker_assignment, refund, payment_history
)

MEMBERSHIP_TYPES = [
    ("1 Month", 1, 120000.0),
    ("3 Months", 3, 330000.0),
    ("6 Months", 6, 600000.0),
    ("12 Months", 12, 1100000.0),
]

PT_PACKAGES = [
    ("PT 10 Sessions", 10, 500000.0, 60),
    ("PT 20 Sessions", 20, 900000.0, 90),
    ("PT 30 Sessions", 30, 1200000.0, 120),
]


async def seed_catalog():
    """
    Seed development data.

    Creates:
    - 1 staff member allowed to manage payments (S-001)
    - 1 member (M-0001)
    - membership types and PT packages
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("Starting catalog seeding...")

        result = await db.execute(select(Staff).where(Staff.staff_number == "S-001"))
        if result.scalar_one_or_none():
            print("Seed data already exists, skipping seeding")
            return

        manager = Staff(
            staff_number="S-001",
            name="Front Desk Manager",
            phone="010-0000-0001",
            position="manager",
            hire_date=date.today(),
            is_active=True,
            can_manage_payments=True
        )
        db.add(manager)

        db.add(Member(
            member_number="M-0001",
            name="Sample Member",
            phone="010-1234-5678",
            email="member@example.com",
            join_date=date.today(),
            active=True
        ))

        for name, months, price in MEMBERSHIP_TYPES:
            db.add(MembershipType(name=name, duration_months=months, price=price, is_active=True))

        for name, sessions, price, validity_days in PT_PACKAGES:
            db.add(PTPackage(
                name=name,
                session_count=sessions,
                price=price,
                validity_days=validity_days,
                is_active=True
            ))

        await db.commit()
        await db.refresh(manager)

        print("Catalog seeding completed successfully!")
        print(f"  - Staff:            S-001 (id={manager.id}, can manage payments)")
        print("  - Member:           M-0001")
        print(f"  - Membership types: {len(MEMBERSHIP_TYPES)}")
        print(f"  - PT packages:      {len(PT_PACKAGES)}")
        print(f"\nGet a token with: POST /auth/staff-token?staff_id={manager.id}")


if __name__ == "__main__":
    asyncio.run(seed_catalog())
