"""
Directory lookups for the records the ledger depends on.

Members, staff, and plan catalogs are owned by other parts of the CRM;
the ledger only checks that references exist and are usable.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from gym_ledger.app.core.exceptions import NotFoundError, ValidationError, InsufficientPermissionsError
from gym_ledger.app.models.member import Member
from gym_ledger.app.models.staff import Staff
from gym_ledger.app.models.membership_type import MembershipType
from gym_ledger.app.models.pt_package import PTPackage


async def get_member(db: AsyncSession, member_id: int) -> Member:
    member = await db.get(Member, member_id)
    if not member:
        raise NotFoundError("Member", member_id)
    return member


async def get_staff(db: AsyncSession, staff_id: int, require_payment_permission: bool = False) -> Staff:
    """
    Load an active staff member.

    Raises:
        NotFoundError: Unknown or inactive staff ID
        InsufficientPermissionsError: Staff lacks can_manage_payments when required
    """
    staff = await db.get(Staff, staff_id)
    if not staff or not staff.is_active:
        raise NotFoundError("Staff", staff_id)

    if require_payment_permission and not staff.can_manage_payments:
        raise InsufficientPermissionsError(
            message=f"Staff {staff_id} is not allowed to manage payments",
            details={"staff_id": staff_id}
        )
    return staff


async def get_membership_type(db: AsyncSession, membership_type_id: Optional[int]) -> MembershipType:
    plan = await db.get(MembershipType, membership_type_id) if membership_type_id is not None else None
    if not plan:
        raise NotFoundError("MembershipType", membership_type_id)
    if not plan.is_active:
        raise ValidationError(
            f"Membership type {membership_type_id} is no longer offered",
            details={"membership_type_id": membership_type_id}
        )
    return plan


async def get_pt_package(db: AsyncSession, pt_package_id: Optional[int]) -> PTPackage:
    package = await db.get(PTPackage, pt_package_id) if pt_package_id is not None else None
    if not package:
        raise NotFoundError("PTPackage", pt_package_id)
    if not package.is_active:
        raise ValidationError(
            f"PT package {pt_package_id} is no longer offered",
            details={"pt_package_id": pt_package_id}
        )
    return package
