"""
Query/Filter Compiler for payment listings.

A PaymentFilter compiles into one list of bound-parameter predicates that
both the row statement and the count statement use, so paginated totals
always describe exactly the rows being paged through.
"""

from typing import List
from sqlalchemy import select, func, exists
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import ColumnElement

from gym_ledger.app.core.exceptions import ValidationError
from gym_ledger.app.models.payment import Payment
from gym_ledger.app.models.member import Member
from gym_ledger.app.models.staff import Staff
from gym_ledger.app.models.membership_type import MembershipType
from gym_ledger.app.models.pt_package import PTPackage
from gym_ledger.app.models.refund import Refund
from gym_ledger.app.models.ledger_enums import PaymentStatus
from gym_ledger.app.schemas.payment import PaymentFilter

ALL = "all"

# Public sort keys -> columns. Anything else is rejected.
SORT_COLUMNS = {
    "payment_date": Payment.payment_date,
    "amount": Payment.amount,
    "member_name": Member.name,
    "staff_name": Staff.name,
    "payment_type": Payment.payment_type,
    "status": Payment.status,
    "created_at": Payment.created_at,
}


def _joined_payments():
    """payments joined to their member, staff and (optional) plan rows."""
    return (
        Payment.__table__
        .join(Member.__table__, Member.id == Payment.member_id)
        .join(Staff.__table__, Staff.id == Payment.staff_id)
        .outerjoin(MembershipType.__table__, MembershipType.id == Payment.membership_type_id)
        .outerjoin(PTPackage.__table__, PTPackage.id == Payment.pt_package_id)
    )


def build_predicates(filters: PaymentFilter) -> List[ColumnElement]:
    """
    Compile a filter into a conjunction of predicates.

    Every value ends up as a bound parameter; LIKE wildcards in the search
    term are escaped.
    """
    predicates: List[ColumnElement] = []

    if filters.search and filters.search.strip():
        term = filters.search.strip().lower()
        predicates.append(
            func.lower(Payment.payment_number).contains(term, autoescape=True)
            | func.lower(Member.name).contains(term, autoescape=True)
            | func.lower(func.coalesce(Member.phone, "")).contains(term, autoescape=True)
        )

    if filters.payment_type and filters.payment_type != ALL:
        predicates.append(Payment.payment_type == filters.payment_type)

    if filters.payment_method and filters.payment_method != ALL:
        predicates.append(Payment.payment_method == filters.payment_method)

    # No status means "not deleted"; 'all' means everything
    if filters.status is None:
        predicates.append(Payment.status != PaymentStatus.CANCELLED)
    elif filters.status != ALL:
        predicates.append(Payment.status == filters.status)

    if filters.member_id is not None:
        predicates.append(Payment.member_id == filters.member_id)

    if filters.staff_id is not None:
        predicates.append(Payment.staff_id == filters.staff_id)

    # Inclusive ranges
    if filters.payment_date_from:
        predicates.append(Payment.payment_date >= filters.payment_date_from)
    if filters.payment_date_to:
        predicates.append(Payment.payment_date <= filters.payment_date_to)

    if filters.amount_min is not None:
        predicates.append(Payment.amount >= filters.amount_min)
    if filters.amount_max is not None:
        predicates.append(Payment.amount <= filters.amount_max)

    if filters.expiry_date_from:
        predicates.append(Payment.expiry_date >= filters.expiry_date_from)
    if filters.expiry_date_to:
        predicates.append(Payment.expiry_date <= filters.expiry_date_to)

    if filters.has_refund is not None:
        has_refund = exists().where(Refund.payment_id == Payment.id)
        predicates.append(has_refund if filters.has_refund else ~has_refund)

    return predicates


def payment_rows_statement() -> Select:
    """Payment columns plus the display names of the joined rows."""
    return select(
        *Payment.__table__.c,
        Member.name.label("member_name"),
        Member.phone.label("member_phone"),
        Member.member_number.label("member_number"),
        Staff.name.label("staff_name"),
        MembershipType.name.label("membership_type_name"),
        PTPackage.name.label("pt_package_name"),
    ).select_from(_joined_payments())


def compile_list_query(filters: PaymentFilter) -> Select:
    """
    Row statement: predicates, ordering and the requested page.

    Raises:
        ValidationError: Unknown sort field
    """
    query = payment_rows_statement().where(*build_predicates(filters))

    if filters.sort_field:
        column = SORT_COLUMNS.get(filters.sort_field)
        if column is None:
            raise ValidationError(
                f"Cannot sort by '{filters.sort_field}'",
                details={"field": "sort_field", "allowed": sorted(SORT_COLUMNS)}
            )
        ordered = column.asc() if filters.sort_direction == "asc" else column.desc()
        query = query.order_by(ordered, Payment.id.desc())
    else:
        query = query.order_by(Payment.payment_date.desc(), Payment.created_at.desc(), Payment.id.desc())

    if filters.limit:
        query = query.limit(filters.limit).offset((filters.page - 1) * filters.limit)

    return query


def compile_count_query(filters: PaymentFilter) -> Select:
    """Count statement sharing the row statement's joins and predicates."""
    return (
        select(func.count(Payment.id))
        .select_from(_joined_payments())
        .where(*build_predicates(filters))
    )
