"""
Payment listing (filter compiler), per-member listing and the detail view.
"""

import pytest
from datetime import date

from gym_ledger.app.core.exceptions import ValidationError, NotFoundError
from gym_ledger.app.domain.payments.payment_service import PaymentService
from gym_ledger.app.domain.payments.queries import PaymentQueries
from gym_ledger.app.domain.refunds.refund_service import RefundService
from gym_ledger.app.models.ledger_enums import PaymentType, PaymentMethod, PaymentStatus, HistoryAction
from gym_ledger.app.models.refund_enums import RefundMethod
from gym_ledger.app.schemas.payment import PaymentCreate, PaymentFilter
from gym_ledger.app.schemas.refund import RefundCreate


@pytest.fixture
async def ledger(db_session, make_member, cashier, make_staff, membership_plan, pt_plan):
    """
    Five payments:
        p1 2025-07-01 membership 120000 card      Kim Minsu
        p2 2025-07-15 pt         500000 transfer  Lee Jiwoo (recorded by trainer desk)
        p3 2025-07-15 other       30000 cash      Kim Minsu
        p4 2025-07-31 membership 120000 cash      Lee Jiwoo
        p5 2025-07-20 other       10000 cash      Kim Minsu  (cancelled)
    """
    kim = await make_member(name="Kim Minsu", phone="010-1111-2222")
    lee = await make_member(name="Lee Jiwoo", phone="010-3333-4444")
    desk = await make_staff(name="Desk Two")

    async def pay(member, payment_type, amount, method, on, staff=cashier, **kwargs):
        created = await PaymentService.create(db_session, PaymentCreate(
            member_id=member.id, payment_type=payment_type, amount=amount, payment_method=method,
            payment_date=on, staff_id=staff.id, **kwargs
        ))
        return created.id

    ids = {
        "p1": await pay(kim, PaymentType.MEMBERSHIP, 120000.0, PaymentMethod.CARD, date(2025, 7, 1),
                        membership_type_id=membership_plan.id),
        "p2": await pay(lee, PaymentType.PT, 500000.0, PaymentMethod.TRANSFER, date(2025, 7, 15),
                        staff=desk, pt_package_id=pt_plan.id),
        "p3": await pay(kim, PaymentType.OTHER, 30000.0, PaymentMethod.CASH, date(2025, 7, 15)),
        "p4": await pay(lee, PaymentType.MEMBERSHIP, 120000.0, PaymentMethod.CASH, date(2025, 7, 31),
                        membership_type_id=membership_plan.id),
        "p5": await pay(kim, PaymentType.OTHER, 10000.0, PaymentMethod.CASH, date(2025, 7, 20)),
    }
    await PaymentService.cancel(db_session, ids["p5"], cashier.id, "Mistake")
    ids.update(kim=kim.id, lee=lee.id, desk=desk.id)
    return ids


async def listed_ids(db, **filters):
    listing = await PaymentQueries.list_payments(db, PaymentFilter(**filters))
    return [payment.id for payment in listing.payments]


@pytest.mark.asyncio
async def test_empty_filter_lists_non_cancelled_newest_first(db_session, ledger):
    # Same-day payments fall back to creation time, newest first
    assert await listed_ids(db_session) == [ledger["p4"], ledger["p3"], ledger["p2"], ledger["p1"]]


@pytest.mark.asyncio
async def test_date_range_is_inclusive(db_session, ledger):
    ids = await listed_ids(db_session, payment_date_from=date(2025, 7, 15), payment_date_to=date(2025, 7, 31))
    assert set(ids) == {ledger["p2"], ledger["p3"], ledger["p4"]}


@pytest.mark.asyncio
async def test_amount_range_is_inclusive(db_session, ledger):
    ids = await listed_ids(db_session, amount_min=30000.0, amount_max=120000.0)
    assert set(ids) == {ledger["p1"], ledger["p3"], ledger["p4"]}


@pytest.mark.asyncio
async def test_status_filters(db_session, ledger):
    assert await listed_ids(db_session, status=PaymentStatus.CANCELLED) == [ledger["p5"]]
    assert len(await listed_ids(db_session, status="all")) == 5


@pytest.mark.asyncio
async def test_type_method_and_staff_filters(db_session, ledger):
    assert set(await listed_ids(db_session, payment_type=PaymentType.MEMBERSHIP)) == {ledger["p1"], ledger["p4"]}
    assert set(await listed_ids(db_session, payment_type="all", payment_method=PaymentMethod.CASH)) == {
        ledger["p3"], ledger["p4"]
    }
    assert await listed_ids(db_session, staff_id=ledger["desk"]) == [ledger["p2"]]
    assert set(await listed_ids(db_session, member_id=ledger["lee"])) == {ledger["p2"], ledger["p4"]}


@pytest.mark.asyncio
async def test_search_matches_name_phone_and_number(db_session, ledger):
    assert set(await listed_ids(db_session, search="jiwoo")) == {ledger["p2"], ledger["p4"]}
    assert set(await listed_ids(db_session, search="1111-2222")) == {ledger["p1"], ledger["p3"]}

    listing = await PaymentQueries.list_payments(db_session, PaymentFilter())
    number = next(p.payment_number for p in listing.payments if p.id == ledger["p2"])
    assert await listed_ids(db_session, search=number) == [ledger["p2"]]


@pytest.mark.asyncio
async def test_search_terms_are_not_wildcards(db_session, ledger):
    assert await listed_ids(db_session, search="%") == []
    assert await listed_ids(db_session, search="Kim' OR '1'='1") == []


@pytest.mark.asyncio
async def test_has_refund_filter(db_session, ledger, cashier):
    await RefundService.request_refund(db_session, RefundCreate(
        payment_id=ledger["p1"], refund_amount=1000.0, reason="Overcharged", refund_method=RefundMethod.CARD_CANCEL
    ), requester_id=cashier.id)

    assert await listed_ids(db_session, has_refund=True) == [ledger["p1"]]
    assert ledger["p1"] not in await listed_ids(db_session, has_refund=False)


@pytest.mark.asyncio
async def test_expiry_range(db_session, ledger):
    # p1 membership runs to 2025-08-01, p4 to 2025-08-31
    ids = await listed_ids(db_session, expiry_date_from=date(2025, 8, 1), expiry_date_to=date(2025, 8, 1))
    assert ids == [ledger["p1"]]


@pytest.mark.asyncio
async def test_sorting(db_session, ledger):
    ids = await listed_ids(db_session, sort_field="amount", sort_direction="asc")
    assert ids[0] == ledger["p3"]
    assert ids[-1] == ledger["p2"]

    # Equal amounts break ties by id, newest first
    assert ids[1:3] == [ledger["p4"], ledger["p1"]]

    listing = await PaymentQueries.list_payments(db_session, PaymentFilter(sort_field="member_name", sort_direction="asc"))
    assert [p.member_name for p in listing.payments] == ["Kim Minsu", "Kim Minsu", "Lee Jiwoo", "Lee Jiwoo"]


@pytest.mark.asyncio
async def test_unknown_sort_field_is_rejected(db_session, ledger):
    with pytest.raises(ValidationError):
        await listed_ids(db_session, sort_field="amount; DROP TABLE payments")


@pytest.mark.asyncio
async def test_pagination(db_session, ledger):
    listing = await PaymentQueries.list_payments(db_session, PaymentFilter(page=2, limit=3))

    assert [p.id for p in listing.payments] == [ledger["p1"]]
    assert listing.pagination.total_items == 4
    assert listing.pagination.total_pages == 2
    assert listing.pagination.current_page == 2
    assert listing.pagination.items_per_page == 3
    assert listing.pagination.has_next_page is False
    assert listing.pagination.has_previous_page is True

    # Count uses the same predicate as the rows
    filtered = await PaymentQueries.list_payments(db_session, PaymentFilter(search="kim", limit=1))
    assert filtered.pagination.total_items == 2
    assert filtered.pagination.has_next_page is True


@pytest.mark.asyncio
async def test_listing_carries_display_names(db_session, ledger):
    listing = await PaymentQueries.list_payments(db_session, PaymentFilter(payment_type=PaymentType.PT))
    payment = listing.payments[0]

    assert payment.member_name == "Lee Jiwoo"
    assert payment.member_phone == "010-3333-4444"
    assert payment.staff_name == "Desk Two"
    assert payment.pt_package_name == "PT 10"
    assert payment.membership_type_name is None


@pytest.mark.asyncio
async def test_list_by_member(db_session, ledger):
    payments = await PaymentQueries.list_by_member(db_session, ledger["kim"])
    assert [p.id for p in payments] == [ledger["p3"], ledger["p1"]]

    with pytest.raises(NotFoundError):
        await PaymentQueries.list_by_member(db_session, 9999)


@pytest.mark.asyncio
async def test_detail_view(db_session, ledger, cashier):
    await RefundService.request_refund(db_session, RefundCreate(
        payment_id=ledger["p1"], refund_amount=20000.0, reason="Overcharged", refund_method=RefundMethod.CARD_CANCEL
    ), requester_id=cashier.id)
    refund = await RefundService.request_refund(db_session, RefundCreate(
        payment_id=ledger["p1"], refund_amount=10000.0, reason="Overcharged", refund_method=RefundMethod.CASH
    ), requester_id=cashier.id)
    await RefundService.decide(db_session, refund.id, approve=True, approver_id=cashier.id)

    detail = await PaymentQueries.get_detail(db_session, ledger["p1"], today=date(2025, 7, 22))

    assert detail.member_number.startswith("M-")
    assert detail.membership_type_name == "1 Month"
    assert len(detail.membership_grants) == 1
    assert detail.pt_packages == [] and detail.locker_assignments == []
    assert len(detail.refunds) == 2
    assert [h.action for h in detail.history] == [HistoryAction.CREATED, HistoryAction.REFUND_REQUESTED,
                                                  HistoryAction.REFUND_REQUESTED]
    # Only the approved refund counts
    assert detail.remaining_amount == 110000.0
    assert detail.is_refundable is True
    assert detail.days_until_expiry == 10


@pytest.mark.asyncio
async def test_detail_of_cancelled_payment(db_session, ledger):
    detail = await PaymentQueries.get_detail(db_session, ledger["p5"])

    assert detail.status == PaymentStatus.CANCELLED
    assert detail.is_refundable is False
    assert detail.days_until_expiry is None


@pytest.mark.asyncio
async def test_detail_of_missing_payment(db_session):
    with pytest.raises(NotFoundError):
        await PaymentQueries.get_detail(db_session, 404)
