"""
Refund eligibility and the refund workflow.
"""

import pytest
from datetime import date
from unittest.mock import patch
from sqlalchemy import select, func

from gym_ledger.app.core.config import settings
from gym_ledger.app.core.exceptions import ValidationError, NotFoundError, InvalidStateError
from gym_ledger.app.domain.payments.payment_service import PaymentService
from gym_ledger.app.domain.refunds.eligibility import (
    check_refund_eligibility, REASON_NOT_FOUND, REASON_NOT_COMPLETED, REASON_FULLY_REFUNDED
)
from gym_ledger.app.domain.refunds.refund_service import RefundService
from gym_ledger.app.models.payment import Payment
from gym_ledger.app.models.refund import Refund
from gym_ledger.app.models.payment_history import PaymentHistory
from gym_ledger.app.models.ledger_enums import PaymentType, PaymentMethod, PaymentStatus, HistoryAction
from gym_ledger.app.models.refund_enums import RefundStatus, RefundMethod
from gym_ledger.app.schemas.payment import PaymentCreate
from gym_ledger.app.schemas.refund import RefundCreate, RefundDecision


@pytest.fixture
async def paid(db_session, member, cashier, membership_plan):
    """A completed 120000 card membership payment."""
    created = await PaymentService.create(db_session, PaymentCreate(
        member_id=member.id,
        payment_type=PaymentType.MEMBERSHIP,
        membership_type_id=membership_plan.id,
        amount=120000.0,
        payment_method=PaymentMethod.CARD,
        payment_date=date(2025, 7, 30),
        staff_id=cashier.id
    ))
    return created.id


def refund_request(payment_id, amount, **overrides) -> RefundCreate:
    values = dict(
        payment_id=payment_id,
        refund_amount=amount,
        reason="Member relocated",
        refund_method=RefundMethod.CARD_CANCEL
    )
    values.update(overrides)
    return RefundCreate(**values)


async def payment_status(db, payment_id) -> PaymentStatus:
    return (await db.execute(select(Payment.status).where(Payment.id == payment_id))).scalar_one()


async def counted_refunds(db, payment_id) -> float:
    return (await db.execute(
        select(func.coalesce(func.sum(Refund.refund_amount), 0.0)).where(
            Refund.payment_id == payment_id,
            Refund.status.in_([RefundStatus.APPROVED, RefundStatus.PROCESSED])
        )
    )).scalar()


async def approved_refund(db, payment_id, amount, actor_id) -> int:
    refund = await RefundService.request_refund(db, refund_request(payment_id, amount), requester_id=actor_id)
    await RefundService.decide(db, refund.id, approve=True, approver_id=actor_id)
    return refund.id


# ---------------------------------------------------------------- eligibility

@pytest.mark.asyncio
async def test_eligibility_of_completed_payment(db_session, paid):
    eligibility = await check_refund_eligibility(db_session, paid)

    assert eligibility.eligible is True
    assert eligibility.max_refund_amount == 120000.0
    assert eligibility.suggested_method == RefundMethod.CARD_CANCEL
    assert eligibility.reason is None


@pytest.mark.asyncio
async def test_eligibility_of_missing_payment(db_session):
    eligibility = await check_refund_eligibility(db_session, 404)

    assert eligibility.eligible is False
    assert eligibility.reason == REASON_NOT_FOUND
    assert eligibility.max_refund_amount == 0.0


@pytest.mark.asyncio
async def test_eligibility_of_cancelled_payment(db_session, paid, cashier):
    await PaymentService.cancel(db_session, paid, cashier.id, "Duplicate")

    eligibility = await check_refund_eligibility(db_session, paid)

    assert eligibility.eligible is False
    assert eligibility.reason.startswith(REASON_NOT_COMPLETED)


@pytest.mark.asyncio
async def test_pending_refunds_do_not_reduce_the_refundable_amount(db_session, paid, cashier):
    await RefundService.request_refund(db_session, refund_request(paid, 30000.0), requester_id=cashier.id)
    assert (await check_refund_eligibility(db_session, paid)).max_refund_amount == 120000.0

    await approved_refund(db_session, paid, 20000.0, cashier.id)
    assert (await check_refund_eligibility(db_session, paid)).max_refund_amount == 100000.0


# ---------------------------------------------------------------- full scenario

@pytest.mark.asyncio
async def test_partial_refund_processed_terminates_payment(db_session, paid, cashier):
    eligibility = await check_refund_eligibility(db_session, paid)
    assert eligibility.eligible and eligibility.max_refund_amount == 120000.0

    refund = await RefundService.request_refund(db_session, refund_request(paid, 50000.0), requester_id=cashier.id)

    await RefundService.update(db_session, refund.id, RefundDecision(status=RefundStatus.APPROVED), actor_id=cashier.id)
    assert await payment_status(db_session, paid) == PaymentStatus.COMPLETED

    await RefundService.update(db_session, refund.id, RefundDecision(status=RefundStatus.PROCESSED), actor_id=cashier.id)
    assert await payment_status(db_session, paid) == PaymentStatus.REFUNDED

    row = (await db_session.execute(
        select(Refund).where(Refund.id == refund.id).execution_options(populate_existing=True)
    )).scalar_one()
    assert row.status == RefundStatus.PROCESSED
    assert row.approved_by == cashier.id
    assert row.approved_at is not None
    assert row.processed_at is not None

    second = await check_refund_eligibility(db_session, paid)
    assert second.eligible is False
    assert second.reason.startswith(REASON_NOT_COMPLETED)

    with pytest.raises(InvalidStateError):
        await RefundService.request_refund(db_session, refund_request(paid, 10000.0), requester_id=cashier.id)

    actions = (await db_session.execute(
        select(PaymentHistory.action).where(PaymentHistory.payment_id == paid).order_by(PaymentHistory.id)
    )).scalars().all()
    assert actions == [HistoryAction.CREATED, HistoryAction.REFUND_REQUESTED, HistoryAction.REFUNDED]


@pytest.mark.asyncio
async def test_partial_refund_keeps_payment_open_when_configured(db_session, paid, cashier):
    with patch.object(settings, "refund_terminates_payment", False):
        first = await approved_refund(db_session, paid, 50000.0, cashier.id)
        await RefundService.process(db_session, first, actor_id=cashier.id)
        assert await payment_status(db_session, paid) == PaymentStatus.COMPLETED

        eligibility = await check_refund_eligibility(db_session, paid)
        assert eligibility.max_refund_amount == 70000.0

        rest = await approved_refund(db_session, paid, 70000.0, cashier.id)
        await RefundService.process(db_session, rest, actor_id=cashier.id)
        assert await payment_status(db_session, paid) == PaymentStatus.REFUNDED

    eligibility = await check_refund_eligibility(db_session, paid)
    assert eligibility.eligible is False


@pytest.mark.asyncio
async def test_fully_refunded_reason(db_session, paid, cashier):
    await approved_refund(db_session, paid, 120000.0, cashier.id)

    eligibility = await check_refund_eligibility(db_session, paid)

    assert eligibility.eligible is False
    assert eligibility.reason == REASON_FULLY_REFUNDED


# ---------------------------------------------------------------- request

@pytest.mark.asyncio
async def test_request_above_max_is_rejected(db_session, paid, cashier):
    with pytest.raises(ValidationError):
        await RefundService.request_refund(db_session, refund_request(paid, 120000.01), requester_id=cashier.id)

    assert (await db_session.execute(select(func.count(Refund.id)))).scalar() == 0


@pytest.mark.asyncio
async def test_remaining_balance_is_refundable_to_the_cent(db_session, member, cashier):
    created = await PaymentService.create(db_session, PaymentCreate(
        member_id=member.id,
        payment_type=PaymentType.OTHER,
        amount=0.3,
        payment_method=PaymentMethod.CASH,
        payment_date=date(2025, 7, 30),
        staff_id=cashier.id
    ))
    await approved_refund(db_session, created.id, 0.1, cashier.id)

    eligibility = await check_refund_eligibility(db_session, created.id)
    assert eligibility.max_refund_amount == 0.2

    # 0.1 + 0.2 != 0.3 in binary floating point
    rest = await RefundService.request_refund(
        db_session, refund_request(created.id, 0.2, refund_method=RefundMethod.CASH), requester_id=cashier.id
    )
    await RefundService.decide(db_session, rest.id, approve=True, approver_id=cashier.id)

    eligibility = await check_refund_eligibility(db_session, created.id)
    assert eligibility.eligible is False
    assert eligibility.reason == REASON_FULLY_REFUNDED
    assert eligibility.max_refund_amount == 0.0


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0.0, -10.0])
async def test_request_non_positive_amount_is_rejected(db_session, paid, cashier, amount):
    with pytest.raises(ValidationError):
        await RefundService.request_refund(db_session, refund_request(paid, amount), requester_id=cashier.id)


@pytest.mark.asyncio
async def test_account_transfer_requires_account_info(db_session, paid, cashier):
    with pytest.raises(ValidationError):
        await RefundService.request_refund(
            db_session,
            refund_request(paid, 1000.0, refund_method=RefundMethod.ACCOUNT_TRANSFER, account_info=" "),
            requester_id=cashier.id
        )

    created = await RefundService.request_refund(
        db_session,
        refund_request(paid, 1000.0, refund_method=RefundMethod.ACCOUNT_TRANSFER, account_info="KB 123-45"),
        requester_id=cashier.id
    )
    assert created.id is not None


@pytest.mark.asyncio
async def test_request_on_missing_payment(db_session, cashier):
    with pytest.raises(NotFoundError):
        await RefundService.request_refund(db_session, refund_request(404, 1000.0), requester_id=cashier.id)


@pytest.mark.asyncio
async def test_request_writes_history(db_session, paid, cashier):
    refund = await RefundService.request_refund(db_session, refund_request(paid, 1000.0), requester_id=cashier.id)

    entry = (await db_session.execute(
        select(PaymentHistory).where(PaymentHistory.action == HistoryAction.REFUND_REQUESTED)
    )).scalar_one()
    assert entry.new_value["refund_id"] == refund.id
    assert entry.new_value["status"] == "pending"
    assert entry.notes == "Member relocated"


# ---------------------------------------------------------------- decide / process

@pytest.mark.asyncio
async def test_approvals_never_exceed_payment_amount(db_session, paid, cashier):
    first = await RefundService.request_refund(db_session, refund_request(paid, 80000.0), requester_id=cashier.id)
    second = await RefundService.request_refund(db_session, refund_request(paid, 80000.0), requester_id=cashier.id)

    await RefundService.decide(db_session, first.id, approve=True, approver_id=cashier.id)

    with pytest.raises(ValidationError):
        await RefundService.decide(db_session, second.id, approve=True, approver_id=cashier.id)

    assert await counted_refunds(db_session, paid) <= 120000.0

    # Rejecting needs nothing but a pending refund
    await RefundService.decide(db_session, second.id, approve=False, approver_id=cashier.id, notes="Over limit")
    status = (await db_session.execute(select(Refund.status).where(Refund.id == second.id))).scalar_one()
    assert status == RefundStatus.REJECTED


@pytest.mark.asyncio
async def test_decisions_only_from_pending(db_session, paid, cashier):
    refund = await RefundService.request_refund(db_session, refund_request(paid, 1000.0), requester_id=cashier.id)
    await RefundService.decide(db_session, refund.id, approve=False, approver_id=cashier.id)

    with pytest.raises(InvalidStateError):
        await RefundService.decide(db_session, refund.id, approve=True, approver_id=cashier.id)

    with pytest.raises(InvalidStateError):
        await RefundService.process(db_session, refund.id, actor_id=cashier.id)


@pytest.mark.asyncio
async def test_process_requires_approval(db_session, paid, cashier):
    refund = await RefundService.request_refund(db_session, refund_request(paid, 1000.0), requester_id=cashier.id)

    with pytest.raises(InvalidStateError):
        await RefundService.process(db_session, refund.id, actor_id=cashier.id)

    assert await payment_status(db_session, paid) == PaymentStatus.COMPLETED


@pytest.mark.asyncio
async def test_process_rechecks_payment_state(db_session, paid, cashier):
    refund_id = await approved_refund(db_session, paid, 1000.0, cashier.id)
    await PaymentService.cancel(db_session, paid, cashier.id, "Chargeback")

    with pytest.raises(InvalidStateError):
        await RefundService.process(db_session, refund_id, actor_id=cashier.id)

    status = (await db_session.execute(select(Refund.status).where(Refund.id == refund_id))).scalar_one()
    assert status == RefundStatus.APPROVED


@pytest.mark.asyncio
async def test_decision_writes_no_history(db_session, paid, cashier):
    await approved_refund(db_session, paid, 1000.0, cashier.id)

    actions = (await db_session.execute(select(PaymentHistory.action))).scalars().all()
    assert HistoryAction.REFUNDED not in actions
    assert len(actions) == 2


@pytest.mark.asyncio
async def test_unknown_refund(db_session, cashier):
    with pytest.raises(NotFoundError):
        await RefundService.update(db_session, 404, RefundDecision(status=RefundStatus.APPROVED), actor_id=cashier.id)


@pytest.mark.asyncio
async def test_refund_cannot_be_moved_back_to_pending(db_session, paid, cashier):
    refund = await RefundService.request_refund(db_session, refund_request(paid, 1000.0), requester_id=cashier.id)

    with pytest.raises(ValidationError):
        await RefundService.update(db_session, refund.id, RefundDecision(status=RefundStatus.PENDING), actor_id=cashier.id)
