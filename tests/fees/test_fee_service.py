from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from src.campus_admin.campus_admin.core.enums import FeeStatus, PaymentMethod
from src.campus_admin.campus_admin.core.exceptions import NotFoundError, ValidationError
from src.campus_admin.campus_admin.fees.service import FeeLedgerService

TODAY = date(2026, 3, 2)


@pytest.fixture
def ledger(fee_store, students):
    return FeeLedgerService(fee_store, students, gst_rate=Decimal("0.09"), today=lambda: TODAY)


def _new_fee(ledger, **overrides):
    args = dict(
        student_id="s1",
        base_amount="1000",
        due_date=date(2026, 1, 15),
        grace_month=5,
        grace_fee_amount="500",
    )
    args.update(overrides)
    return ledger.create_fee_record(**args)


def test_create_fee_record_with_initial_payment(ledger):
    fee = _new_fee(ledger, initial_payment="600")

    assert fee.total_amount == Decimal("1090.00")
    assert fee.paid_amount == Decimal("600.00")
    assert fee.due_amount == Decimal("490.00")
    assert fee.status == FeeStatus.PARTIALLY_PAID
    assert len(fee.payments) == 1
    payment = fee.payments[0]
    assert payment.method == PaymentMethod.CASH
    assert payment.remaining_due_amount == Decimal("490.00")
    assert payment.date == TODAY


def test_create_fee_record_without_payment_is_unpaid(ledger):
    fee = _new_fee(ledger)

    assert fee.status == FeeStatus.UNPAID
    assert fee.payments == ()


@pytest.mark.parametrize(
    "overrides",
    [
        {"student_id": " "},
        {"base_amount": "abc"},
        {"base_amount": "-1"},
        {"grace_month": -1},
        {"grace_month": "soon"},
        {"grace_fee_amount": "-5"},
        {"initial_payment": "lots"},
        {"discount_percent": 120},
    ],
)
def test_create_fee_record_rejects_bad_input(ledger, fee_store, overrides):
    with pytest.raises(ValidationError):
        _new_fee(ledger, **overrides)
    assert "create" not in fee_store.calls


def test_create_fee_record_for_unknown_student(ledger):
    with pytest.raises(NotFoundError):
        _new_fee(ledger, student_id="ghost")


def test_add_payment_updates_paid_and_status(ledger):
    fee = _new_fee(ledger, initial_payment="600")

    updated = ledger.add_payment(fee.fee_id, amount="490", method="online", reference="UTR-1")

    assert updated.paid_amount == Decimal("1090.00")
    assert updated.status == FeeStatus.PAID
    last = updated.payments[-1]
    assert last.reference == "UTR-1"
    assert last.remaining_due_amount == Decimal("0.00")


@pytest.mark.parametrize("method", ["online", "bank_transfer", "check"])
@pytest.mark.parametrize("reference", [None, "", "   "])
def test_reference_required_methods_fail_before_any_store_call(ledger, fee_store, method, reference):
    with pytest.raises(ValidationError, match="Reference"):
        ledger.add_payment(1, amount="100", method=method, reference=reference)
    assert fee_store.calls == []


def test_cash_payment_needs_no_reference(ledger):
    fee = _new_fee(ledger)

    updated = ledger.add_payment(fee.fee_id, amount="90", method=PaymentMethod.CASH)

    assert updated.paid_amount == Decimal("90.00")


@pytest.mark.parametrize("amount", ["0", "-10", "ten", None])
def test_payment_amount_must_be_positive_number(ledger, fee_store, amount):
    with pytest.raises(ValidationError):
        ledger.add_payment(1, amount=amount, method="cash")
    assert fee_store.calls == []


def test_system_and_unknown_methods_are_rejected(ledger):
    with pytest.raises(ValidationError):
        ledger.add_payment(1, amount="10", method="system", reference="LATE_FEE")
    with pytest.raises(ValidationError):
        ledger.add_payment(1, amount="10", method="crypto")


def test_payment_on_missing_fee(ledger):
    with pytest.raises(NotFoundError):
        ledger.add_payment(99, amount="10", method="cash")


def test_late_fee_not_applied_inside_grace_period(ledger):
    fee = _new_fee(ledger)

    out = ledger.apply_late_fee_if_due(fee.fee_id, today=date(2026, 6, 15))

    assert out.total_amount == Decimal("1090.00")
    assert not out.is_late_fee_applied


def test_late_fee_is_applied_once(ledger, fee_store):
    fee = _new_fee(ledger, initial_payment="600")
    after_grace = date(2026, 6, 16)

    first = ledger.apply_late_fee_if_due(fee.fee_id, today=after_grace)
    second = ledger.apply_late_fee_if_due(fee.fee_id, today=after_grace)

    assert first.total_amount == Decimal("1590.00")
    assert first.is_late_fee_applied
    assert first.due_amount == Decimal("990.00")
    assert second.total_amount == Decimal("1590.00")
    assert len(second.late_fee_payments) == 1
    sentinel = second.late_fee_payments[0]
    assert sentinel.method == PaymentMethod.SYSTEM
    assert sentinel.reference == "LATE_FEE"
    assert sentinel.kind == "grace_fee"
    assert fee_store.calls.count("record_late_fee") == 1


def test_late_fee_skipped_when_grace_fee_is_zero(ledger):
    fee = _new_fee(ledger, grace_fee_amount="0")

    out = ledger.apply_late_fee_if_due(fee.fee_id, today=date(2027, 1, 1))

    assert out.total_amount == Decimal("1090.00")
    assert out.late_fee_payments == ()


def test_get_and_list_fees(ledger):
    fee = _new_fee(ledger)
    _new_fee(ledger, student_id="s2")

    assert ledger.get_fee(fee.fee_id).student_id == "s1"
    assert [f.student_id for f in ledger.list_fees(student_id="s2")] == ["s2"]
    assert len(ledger.list_fees()) == 2
    with pytest.raises(NotFoundError):
        ledger.get_fee(42)
