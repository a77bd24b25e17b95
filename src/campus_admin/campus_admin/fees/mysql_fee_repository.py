from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from ..core.enums import PaymentMethod
from ..core.exceptions import StoreError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, store_operation, to_decimal
from .model import Fee, Payment
from .repository import FeeRepository

_FEE_COLUMNS = "id, student_id, total_amount, paid_amount, due_date, grace_month, grace_fee_amount, is_late_fee_applied"
_PAYMENT_COLUMNS = "id, fee_id, amount, payment_date, payment_method, reference_number, remaining_due_amount"


def _to_payment(r: dict) -> Payment:
    return Payment(
        payment_id=int(r["id"]),
        fee_id=int(r["fee_id"]),
        amount=to_decimal(r["amount"]),
        date=r["payment_date"],
        method=PaymentMethod(r["payment_method"]),
        reference=r.get("reference_number") or None,
        remaining_due_amount=to_decimal(r.get("remaining_due_amount")),
    )


def _to_fee(r: dict, payments: Sequence[Payment]) -> Fee:
    return Fee(
        fee_id=int(r["id"]),
        student_id=str(r["student_id"]),
        total_amount=to_decimal(r["total_amount"]),
        paid_amount=to_decimal(r["paid_amount"]),
        due_date=r["due_date"],
        grace_month=int(r.get("grace_month") or 0),
        grace_fee_amount=to_decimal(r.get("grace_fee_amount")),
        is_late_fee_applied=bool(r.get("is_late_fee_applied")),
        payments=tuple(payments),
    )


def _insert_payment(cur, fee_id: int, p: Payment) -> None:
    cur.execute(
        """
        INSERT INTO payments(fee_id, amount, payment_date, payment_method, reference_number, remaining_due_amount)
        VALUES(%s,%s,%s,%s,%s,%s)
        """,
        (fee_id, p.amount, p.date, p.method.value, p.reference, p.remaining_due_amount),
    )


def _load(cur, fee_id: int, *, lock: bool = False) -> Optional[Fee]:
    suffix = " FOR UPDATE" if lock else ""
    cur.execute(f"SELECT {_FEE_COLUMNS} FROM fees WHERE id=%s{suffix}", (int(fee_id),))
    row = fetchone(cur)
    if not row:
        return None
    cur.execute(f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE fee_id=%s ORDER BY payment_date ASC, id ASC", (int(fee_id),))
    return _to_fee(row, [_to_payment(p) for p in fetchall(cur)])


class MySQLFeeRepository(FeeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, fee_id: int) -> Optional[Fee]:
        with store_operation("load fee", f"fee={fee_id}"):
            with db_cursor(self._conn_factory) as (_, cur):
                return _load(cur, fee_id)

    def list_fees(self, *, student_id: Optional[str] = None) -> Sequence[Fee]:
        clauses, params = [], []
        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(str(student_id))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with store_operation("list fees", f"student={student_id or '*'}"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(f"SELECT {_FEE_COLUMNS} FROM fees {where} ORDER BY created_at DESC, id DESC", tuple(params))
                rows = fetchall(cur)
                if not rows:
                    return []
                ids = [int(r["id"]) for r in rows]
                placeholders = ",".join(["%s"] * len(ids))
                cur.execute(
                    f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE fee_id IN ({placeholders}) ORDER BY payment_date ASC, id ASC",
                    tuple(ids),
                )
                payments: dict[int, list[Payment]] = {}
                for p in fetchall(cur):
                    payment = _to_payment(p)
                    payments.setdefault(payment.fee_id, []).append(payment)
                return [_to_fee(r, payments.get(int(r["id"]), [])) for r in rows]

    def create(
        self,
        *,
        student_id: str,
        total_amount: Decimal,
        paid_amount: Decimal,
        due_date: date,
        grace_month: int,
        grace_fee_amount: Decimal,
        initial_payment: Optional[Payment] = None,
    ) -> Fee:
        with store_operation("create fee", f"student={student_id}"):
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO fees(student_id, total_amount, paid_amount, due_date, grace_month, grace_fee_amount, is_late_fee_applied)
                    VALUES(%s,%s,%s,%s,%s,%s,0)
                    """,
                    (str(student_id), total_amount, paid_amount, due_date, int(grace_month), grace_fee_amount),
                )
                fee_id = int(cur.lastrowid)
                if initial_payment is not None:
                    _insert_payment(cur, fee_id, initial_payment)
                return _load(cur, fee_id)

    def record_payment(self, *, fee_id: int, payment: Payment, expected_paid: Decimal, new_paid: Decimal) -> Fee:
        context = f"fee={fee_id}"
        with store_operation("record payment", context):
            with db_cursor(self._conn_factory) as (_, cur):
                current = _load(cur, fee_id, lock=True)
                if current is None or current.paid_amount != expected_paid:
                    # Raising inside the unit of work rolls it back.
                    raise StoreError("record payment", f"{context}: fee changed since it was read, reload and retry")
                _insert_payment(cur, int(fee_id), payment)
                cur.execute("UPDATE fees SET paid_amount=%s WHERE id=%s", (new_paid, int(fee_id)))
                return _load(cur, fee_id)

    def record_late_fee(self, *, fee_id: int, sentinel: Payment, expected_total: Decimal, new_total: Decimal) -> Fee:
        context = f"fee={fee_id}"
        with store_operation("apply late fee", context):
            with db_cursor(self._conn_factory) as (_, cur):
                current = _load(cur, fee_id, lock=True)
                if current is None:
                    raise StoreError("apply late fee", f"{context}: fee no longer exists")
                if current.late_fee_payments:
                    return current
                if current.total_amount != expected_total:
                    raise StoreError("apply late fee", f"{context}: fee changed since it was read, reload and retry")
                _insert_payment(cur, int(fee_id), sentinel)
                cur.execute(
                    "UPDATE fees SET total_amount=%s, is_late_fee_applied=1 WHERE id=%s",
                    (new_total, int(fee_id)),
                )
                return _load(cur, fee_id)
