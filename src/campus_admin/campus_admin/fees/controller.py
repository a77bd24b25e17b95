from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.web import admin_required, date_arg, login_required
from ..core.exceptions import ValidationError
from ..container import Container


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body")
    return payload


def register(app: Flask, container: Container) -> None:
    fees = container.fee_service

    def fee_payload(fee) -> dict:
        data = fee.to_json()
        grace = fees.grace_period(fee)
        data["grace_until"] = grace.grace_until.isoformat()
        data["is_late"] = grace.is_late
        return data

    @app.route("/api/fees", methods=["GET"], endpoint="list_fees")
    @login_required
    def list_fees():
        student_id = request.args.get("student_id") or None
        return jsonify({"success": True, "fees": [fee_payload(f) for f in fees.list_fees(student_id=student_id)]})

    @app.route("/api/fees", methods=["POST"], endpoint="create_fee")
    @admin_required
    def create_fee():
        body = _json_body()
        if not body.get("due_date"):
            raise ValidationError("Due date is required")
        fee = fees.create_fee_record(
            body.get("student_id", ""),
            body.get("base_amount"),
            date_arg(str(body["due_date"])),
            body.get("grace_month", app.config["DEFAULT_GRACE_MONTHS"]),
            body.get("grace_fee_amount", app.config["DEFAULT_GRACE_FEE"]),
            body.get("initial_payment"),
            discount_percent=body.get("discount_percent", 0),
        )
        return jsonify({"success": True, "fee": fee_payload(fee)}), 201

    @app.route("/api/fees/<int:fee_id>", methods=["GET"], endpoint="get_fee")
    @login_required
    def get_fee(fee_id: int):
        return jsonify({"success": True, "fee": fee_payload(fees.get_fee(fee_id))})

    @app.route("/api/fees/<int:fee_id>/payments", methods=["POST"], endpoint="add_payment")
    @admin_required
    def add_payment(fee_id: int):
        body = _json_body()
        paid_on = date_arg(str(body["date"])) if body.get("date") else None
        fee = fees.add_payment(
            fee_id,
            amount=body.get("amount"),
            method=body.get("method", ""),
            paid_on=paid_on,
            reference=body.get("reference"),
        )
        return jsonify({"success": True, "fee": fee_payload(fee)})

    @app.route("/api/fees/<int:fee_id>/late-fee", methods=["POST"], endpoint="apply_late_fee")
    @admin_required
    def apply_late_fee(fee_id: int):
        fee = fees.apply_late_fee_if_due(fee_id)
        return jsonify({"success": True, "fee": fee_payload(fee)})
