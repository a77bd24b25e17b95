from __future__ import annotations

import json
import queue
from dataclasses import replace
from datetime import date

from flask import Flask, Response, jsonify, request, stream_with_context

from ..common.datetime_utils import now_utc
from ..common.web import admin_required, current_role, date_arg, login_required
from ..core.exceptions import ValidationError
from ..container import Container
from .model import AttendanceRecord, SelectedSlots

KEEPALIVE_SECONDS = 15.0


def _records_from_payload(payload, on: date) -> list[AttendanceRecord]:
    items = payload.get("records") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise ValidationError("Expected a JSON body with a 'records' list")

    stamped = now_utc()
    records = []
    try:
        for item in items:
            record = AttendanceRecord.from_json({**item, "date": on.isoformat()})
            # Entries sent without a mark time were marked just now.
            for entry in record.hourly_status:
                if entry.time is None:
                    record = record.with_entry(replace(entry, time=stamped))
            records.append(record)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed attendance record: {e}")
    return records


def _slots_from_payload(payload, on: date) -> list[SelectedSlots]:
    items = payload.get("slots") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise ValidationError("Expected a JSON body with a 'slots' list")
    try:
        return [
            SelectedSlots(student_id=str(i["student_id"]), date=on, selected_hours=tuple(i.get("selected_hours") or ()))
            for i in items
        ]
    except (KeyError, TypeError) as e:
        raise ValidationError(f"Malformed slot selection: {e}")


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/<day>", methods=["GET"], endpoint="attendance_for_date")
    @login_required
    def attendance_for_date(day: str):
        records = container.attendance_service.fetch_for_date(date_arg(day))
        return jsonify({"success": True, "date": day, "records": [r.to_json() for r in records]})

    @app.route("/api/attendance/<day>", methods=["POST"], endpoint="save_attendance")
    @login_required
    def save_attendance(day: str):
        on = date_arg(day)
        records = _records_from_payload(request.get_json(silent=True), on)
        saved = container.attendance_service.save_records(records, current_role=current_role())
        return jsonify({"success": True, "records": [r.to_json() for r in saved]})

    @app.route("/api/attendance/<day>", methods=["DELETE"], endpoint="reset_attendance")
    @admin_required
    def reset_attendance(day: str):
        count = container.attendance_service.reset_date(date_arg(day), current_role=current_role())
        return jsonify({"success": True, "deleted": count})

    @app.route("/api/attendance/<day>/hours/<int:hour>", methods=["DELETE"], endpoint="reset_attendance_hour")
    @admin_required
    def reset_attendance_hour(day: str, hour: int):
        count = container.attendance_service.reset_hour(date_arg(day), hour, current_role=current_role())
        return jsonify({"success": True, "updated": count})

    @app.route("/api/attendance/<day>/slots", methods=["GET"], endpoint="selected_slots")
    @login_required
    def selected_slots(day: str):
        slots = container.attendance_service.get_selected_slots(date_arg(day))
        return jsonify(
            {
                "success": True,
                "slots": [{"student_id": s.student_id, "selected_hours": list(s.selected_hours)} for s in slots],
            }
        )

    @app.route("/api/attendance/<day>/slots", methods=["PUT"], endpoint="update_selected_slots")
    @login_required
    def update_selected_slots(day: str):
        slots = _slots_from_payload(request.get_json(silent=True), date_arg(day))
        container.attendance_service.update_selected_slots(slots, current_role=current_role())
        return jsonify({"success": True})

    @app.route("/api/attendance/monthly", methods=["GET"], endpoint="monthly_attendance")
    @login_required
    def monthly_attendance():
        today = date.today()
        try:
            month = int(request.args.get("month", today.month))
            year = int(request.args.get("year", today.year))
        except ValueError:
            raise ValidationError("Month and year must be numbers")

        rows = container.report_service.monthly_attendance(month=month, year=year)
        return jsonify(
            {
                "success": True,
                "month": month,
                "year": year,
                "students": [
                    {
                        "student_id": r.student_id,
                        "total_present": r.total_present,
                        "total_absent": r.total_absent,
                        "total_late": r.total_late,
                        "total_leave": r.total_leave,
                        "total_medical": r.total_medical,
                        "total_hours": r.total_hours,
                        "attendance_percentage": r.attendance_percentage,
                    }
                    for r in rows
                ],
            }
        )

    @app.route("/api/attendance/<day>/events", methods=["GET"], endpoint="attendance_events")
    @login_required
    def attendance_events(day: str):
        on = date_arg(day)

        def stream():
            inbox: queue.Queue = queue.Queue()
            unsubscribe = container.notifier.subscribe(on, inbox.put)
            try:
                yield ": connected\n\n"
                while True:
                    try:
                        record = inbox.get(timeout=KEEPALIVE_SECONDS)
                    except queue.Empty:
                        yield ": keepalive\n\n"
                        continue
                    yield f"event: attendance\ndata: {json.dumps(record.to_json())}\n\n"
            finally:
                unsubscribe()

        return Response(
            stream_with_context(stream()),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
