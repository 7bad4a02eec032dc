from __future__ import annotations

from datetime import date

from flask import Flask, jsonify, request

from ..common.datetime_utils import local_date, now_ms, parse_iso_date
from ..core.exceptions import PunchRejected, ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    tz = container.schedule_service.tz

    def _payload() -> dict:
        return request.get_json(silent=True) or {}

    def _flag(value) -> bool:
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    @app.errorhandler(PunchRejected)
    def punch_rejected(e: PunchRejected):
        return jsonify(e.decision.as_dict()), 409

    @app.errorhandler(ValidationError)
    def validation_error(e: ValidationError):
        return jsonify({"error": str(e)}), 400

    @app.route("/api/students/<int:student_id>/schedule", methods=["GET"], endpoint="student_schedule")
    def student_schedule(student_id: int):
        date_s = request.args.get("date")
        try:
            work_date = parse_iso_date(date_s) if date_s else local_date(now_ms(), tz)
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")

        day = container.schedule_service.effective_for(student_id, work_date)
        return jsonify(
            {
                "student_id": student_id,
                "date": work_date.isoformat(),
                "schedule": day.schedule.as_dict() if day.schedule else None,
                "overtime_authorized": day.authorization is not None,
                "has_schedule": day.has_schedule,
            }
        )

    @app.route("/api/students/<int:student_id>/hours", methods=["GET"], endpoint="student_hours")
    def student_hours(student_id: int):
        summary = container.hours_report_service.summary_for(student_id)
        return jsonify(summary.as_dict(tz))

    @app.route("/api/students/<int:student_id>/hours/<day>", methods=["GET"], endpoint="student_hours_day")
    def student_hours_day(student_id: int, day: str):
        try:
            work_date: date = parse_iso_date(day)
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")
        report = container.hours_report_service.day_for(student_id, work_date)
        return jsonify(report.as_dict(tz))

    @app.route("/api/students/<int:student_id>/time-in/check", methods=["POST"], endpoint="time_in_check")
    def time_in_check(student_id: int):
        decision = container.attendance_service.check_time_in(student_id)
        return jsonify(decision.as_dict())

    @app.route("/api/students/<int:student_id>/time-in", methods=["POST"], endpoint="time_in")
    def time_in(student_id: int):
        punch = container.attendance_service.time_in(student_id, _payload().get("photo_ref"))
        return jsonify({"punch_id": punch.punch_id, "shift": punch.slot_label, "timestamp": punch.timestamp_ms}), 201

    @app.route("/api/students/<int:student_id>/time-out/check", methods=["POST"], endpoint="time_out_check")
    def time_out_check(student_id: int):
        confirmed = _flag(_payload().get("confirmed", False))
        decision = container.attendance_service.check_time_out(student_id, confirmed=confirmed)
        return jsonify(decision.as_dict())

    @app.route("/api/students/<int:student_id>/time-out", methods=["POST"], endpoint="time_out")
    def time_out(student_id: int):
        data = _payload()
        punch = container.attendance_service.time_out(
            student_id,
            data.get("photo_ref"),
            confirmed=_flag(data.get("confirmed", False)),
        )
        return jsonify({"punch_id": punch.punch_id, "shift": punch.slot_label, "timestamp": punch.timestamp_ms}), 201

    @app.route("/api/students/<int:student_id>/ledger/freeze", methods=["POST"], endpoint="ledger_freeze")
    def ledger_freeze(student_id: int):
        frozen = container.hours_report_service.freeze_ledger(student_id)
        return jsonify({"student_id": student_id, "frozen": frozen})
