from __future__ import annotations

from datetime import date

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_timestamp
from ..common.validators import optional_float, require_latitude, require_longitude
from ..common.web import (
    admin_required,
    current_identity,
    date_arg,
    int_arg,
    json_body,
    json_endpoint,
    login_required,
)
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_PAGE_SIZE
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError
from ..container import Container
from ..geofence.model import Coordinate
from ..tokens.qr_image import decode_qr_image
from .model import RecordEdit, RecordFilter, ScanEvent


def _status_arg(value) -> AttendanceStatus | None:
    if not value:
        return None
    try:
        return AttendanceStatus(str(value))
    except ValueError:
        raise ValidationError(f"Unknown status: {value!r}")


def register(app: Flask, container: Container) -> None:
    def _scan_from(payload, token: str) -> ScanEvent:
        me = current_identity()
        lat = require_latitude(optional_float(payload.get("latitude"), "latitude"))
        lon = require_longitude(optional_float(payload.get("longitude"), "longitude"))
        return ScanEvent(
            token=token,
            employee_id=me.employee_id,
            clinic_id=me.clinic_id,
            timestamp=parse_timestamp(payload.get("timestamp")),
            branch_id=payload.get("branch_id") or None,
            location=Coordinate.maybe(lat, lon),
            device_info=payload.get("device_info") or request.headers.get("User-Agent"),
        )

    @app.route("/api/attendance/verify-scan", methods=["POST"], endpoint="api_verify_scan")
    @login_required
    @json_endpoint
    def verify_scan():
        body = json_body()
        token = str(body.get("token") or "").strip()
        if not token:
            raise ValidationError("QR token is required")

        result = container.attendance_service.verify_scan(_scan_from(body, token))
        return jsonify(result.to_dict()), 200

    @app.route("/api/attendance/verify-scan/image", methods=["POST"], endpoint="api_verify_scan_image")
    @login_required
    @json_endpoint
    def verify_scan_image():
        upload = request.files.get("image")
        if upload is None:
            raise ValidationError("Missing image file")

        token = decode_qr_image(upload.stream)
        if not token:
            raise ValidationError("No QR code found in the image")

        result = container.attendance_service.verify_scan(_scan_from(request.form, token))
        return jsonify(result.to_dict()), 200

    @app.route("/api/attendance/today", methods=["GET"], endpoint="api_attendance_today")
    @login_required
    @json_endpoint
    def today():
        me = current_identity()
        record = container.attendance_service.today_record(employee_id=me.employee_id, clinic_id=me.clinic_id)
        return jsonify({"success": True, "record": record.to_dict() if record else None})

    @app.route("/api/attendance/history", methods=["GET"], endpoint="api_attendance_history")
    @login_required
    @json_endpoint
    def history():
        me = current_identity()
        rows = container.attendance_service.history(
            employee_id=me.employee_id,
            clinic_id=me.clinic_id,
            limit=int_arg("limit", DEFAULT_HISTORY_LIMIT),
        )
        return jsonify({"success": True, "records": [r.to_dict() for r in rows]})

    @app.route("/api/attendance/records", methods=["GET"], endpoint="api_attendance_records")
    @login_required
    @json_endpoint
    def records():
        me = current_identity()
        today = container.clock().date()
        flt = RecordFilter(
            clinic_id=me.clinic_id,
            start_date=date_arg("start_date", today.replace(day=1)),
            end_date=date_arg("end_date", today),
            branch_id=request.args.get("branch_id") or None,
            employee_id=request.args.get("employee_id") or None,
            status=_status_arg(request.args.get("status")),
        )
        page = container.attendance_service.records(
            current_role=me.role,
            current_employee_id=me.employee_id,
            flt=flt,
            page=int_arg("page", 1),
            page_size=int_arg("page_size", DEFAULT_PAGE_SIZE),
        )
        return jsonify({"success": True, **page.to_dict()})

    @app.route("/api/attendance/records/<int:record_id>", methods=["PATCH"], endpoint="api_attendance_record_edit")
    @admin_required
    @json_endpoint
    def record_edit(record_id: int):
        me = current_identity()
        body = json_body()
        edit = RecordEdit(
            check_in_time=parse_timestamp(body.get("check_in_time")),
            check_out_time=parse_timestamp(body.get("check_out_time")),
            status=_status_arg(body.get("status")),
            notes=body.get("notes"),
        )
        record = container.attendance_service.edit_record(
            current_role=me.role,
            clinic_id=me.clinic_id,
            record_id=record_id,
            edited_by=me.employee_id,
            edit=edit,
        )
        return jsonify({"success": True, "record": record.to_dict()})

    @app.route("/api/attendance/records/<int:record_id>/reconcile", methods=["POST"], endpoint="api_attendance_record_reconcile")
    @admin_required
    @json_endpoint
    def record_reconcile(record_id: int):
        me = current_identity()
        body = request.get_json(silent=True) or {}
        record = container.attendance_service.reconcile_record(
            current_role=me.role,
            clinic_id=me.clinic_id,
            record_id=record_id,
            clear_manual_edit=bool(body.get("clear_manual_edit", False)),
        )
        return jsonify({"success": True, "record": record.to_dict()})

    @app.route("/api/attendance/team", methods=["GET"], endpoint="api_attendance_team")
    @admin_required
    @json_endpoint
    def team():
        me = current_identity()
        raw_ids = request.args.get("employee_ids")
        employee_ids = [x.strip() for x in raw_ids.split(",") if x.strip()] if raw_ids else None
        work_date: date = date_arg("date", container.clock().date())
        status = container.attendance_service.team_status(
            current_role=me.role,
            clinic_id=me.clinic_id,
            work_date=work_date,
            employee_ids=employee_ids,
        )
        return jsonify({"success": True, "status": status.to_dict()})
