from __future__ import annotations

import csv
import io

from flask import Flask, jsonify, request

from ..common.web import current_identity, date_arg, int_arg, json_endpoint, login_required
from ..container import Container
from .model import ReportData

_CSV_FIELDS = [
    "work_date",
    "employee_id",
    "branch_id",
    "scheduled",
    "check_in",
    "check_out",
    "status",
    "late_minutes",
    "early_leave_minutes",
    "overtime_minutes",
    "worked_hours",
    "manually_edited",
    "notes",
]


def register(app: Flask, container: Container) -> None:
    def _write_report_csv(*, data: ReportData, filename: str):
        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=_CSV_FIELDS)
        writer.writeheader()
        for row in data.rows:
            writer.writerow(row)

        # BOM so spreadsheet apps detect UTF-8.
        csv_bytes = out.getvalue().encode("utf-8-sig")
        return app.response_class(
            csv_bytes,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    def _report() -> tuple[ReportData, str]:
        me = current_identity()
        today = container.clock().date()
        start = date_arg("start", today.replace(day=1))
        end = date_arg("end", today)
        data = container.report_service.build_attendance_report(
            current_role=me.role,
            current_employee_id=me.employee_id,
            clinic_id=me.clinic_id,
            start=start,
            end=end,
            employee_id=request.args.get("employee_id") or None,
        )
        return data, f"attendance_{start.strftime('%Y%m%d')}_{end.strftime('%Y%m%d')}.csv"

    @app.route("/api/attendance/statistics", methods=["GET"], endpoint="api_attendance_statistics")
    @login_required
    @json_endpoint
    def statistics():
        me = current_identity()
        today = container.clock().date()
        stats = container.report_service.monthly_statistics(
            current_role=me.role,
            current_employee_id=me.employee_id,
            clinic_id=me.clinic_id,
            employee_id=request.args.get("employee_id") or me.employee_id,
            year=int_arg("year", today.year),
            month=int_arg("month", today.month),
        )
        return jsonify({"success": True, "statistics": stats.to_dict()})

    @app.route("/api/attendance/report", methods=["GET"], endpoint="api_attendance_report")
    @login_required
    @json_endpoint
    def report():
        data, _ = _report()
        return jsonify({"success": True, "rows": data.rows, "summary": data.summary})

    @app.route("/api/attendance/report.csv", methods=["GET"], endpoint="api_attendance_report_csv")
    @login_required
    @json_endpoint
    def report_csv():
        data, filename = _report()
        return _write_report_csv(data=data, filename=filename)
