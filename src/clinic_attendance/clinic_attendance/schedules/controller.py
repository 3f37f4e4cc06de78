from __future__ import annotations

from flask import Flask, jsonify

from ..common.datetime_utils import day_of_week
from ..common.web import admin_required, current_identity, date_arg, json_body, json_endpoint, login_required
from ..core.enums import Role
from ..core.exceptions import AuthorizationError
from ..container import Container
from .model import weekly_schedule_from_dict, weekly_schedule_to_dict
from .resolver import format_day_schedule, weekly_work_minutes


def register(app: Flask, container: Container) -> None:
    def _week_payload(week) -> dict:
        return {
            "schedule": weekly_schedule_to_dict(week),
            "summary": {str(day): format_day_schedule(d) for day, d in sorted(week.items())},
            "weekly_minutes": weekly_work_minutes(week),
        }

    def _require_self_or_admin(employee_id: str) -> None:
        me = current_identity()
        if me.role != Role.ADMIN and me.employee_id != employee_id:
            raise AuthorizationError("Staff can only view their own schedule")

    @app.route("/api/clinic/hours", methods=["GET"], endpoint="api_clinic_hours")
    @login_required
    @json_endpoint
    def clinic_hours():
        me = current_identity()
        week = container.schedule_service.clinic_week(me.clinic_id)
        return jsonify({"success": True, **_week_payload(week)})

    @app.route("/api/clinic/hours", methods=["PUT"], endpoint="api_clinic_hours_update")
    @admin_required
    @json_endpoint
    def clinic_hours_update():
        me = current_identity()
        hours = weekly_schedule_from_dict(json_body().get("hours") or {})
        container.schedule_service.update_clinic_hours(current_role=me.role, clinic_id=me.clinic_id, hours=hours)
        week = container.schedule_service.clinic_week(me.clinic_id)
        return jsonify({"success": True, **_week_payload(week)})

    @app.route("/api/employees/<employee_id>/schedule", methods=["GET"], endpoint="api_employee_schedule")
    @login_required
    @json_endpoint
    def employee_schedule(employee_id: str):
        _require_self_or_admin(employee_id)
        me = current_identity()
        week = container.schedule_service.effective_week(clinic_id=me.clinic_id, employee_id=employee_id)
        return jsonify({"success": True, "employee_id": employee_id, **_week_payload(week)})

    @app.route("/api/employees/<employee_id>/schedule", methods=["PUT"], endpoint="api_employee_schedule_update")
    @admin_required
    @json_endpoint
    def employee_schedule_update(employee_id: str):
        me = current_identity()
        body = json_body()
        if body.get("from_clinic_hours"):
            container.schedule_service.initialize_from_clinic(
                current_role=me.role,
                clinic_id=me.clinic_id,
                employee_id=employee_id,
            )
        else:
            container.schedule_service.update_employee_schedule(
                current_role=me.role,
                clinic_id=me.clinic_id,
                employee_id=employee_id,
                schedule=weekly_schedule_from_dict(body.get("schedule") or {}),
            )
        week = container.schedule_service.effective_week(clinic_id=me.clinic_id, employee_id=employee_id)
        return jsonify({"success": True, "employee_id": employee_id, **_week_payload(week)})

    @app.route("/api/employees/<employee_id>/schedule", methods=["DELETE"], endpoint="api_employee_schedule_clear")
    @admin_required
    @json_endpoint
    def employee_schedule_clear(employee_id: str):
        me = current_identity()
        container.schedule_service.clear_employee_schedule(current_role=me.role, clinic_id=me.clinic_id, employee_id=employee_id)
        return jsonify({"success": True})

    @app.route("/api/employees/<employee_id>/schedule/effective", methods=["GET"], endpoint="api_employee_schedule_effective")
    @login_required
    @json_endpoint
    def employee_schedule_effective(employee_id: str):
        _require_self_or_admin(employee_id)
        me = current_identity()
        work_date = date_arg("date", container.clock().date())
        day = container.schedule_service.effective_for(clinic_id=me.clinic_id, employee_id=employee_id, work_date=work_date)
        return jsonify(
            {
                "success": True,
                "employee_id": employee_id,
                "date": work_date.isoformat(),
                "day_of_week": day_of_week(work_date),
                "schedule": day.to_dict(),
                "summary": format_day_schedule(day),
            }
        )
