from __future__ import annotations

import io

from flask import Flask, jsonify, request, send_file

from ..common.datetime_utils import parse_timestamp
from ..common.validators import optional_float
from ..common.web import admin_required, current_identity, json_body, json_endpoint, login_required
from ..core.enums import RefreshPeriod
from ..core.exceptions import ValidationError
from ..container import Container
from .service import IssueTokenInput


def register(app: Flask, container: Container) -> None:
    @app.route("/api/qr/current", methods=["GET"], endpoint="api_qr_current")
    @login_required
    @json_endpoint
    def qr_current():
        me = current_identity()
        token = container.token_service.current(clinic_id=me.clinic_id, branch_id=request.args.get("branch_id") or None)
        return jsonify({"success": True, "token": container.token_service.to_public_dict(token)})

    @app.route("/api/qr/current.png", methods=["GET"], endpoint="api_qr_current_png")
    @login_required
    @json_endpoint
    def qr_current_png():
        me = current_identity()
        token = container.token_service.current(clinic_id=me.clinic_id, branch_id=request.args.get("branch_id") or None)
        buf = io.BytesIO(container.token_service.render_png(token))
        return send_file(buf, mimetype="image/png")

    @app.route("/api/qr/issue", methods=["POST"], endpoint="api_qr_issue")
    @admin_required
    @json_endpoint
    def qr_issue():
        me = current_identity()
        body = json_body()
        try:
            period = RefreshPeriod(str(body.get("refresh_period") or RefreshPeriod.DAILY.value))
        except ValueError:
            raise ValidationError("refresh_period must be daily, weekly or custom")

        data = IssueTokenInput(
            refresh_period=period,
            branch_id=body.get("branch_id") or None,
            latitude=optional_float(body.get("latitude"), "latitude"),
            longitude=optional_float(body.get("longitude"), "longitude"),
            radius_meters=optional_float(body.get("radius_meters"), "radius_meters"),
            valid_until=parse_timestamp(body.get("valid_until")),
            rotate=bool(body.get("rotate", False)),
        )
        token = container.token_service.issue(current_role=me.role, clinic_id=me.clinic_id, data=data)
        return jsonify({"success": True, "token": container.token_service.to_public_dict(token)}), 201
