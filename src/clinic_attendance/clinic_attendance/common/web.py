"""Flask helpers shared by the feature controllers.

Identity is put in the session by the external login layer:
`employee_id`, `clinic_id` and `role`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from functools import wraps
from typing import Optional

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError, VerifyError
from .datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)

_VERIFY_STATUS = {
    "TokenNotFound": 404,
    "TokenExpired": 410,
    "OutOfRange": 403,
    "ConcurrentUpdate": 409,
}


@dataclass(frozen=True)
class Identity:
    employee_id: str
    clinic_id: str
    role: Role


def current_identity() -> Identity:
    return Identity(
        employee_id=str(session["employee_id"]),
        clinic_id=str(session["clinic_id"]),
        role=Role(session.get("role", Role.STAFF.value)),
    )


def _has_identity() -> bool:
    return "employee_id" in session and "clinic_id" in session


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not _has_identity():
            return jsonify({"success": False, "error": "Unauthorized", "message": "Login required"}), 401
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not _has_identity():
            return jsonify({"success": False, "error": "Unauthorized", "message": "Login required"}), 401
        if session.get("role") != Role.ADMIN.value:
            return jsonify({"success": False, "error": "Forbidden", "message": "Admins only"}), 403
        return view(*args, **kwargs)

    return wrapper


def verify_error_response(e: VerifyError):
    body = {"success": False, "error": e.code, "message": e.message}
    if e.record is not None:
        body["record"] = e.record.to_dict()
    if e.distance_meters is not None:
        body["distance_meters"] = round(e.distance_meters, 1)
    if e.benign:
        return jsonify(body), 200
    return jsonify(body), _VERIFY_STATUS.get(e.code, 400)


def json_endpoint(view):
    """Map domain exceptions to JSON responses; anything else is logged and becomes a 500."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except VerifyError as e:
            return verify_error_response(e)
        except ValidationError as e:
            return jsonify({"success": False, "error": "ValidationError", "message": str(e)}), 400
        except AuthorizationError as e:
            return jsonify({"success": False, "error": "Forbidden", "message": str(e)}), 403
        except NotFoundError as e:
            return jsonify({"success": False, "error": "NotFound", "message": str(e)}), 404
        except Exception:
            logger.exception("unhandled error in %s %s", request.method, request.path)
            return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500

    return wrapper


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object body")
    return data


def date_arg(name: str, default: Optional[date] = None) -> date:
    raw = request.args.get(name)
    if not raw:
        if default is None:
            raise ValidationError(f"Missing query parameter: {name}")
        return default
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"Invalid date for {name} (YYYY-MM-DD)")


def int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Invalid integer for {name}")
