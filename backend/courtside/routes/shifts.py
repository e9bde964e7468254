# Overview: Flask API routes for shift operations; parses input and returns JSON responses.

"""
Shift API Routes

DESIGN:
- Shift lifecycle: open -> close (immutable once closed)
- Only one shift can be open at a time (single cash drawer)
- Opening and closing need an identified staff member
"""

from flask import Blueprint, request, jsonify

from ..decorators import require_actor, current_user_id
from ..services import shift_service
from ..validation import require_payload
from .errors import json_error


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.get("")
def list_shifts_route():
    status = request.args.get("status")
    limit = request.args.get("limit", default=50, type=int)
    limit = max(1, min(limit, 500))
    shifts = shift_service.list_shifts(status=status, limit=limit)
    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


@shifts_bp.get("/current")
def current_shift_route():
    shift = shift_service.get_current_shift()
    return jsonify({"shift": shift.to_dict() if shift else None}), 200


@shifts_bp.post("/open")
@require_actor
def open_shift_route():
    """
    Open the cash drawer.

    Request body:
    {
        "opening_balance_cents": 100000,
        "notes": "Morning shift"  (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        shift = shift_service.open_shift(
            user_id=current_user_id(),
            opening_balance_cents=data.get("opening_balance_cents", 0),
            notes=data.get("notes"),
        )
        return jsonify({"shift": shift.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "Failed to open shift")


@shifts_bp.post("/close")
@require_actor
def close_shift_route():
    """
    Close the open shift with the counted cash.

    Request body:
    {
        "closing_balance_cents": 128000,
        "notes": "..."  (optional)
    }

    Variance is reported in the response, never a reason to refuse.
    """
    try:
        data = require_payload(request.get_json(silent=True))
        shift = shift_service.close_shift(
            data.get("closing_balance_cents"),
            data.get("notes"),
            user_id=current_user_id(),
        )
        return jsonify({"shift": shift.to_dict()}), 200
    except Exception as exc:
        return json_error(exc, "Failed to close shift")


@shifts_bp.get("/summary")
def cash_summary_route():
    try:
        return jsonify(shift_service.get_summary()), 200
    except Exception as exc:
        return json_error(exc, "Failed to build cash summary")


@shifts_bp.get("/<int:shift_id>")
def get_shift_route(shift_id: int):
    try:
        return jsonify({"shift": shift_service.get_shift(shift_id).to_dict()}), 200
    except Exception as exc:
        return json_error(exc, "Failed to load shift")


@shifts_bp.get("/<int:shift_id>/report")
def shift_report_route(shift_id: int):
    try:
        return jsonify(shift_service.get_shift_report(shift_id)), 200
    except Exception as exc:
        return json_error(exc, "Failed to build shift report")
