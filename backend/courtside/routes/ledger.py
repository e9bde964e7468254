# Overview: Flask API routes for cash ledger operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_actor, current_user_id
from ..services import ledger_service, shift_service
from ..time_utils import parse_iso_datetime
from ..validation import ValidationError, require_payload
from .errors import json_error

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start/end filtering is inclusive on both ends.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
def list_ledger_entries_route():
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))
    offset = max(0, request.args.get("offset", default=0, type=int))

    try:
        start_dt = parse_iso_datetime(request.args.get("start"))
        end_dt = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start and end must be ISO-8601 datetimes"}), 400

    entry_types = request.args.get("entry_type")
    try:
        entries = ledger_service.query_entries(
            start=start_dt,
            end=end_dt,
            shift_id=request.args.get("shift_id", type=int),
            entry_types=entry_types.split(",") if entry_types else None,
            reference_type=request.args.get("reference_type"),
            reference_id=request.args.get("reference_id"),
            order=request.args.get("order", "desc"),
            limit=limit,
            offset=offset,
        )
    except Exception as exc:
        return json_error(exc, "Failed to list ledger entries")

    return jsonify({
        "items": [e.to_dict() for e in entries],
        "limit": limit,
        "offset": offset,
    }), 200


@ledger_bp.post("/movements")
@require_actor
def record_movement_route():
    """
    Cash moved in or out of the drawer outside a sale.

    Request body:
    {
        "entry_type": "cash_in" | "cash_out" | "refund_cash" | "shift_payout",
        "amount_cents": 5000,
        "description": "Float top-up",        (cash_in / cash_out)
        "reason": "Racket returned",          (refund_cash)
        "employee_name": "Jana",              (shift_payout)
        "paid_shift_id": 12                   (shift_payout, optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        paid_shift_id = data.get("paid_shift_id")
        if paid_shift_id is not None and (isinstance(paid_shift_id, bool) or not isinstance(paid_shift_id, int)):
            raise ValidationError("paid_shift_id must be an integer")
        entry = shift_service.record_drawer_movement(
            data.get("entry_type"),
            data.get("amount_cents"),
            user_id=current_user_id(),
            description=data.get("description"),
            reason=data.get("reason"),
            employee_name=data.get("employee_name"),
            paid_shift_id=paid_shift_id,
            notes=data.get("notes"),
        )
        return jsonify({"entry": entry.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "Failed to record drawer movement")
