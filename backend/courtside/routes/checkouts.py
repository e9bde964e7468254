# Overview: Flask API routes for checkout operations; parses input and returns JSON responses.

"""
Checkout API Routes

WHY: The front desk builds the bill for a booking, splits it between the
players, and watches it fill up as accounts are paid.

DESIGN:
- Every mutation returns the full checkout (accounts and items) so the
  client never has to re-derive totals
- Totals and statuses are computed server-side only
"""

from flask import Blueprint, request, jsonify

from ..decorators import identify_actor, current_user_id
from ..services import checkout_service
from ..validation import coerce_id, require_payload
from .errors import json_error


checkouts_bp = Blueprint("checkouts", __name__, url_prefix="/api/checkouts")


def _checkout_response(checkout, status: int = 200, **extra):
    body = {"checkout": checkout.to_dict(include_children=True)}
    body.update(extra)
    return jsonify(body), status


@checkouts_bp.post("")
@identify_actor
def create_checkout_route():
    """
    Create a checkout, empty or from a reservation.

    Request body:
    {
        "source_reservation_id": "R-1042",  (optional)
        "notes": "..."                      (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        checkout = checkout_service.create_checkout(
            user_id=current_user_id(),
            source_reservation_id=data.get("source_reservation_id"),
            notes=data.get("notes"),
        )
        return _checkout_response(checkout, 201)
    except Exception as exc:
        return json_error(exc, "Failed to create checkout")


@checkouts_bp.get("")
def list_checkouts_route():
    limit = request.args.get("limit", default=50, type=int)
    limit = max(1, min(limit, 200))
    try:
        checkouts = checkout_service.list_checkouts(status=request.args.get("status"), limit=limit)
        return jsonify({"checkouts": [c.to_dict() for c in checkouts]}), 200
    except Exception as exc:
        return json_error(exc, "Failed to list checkouts")


@checkouts_bp.get("/<int:checkout_id>")
def get_checkout_route(checkout_id: int):
    try:
        return _checkout_response(checkout_service.get_checkout(checkout_id))
    except Exception as exc:
        return json_error(exc, "Failed to load checkout")


@checkouts_bp.get("/<int:checkout_id>/summary")
def checkout_summary_route(checkout_id: int):
    try:
        return jsonify(checkout_service.get_checkout_summary(checkout_id)), 200
    except Exception as exc:
        return json_error(exc, "Failed to build checkout summary")


@checkouts_bp.post("/<int:checkout_id>/items")
@identify_actor
def add_item_route(checkout_id: int):
    """
    Add a line item.

    Request body:
    {
        "kind": "merchandise",
        "name": "Balls (tube)",
        "quantity": "2",
        "unit_price_cents": 18000,
        "discount_cents": 0,           (optional)
        "account_id": 3,               (optional)
        "assigned_player_ids": ["p1"]  (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        item = checkout_service.add_item(checkout_id, data, user_id=current_user_id())
        return _checkout_response(item.checkout, 201, item=item.to_dict())
    except Exception as exc:
        return json_error(exc, "Failed to add item")


@checkouts_bp.put("/items/<int:item_id>/account")
def move_item_route(item_id: int):
    """Assign an item to an account ({"account_id": 3}) or unassign it ({"account_id": null})."""
    try:
        data = require_payload(request.get_json(silent=True))
        if "account_id" not in data:
            return jsonify({"error": "account_id is required (null to unassign)"}), 400
        account_id = data["account_id"]
        item = checkout_service.move_item_to_account(
            item_id, coerce_id(account_id, "account_id") if account_id is not None else None
        )
        return _checkout_response(item.checkout, item=item.to_dict())
    except Exception as exc:
        return json_error(exc, "Failed to move item")


@checkouts_bp.post("/<int:checkout_id>/accounts")
def create_account_route(checkout_id: int):
    """
    Add a payer account.

    Request body:
    {
        "name": "Petr",
        "players": [{"id": "p2", "name": "Petr"}]  (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        account = checkout_service.create_account(checkout_id, data.get("name"), data.get("players"))
        return _checkout_response(account.checkout, 201, account=account.to_dict())
    except Exception as exc:
        return json_error(exc, "Failed to create account")


@checkouts_bp.delete("/accounts/<int:account_id>")
def remove_account_route(account_id: int):
    try:
        checkout_id = checkout_service.get_account(account_id).checkout_id
        checkout_service.remove_account(account_id)
        return _checkout_response(checkout_service.get_checkout(checkout_id))
    except Exception as exc:
        return json_error(exc, "Failed to remove account")


@checkouts_bp.put("/accounts/<int:account_id>/split")
def update_account_split_route(account_id: int):
    """
    Change one account's split.

    Request body:
    {
        "split_type": "equal",
        "split_config": {"group": "default"}
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        account = checkout_service.update_account_split(
            account_id, data.get("split_type"), data.get("split_config")
        )
        return _checkout_response(account.checkout, account=account.to_dict())
    except Exception as exc:
        return json_error(exc, "Failed to update account split")


@checkouts_bp.put("/<int:checkout_id>/split")
def configure_split_route(checkout_id: int):
    """
    Configure a split group in one step.

    Request body:
    {
        "split_type": "percentage",
        "shares": {"3": "60", "4": "40"},
        "group": "default"  (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        checkout = checkout_service.configure_split(
            checkout_id,
            data.get("split_type"),
            data.get("shares"),
            group=data.get("group") or "default",
        )
        return _checkout_response(checkout)
    except Exception as exc:
        return json_error(exc, "Failed to configure split")


@checkouts_bp.post("/<int:checkout_id>/recalculate")
def recalculate_route(checkout_id: int):
    try:
        return _checkout_response(checkout_service.recalculate(checkout_id))
    except Exception as exc:
        return json_error(exc, "Failed to recalculate checkout")


@checkouts_bp.post("/<int:checkout_id>/cancel")
@identify_actor
def cancel_checkout_route(checkout_id: int):
    try:
        checkout = checkout_service.cancel_checkout(checkout_id, user_id=current_user_id())
        return _checkout_response(checkout)
    except Exception as exc:
        return json_error(exc, "Failed to cancel checkout")
