# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment API Routes

WHY: Settle payer accounts with cash or a QR bank-transfer request.

DESIGN:
- Cash payments are confirmed immediately and hit the drawer ledger
- Payment requests return the SPAYD string and a PNG QR code; they stay
  pending until an identified staff member confirms the transfer
- Confirmation is idempotent
"""

from flask import Blueprint, request, jsonify

from ..decorators import identify_actor, require_actor, current_user_id
from ..services import payment_service, settings_service
from ..validation import coerce_id, require_payload
from .errors import json_error


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _payment_response(payment, status: int = 200, **extra):
    account = payment.account
    body = {
        "payment": payment.to_dict(),
        "account": account.to_dict(),
        "checkout_status": account.checkout.status,
    }
    body.update(extra)
    return jsonify(body), status


@payments_bp.get("/methods")
def payment_methods_route():
    try:
        sale_type = request.args.get("sale_type") or None
        return jsonify({"methods": settings_service.get_available_payment_methods(sale_type)}), 200
    except Exception as exc:
        return json_error(exc, "Failed to list payment methods")


@payments_bp.post("/cash")
@identify_actor
def cash_payment_route():
    """
    Record a cash payment.

    Request body:
    {
        "account_id": 3,
        "amount_cents": 28000,
        "cash_received_cents": 30000  (optional, defaults to exact amount)
    }

    Response includes the change due in payment.cash_change_cents.
    """
    try:
        data = require_payload(request.get_json(silent=True))
        payment = payment_service.process_cash_payment(
            coerce_id(data.get("account_id"), "account_id"),
            data.get("amount_cents"),
            data.get("cash_received_cents"),
            user_id=current_user_id(),
            notes=data.get("notes"),
        )
        return _payment_response(payment, 201)
    except Exception as exc:
        return json_error(exc, "Failed to record cash payment")


@payments_bp.post("/requests")
@identify_actor
def create_payment_request_route():
    """
    Generate a QR payment request for an account.

    Request body:
    {
        "account_id": 3,
        "amount_cents": 28000,  (optional, defaults to the remaining balance)
        "message": "..."        (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        result = payment_service.generate_payment_request(
            coerce_id(data.get("account_id"), "account_id"),
            data.get("amount_cents"),
            user_id=current_user_id(),
            message=data.get("message"),
        )
        return _payment_response(
            result["payment"],
            201,
            encoded_request=result["encoded_request"],
            display_string=result["display_string"],
            qr_image=result["qr_image"],
        )
    except Exception as exc:
        return json_error(exc, "Failed to create payment request")


@payments_bp.post("/<int:payment_id>/confirm")
@require_actor
def confirm_payment_request_route(payment_id: int):
    try:
        payment = payment_service.confirm_payment_request(payment_id, user_id=current_user_id())
        return _payment_response(payment)
    except Exception as exc:
        return json_error(exc, "Failed to confirm payment request")


@payments_bp.post("/<int:payment_id>/cancel")
@identify_actor
def cancel_payment_request_route(payment_id: int):
    try:
        data = require_payload(request.get_json(silent=True))
        payment = payment_service.cancel_payment_request(
            payment_id, user_id=current_user_id(), reason=data.get("reason")
        )
        return _payment_response(payment)
    except Exception as exc:
        return json_error(exc, "Failed to cancel payment request")


@payments_bp.get("/<int:payment_id>")
def get_payment_route(payment_id: int):
    try:
        return _payment_response(payment_service.get_payment(payment_id))
    except Exception as exc:
        return json_error(exc, "Failed to load payment")


@payments_bp.get("/accounts/<int:account_id>")
def account_payments_route(account_id: int):
    try:
        payments = payment_service.get_account_payments(account_id)
        return jsonify({
            "account_id": account_id,
            "payments": [p.to_dict() for p in payments],
            "remaining_cents": payment_service.get_remaining_balance(account_id),
        }), 200
    except Exception as exc:
        return json_error(exc, "Failed to list account payments")
