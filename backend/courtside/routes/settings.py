from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..decorators import require_actor, current_user_id
from ..services import settings_service
from ..validation import require_payload
from .errors import json_error


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


def _settings_body(settings):
    return {
        "settings": settings.to_dict(),
        "available_methods": settings_service.get_available_payment_methods(),
    }


@settings_bp.get("/payments")
def get_payment_settings_route():
    try:
        return jsonify(_settings_body(settings_service.get_payment_settings())), 200
    except Exception as exc:
        return json_error(exc, "Failed to load payment settings")


@settings_bp.put("/payments")
@settings_bp.patch("/payments")
@require_actor
def update_payment_settings_route():
    try:
        payload = require_payload(request.get_json(silent=True))
        settings = settings_service.update_payment_settings(payload, user_id=current_user_id())
        return jsonify(_settings_body(settings)), 200
    except Exception as exc:
        return json_error(exc, "Failed to update payment settings")
