# Overview: Maps service exceptions onto JSON error responses for all blueprints.

from __future__ import annotations

import httpx
from flask import current_app, jsonify

from ..validation import (
    AuthenticationRequiredError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


def json_error(exc: Exception, failure_message: str):
    """
    Translate a service exception into (response, status).

    Anything unexpected is logged with its traceback and reported as 500
    without leaking details.
    """
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, AuthenticationRequiredError):
        return jsonify({"error": str(exc)}), 401
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, httpx.HTTPError):
        current_app.logger.warning("%s: reservation service error: %s", failure_message, exc)
        return jsonify({"error": "Reservation service unavailable"}), 502

    current_app.logger.exception(failure_message)
    return jsonify({"error": "Internal server error"}), 500
