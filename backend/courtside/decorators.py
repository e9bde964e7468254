# Overview: Request decorators that resolve the acting staff member for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request


def _resolve_staff_id():
    """
    Staff id forwarded by the upstream gateway, or None.

    The gateway authenticates the user; this service only trusts the header
    it sets. Anything that is not a positive integer counts as missing.
    """
    raw = request.headers.get(current_app.config["STAFF_ID_HEADER"], "").strip()
    if not raw.isdigit() or int(raw) <= 0:
        return None
    return int(raw)


def identify_actor(f):
    """
    Resolve the acting staff member if the request carries one.

    Sets g.current_user_id (None for anonymous requests).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.current_user_id = _resolve_staff_id()
        return f(*args, **kwargs)

    return decorated_function


def require_actor(f):
    """
    Require an identified staff member.

    Returns 401 when the staff header is missing or malformed; otherwise
    sets g.current_user_id for the route and the services it calls.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        staff_id = _resolve_staff_id()
        if staff_id is None:
            return jsonify({"error": "Authentication required"}), 401
        g.current_user_id = staff_id
        return f(*args, **kwargs)

    return decorated_function


def current_user_id():
    return getattr(g, "current_user_id", None)
