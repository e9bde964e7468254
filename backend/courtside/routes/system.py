# backend/courtside/routes/system.py
"""
System health endpoint.

The front desk polls this before taking money: is the database reachable,
is the drawer open, and which payment methods are switched on.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services import settings_service, shift_service
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(started: float) -> float:
    return round((time.time() - started) * 1000, 2)


def check_database_health() -> dict:
    started = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        return {"status": "healthy", "latency_ms": _elapsed_ms(started)}
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(started), "error": "Database error"}


def check_drawer_health() -> dict:
    """
    Drawer and payment configuration.

    No enabled payment method means nothing can be settled: degraded, not down.
    """
    started = time.time()
    try:
        shift = shift_service.get_current_shift()
        methods = settings_service.get_available_payment_methods()
    except Exception:
        current_app.logger.exception("Cash drawer health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(started), "error": "Cash drawer error"}

    result = {
        "status": "healthy" if methods else "degraded",
        "latency_ms": _elapsed_ms(started),
        "details": {
            "open_shift_id": shift.id if shift else None,
            "payment_methods": methods,
        },
    }
    if not methods:
        result["warning"] = "No payment method is enabled"
    return result


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (still operational)
    - 503: database unreachable
    """
    started = time.time()
    checks = {"database": check_database_health()}
    if checks["database"]["status"] == "healthy":
        checks["cash_drawer"] = check_drawer_health()

    statuses = {check["status"] for check in checks.values()}
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": _elapsed_ms(started),
        "checks": checks,
    }, http_status
