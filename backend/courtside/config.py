# backend/courtside/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/courtside.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///courtside.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Single-currency engine
    CURRENCY = os.environ.get("CURRENCY", "CZK")

    # Fat-finger guard for payment requests (major units)
    PAYMENT_REQUEST_MIN_AMOUNT = os.environ.get("PAYMENT_REQUEST_MIN_AMOUNT", "0.01")
    PAYMENT_REQUEST_MAX_AMOUNT = os.environ.get("PAYMENT_REQUEST_MAX_AMOUNT", "50000.00")

    # Defaults for the payment settings row (editable at runtime)
    QR_ACCOUNT = os.environ.get("QR_ACCOUNT", "123456789")
    QR_BANK_CODE = os.environ.get("QR_BANK_CODE", "0100")
    QR_RECIPIENT_NAME = os.environ.get("QR_RECIPIENT_NAME", "Tennis Club")
    QR_DEFAULT_MESSAGE = os.environ.get("QR_DEFAULT_MESSAGE", "Tennis Club - Checkout")
    QR_REFERENCE_PREFIX = os.environ.get("QR_REFERENCE_PREFIX", "")

    # Seed a court line item when a checkout is created from a reservation
    INCLUDE_COURT_PRICE = os.environ.get("INCLUDE_COURT_PRICE", "true").lower() == "true"
    DEFAULT_COURT_HOURLY_RATE_CENTS = int(os.environ.get("DEFAULT_COURT_HOURLY_RATE_CENTS", "50000"))

    # Reservation collaborator
    RESERVATIONS_API_URL = os.environ.get("RESERVATIONS_API_URL", "http://127.0.0.1:5002/api")
    RESERVATIONS_API_TIMEOUT = float(os.environ.get("RESERVATIONS_API_TIMEOUT", "5"))

    # Identity collaborator: upstream gateway forwards the authenticated staff id
    STAFF_ID_HEADER = os.environ.get("STAFF_ID_HEADER", "X-Staff-Id")

    # Front-desk UI origins allowed to call the API from the browser
    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    ]
