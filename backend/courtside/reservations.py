# Overview: Reservation lookup and court pricing used when a checkout is opened from a booking.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

import httpx
from flask import current_app

from .money import multiply
from .time_utils import duration_hours, parse_iso_datetime
from .validation import NotFoundError, ValidationError


EXTENSION_KEY = "courtside.reservations"


@dataclass(frozen=True)
class Participant:
    id: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Reservation:
    id: str
    court_name: str
    start_time: datetime
    end_time: datetime
    price_cents: int | None = None
    participants: list[Participant] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> "Reservation":
        """Build from the reservations API JSON body."""
        try:
            start = parse_iso_datetime(payload["start_time"])
            end = parse_iso_datetime(payload["end_time"])
            reservation_id = str(payload["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed reservation payload: {exc}") from exc

        price = payload.get("price_cents")
        if price is not None and (isinstance(price, bool) or not isinstance(price, int) or price < 0):
            raise ValidationError("Reservation price_cents must be a non-negative integer")

        participants = [
            Participant(id=str(p.get("id")), name=str(p.get("name") or p.get("id")))
            for p in payload.get("participants") or []
            if isinstance(p, dict) and p.get("id") is not None
        ]
        return cls(
            id=reservation_id,
            court_name=str(payload.get("court_name") or "Court"),
            start_time=start,
            end_time=end,
            price_cents=price,
            participants=participants,
        )


class ReservationLookup:
    """Read-only view of the reservation system."""

    def get_reservation(self, reservation_id: str) -> Reservation:
        raise NotImplementedError


class HttpReservationLookup(ReservationLookup):
    """Fetches reservations from the booking service over HTTP."""

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def get_reservation(self, reservation_id: str) -> Reservation:
        url = f"{self.base_url}/reservations/{reservation_id}"
        response = httpx.get(url, timeout=self.timeout)
        if response.status_code == 404:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        response.raise_for_status()
        return Reservation.from_payload(response.json())


def init_reservations(app, lookup: ReservationLookup | None = None) -> None:
    if lookup is None:
        lookup = HttpReservationLookup(
            app.config["RESERVATIONS_API_URL"],
            timeout=app.config["RESERVATIONS_API_TIMEOUT"],
        )
    app.extensions[EXTENSION_KEY] = lookup


def get_reservation_lookup() -> ReservationLookup:
    return current_app.extensions[EXTENSION_KEY]


def court_price_cents(reservation: Reservation, hourly_rate_cents: int) -> int:
    """
    Price of the court time.

    The booking system's own price wins; otherwise the duration is billed at
    the hourly rate, rounded half-up to the minor unit.
    """
    if reservation.price_cents is not None:
        return reservation.price_cents
    hours = duration_hours(reservation.start_time, reservation.end_time)
    if hours <= 0:
        raise ValidationError("Reservation must end after it starts")
    return multiply(hourly_rate_cents, Decimal(hours))
