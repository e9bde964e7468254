from datetime import datetime

import httpx
import pytest

from courtside.reservations import (
    HttpReservationLookup,
    Participant,
    Reservation,
    court_price_cents,
)
from courtside.validation import NotFoundError, ValidationError


PAYLOAD = {
    "id": 1042,
    "court_name": "Court 2",
    "start_time": "2026-05-04T15:00:00Z",
    "end_time": "2026-05-04T16:00:00Z",
    "participants": [
        {"id": "p1", "name": "Jana"},
        {"id": "p2"},
        {"name": "no id"},
    ],
}


def fake_get(status_code, payload=None, calls=None):
    def _get(url, timeout=None):
        if calls is not None:
            calls.append((url, timeout))
        request = httpx.Request("GET", url)
        return httpx.Response(status_code, json=payload, request=request)
    return _get


def test_http_lookup_parses_reservation(monkeypatch):
    calls = []
    monkeypatch.setattr(httpx, "get", fake_get(200, PAYLOAD, calls))

    reservation = HttpReservationLookup("http://booking.local/api/", timeout=2.5).get_reservation("1042")

    assert calls == [("http://booking.local/api/reservations/1042", 2.5)]
    assert reservation.id == "1042"
    assert reservation.court_name == "Court 2"
    assert reservation.start_time == datetime(2026, 5, 4, 15, 0)
    assert reservation.price_cents is None
    assert reservation.participants == [Participant("p1", "Jana"), Participant("p2", "p2")]


def test_http_lookup_missing_reservation(monkeypatch):
    monkeypatch.setattr(httpx, "get", fake_get(404, {"error": "not found"}))
    with pytest.raises(NotFoundError):
        HttpReservationLookup("http://booking.local/api").get_reservation("R-1")


def test_http_lookup_upstream_failure(monkeypatch):
    monkeypatch.setattr(httpx, "get", fake_get(503, {"error": "down"}))
    with pytest.raises(httpx.HTTPStatusError):
        HttpReservationLookup("http://booking.local/api").get_reservation("R-1")


def test_malformed_payload():
    with pytest.raises(ValidationError):
        Reservation.from_payload({"id": 1, "start_time": "soon", "end_time": "later"})
    with pytest.raises(ValidationError):
        Reservation.from_payload({**PAYLOAD, "price_cents": 12.5})


class TestCourtPrice:
    def reservation(self, minutes, price_cents=None):
        start = datetime(2026, 5, 4, 17, 0)
        return Reservation(
            id="R",
            court_name="Court 1",
            start_time=start,
            end_time=start.replace(hour=17 + minutes // 60, minute=minutes % 60),
            price_cents=price_cents,
        )

    def test_hourly_rate_by_duration(self):
        assert court_price_cents(self.reservation(90), 50000) == 75000
        assert court_price_cents(self.reservation(60), 50000) == 50000
        assert court_price_cents(self.reservation(45), 33333) == 25000

    def test_booking_price_wins(self):
        assert court_price_cents(self.reservation(90, price_cents=60000), 50000) == 60000
        assert court_price_cents(self.reservation(90, price_cents=0), 50000) == 0

    def test_zero_length_booking(self):
        with pytest.raises(ValidationError):
            court_price_cents(self.reservation(0), 50000)


def test_upstream_error_maps_to_bad_gateway(client, db_session, monkeypatch, app):
    """Without a reachable booking service, creating from a reservation is a 502."""
    lookup = HttpReservationLookup("http://booking.local/api")
    monkeypatch.setitem(app.extensions, "courtside.reservations", lookup)
    monkeypatch.setattr(httpx, "get", fake_get(500, {"error": "boom"}))

    res = client.post("/api/checkouts", json={"source_reservation_id": "R-100"})

    assert res.status_code == 502
