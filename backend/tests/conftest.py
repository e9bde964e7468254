"""
Pytest fixtures for Courtside backend tests.

Provides test database setup, an in-memory reservation lookup, and test client.
"""

from datetime import datetime

import pytest
from courtside import create_app
from courtside.extensions import db
from courtside.reservations import Participant, Reservation, ReservationLookup
from courtside.services import shift_service
from courtside.validation import NotFoundError


STAFF_ID = 7


class FakeReservationLookup(ReservationLookup):
    """Booking system stand-in: reservations registered by the test."""

    def __init__(self):
        self.reservations = {}

    def add(self, reservation: Reservation) -> Reservation:
        self.reservations[reservation.id] = reservation
        return reservation

    def clear(self):
        self.reservations.clear()

    def get_reservation(self, reservation_id):
        try:
            return self.reservations[str(reservation_id)]
        except KeyError:
            raise NotFoundError(f"Reservation {reservation_id} not found")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'LOG_LEVEL': 'WARNING',
        },
        reservation_lookup=FakeReservationLookup(),
    )

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def reservations(app):
    """The app's fake booking system, emptied for each test."""
    lookup = app.extensions["courtside.reservations"]
    lookup.clear()
    return lookup


@pytest.fixture(scope='function')
def singles_reservation(reservations):
    """90 minutes on Court 1 for two players, no price from the booking system."""
    return reservations.add(Reservation(
        id="R-100",
        court_name="Court 1",
        start_time=datetime(2026, 5, 4, 17, 0),
        end_time=datetime(2026, 5, 4, 18, 30),
        price_cents=None,
        participants=[Participant("p1", "Jana"), Participant("p2", "Petr")],
    ))


@pytest.fixture(scope='function')
def open_shift(db_session):
    """Drawer opened by STAFF_ID with a 1 000 Kč float."""
    return shift_service.open_shift(STAFF_ID, 100000)


def staff_headers(staff_id: int = STAFF_ID) -> dict:
    """Helper to create the identity header set by the gateway."""
    return {'X-Staff-Id': str(staff_id)}
