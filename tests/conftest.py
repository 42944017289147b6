from datetime import datetime, timezone

import pytest

from app import create_app
from config import TestConfig
from models import Booking, BookingStatusLog, Option, User, db
from services.actor import Actor
from services.orchestrator import BookingOrchestrator, CreateBookingRequest
from utils.seed import seed_resource_lock


def at(day, hour, minute=0):
    """UTC instant on a June 2025 day, e.g. at(2, 10) is Monday 2025-06-02 10:00Z."""
    return datetime(2025, 6, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "studioslot.db")

    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        seed_resource_lock(app.config["BOOKING_LOCK_KEY"])
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user(app):
    u = User(email="alice@example.com", full_name="Alice Moreau", phone="+33 6 12 34 56 78")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def other_user(app):
    u = User(email="bob@example.com", full_name="Bob Lindqvist")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def admin(app):
    u = User(email="admin@example.com", full_name="Studio Admin")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def user_actor(user):
    return Actor(actor_id=user.id)


@pytest.fixture
def admin_actor(admin):
    return Actor(actor_id=admin.id, is_elevated=True)


@pytest.fixture
def mic(app):
    o = Option(name="Extra microphone", unit_price=1500, unit="item")
    db.session.add(o)
    db.session.commit()
    return o


@pytest.fixture
def engineer(app):
    o = Option(name="Sound engineer", unit_price=4000, unit="hour")
    db.session.add(o)
    db.session.commit()
    return o


@pytest.fixture
def orchestrator(app):
    return BookingOrchestrator()


@pytest.fixture
def book(orchestrator, user_actor):
    """Create a booking; defaults to a self-service request by `user`."""

    def _book(start, end, actor=None, **kwargs):
        request = CreateBookingRequest(start_time=start, end_time=end, **kwargs)
        return orchestrator.create_booking(request, actor or user_actor)

    return _book


def log_count(booking_id):
    return BookingStatusLog.query.filter_by(booking_id=booking_id).count()


def active_bookings():
    return Booking.query.filter(Booking.status.in_(["pending", "approved"])).all()
