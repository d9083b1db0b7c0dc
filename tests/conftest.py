"""
Shared fixtures: an in-memory SQLite database per test, a fixed business
day, seeded staff / property / guest rows and an API client with the
database and automation emitter dependencies overridden.
"""

import os
import sys
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rentdesk.database import Base, get_db
from rentdesk import models  # noqa: F401
from rentdesk.models.booking import Booking
from rentdesk.models.guest import Guest
from rentdesk.models.property import Owner, Property, Unit
from rentdesk.models.user import User, UserRole
from rentdesk.utils.dependencies import get_emitter
from rentdesk.utils.security import create_access_token

FIXED_TODAY = date(2026, 3, 15)


class RecordingEmitter:
    """Collects emitted events instead of dispatching them"""

    def __init__(self):
        self.events = []

    def emit(self, event, data):
        self.events.append((event, data))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def today():
    return lambda: FIXED_TODAY


@pytest.fixture
def emitter():
    return RecordingEmitter()


def _make_user(db, email, role):
    user = User(
        email=email,
        hashed_password="not-used",
        first_name=role.value.title(),
        last_name="Tester",
        role=role.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def assistant(db):
    return _make_user(db, "assistant@example.com", UserRole.ASSISTANT)


@pytest.fixture
def cleaner(db):
    return _make_user(db, "cleaner@example.com", UserRole.CLEANER)


@pytest.fixture
def technician(db):
    return _make_user(db, "tech@example.com", UserRole.MAINTENANCE)


@pytest.fixture
def owner(db):
    owner = Owner(name="Layla Haddad", email="owner@example.com")
    db.add(owner)
    db.commit()
    db.refresh(owner)
    return owner


@pytest.fixture
def property_(db, owner):
    prop = Property(code="MARINA-1", name="Marina Heights", owner_id=owner.id)
    db.add(prop)
    db.commit()
    db.refresh(prop)
    return prop


@pytest.fixture
def unit(db, property_):
    unit = Unit(property_id=property_.id, unit_code="A-101")
    db.add(unit)
    db.commit()
    db.refresh(unit)
    return unit


@pytest.fixture
def guest(db):
    guest = Guest(first_name="Omar", last_name="Saleh", email="omar@example.com", total_spend=Decimal("0"))
    db.add(guest)
    db.commit()
    db.refresh(guest)
    return guest


@pytest.fixture
def other_guest(db):
    guest = Guest(first_name="Sara", last_name="Nasser", email="sara@example.com", total_spend=Decimal("0"))
    db.add(guest)
    db.commit()
    db.refresh(guest)
    return guest


def auth_headers(user):
    token = create_access_token({"sub": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(session_factory, emitter):
    """API client; lifespan is not run, so no scheduler or worker starts"""
    from rentdesk.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_emitter] = lambda: emitter
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_booking(db, property_, checkin, checkout, unit=None, guest=None, reference=None, **extra):
    """Insert a booking row directly, bypassing the lifecycle manager"""
    booking = Booking(
        reference=reference or f"BK-{checkin:%m%d}{checkout:%m%d}-T{db.query(Booking).count():03d}",
        property_id=property_.id,
        unit_id=unit.id if unit else None,
        guest_id=guest.id if guest else None,
        checkin_date=checkin,
        checkout_date=checkout,
        nights=(checkout - checkin).days,
        total_amount=extra.pop("total_amount", Decimal("100")),
        currency=extra.pop("currency", "AED"),
        **extra,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking
