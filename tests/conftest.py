"""
Shared pytest fixtures for the registration engine tests.

- app: application on a throwaway SQLite file, tables created, context pushed
- make_event: inserts an event and returns its id
- counts: reads the cached (registration_count, waitlist_count) of an event
- auth_headers: builds an Authorization header for a (user_id, role) pair
- clock: a controllable clock that ticks one second per call
"""

from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from compreg import create_app
from compreg.extensions import db
from compreg.models import Event, Registration
from compreg.registration import RegistrationService


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", {
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'compreg.db'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_event(app):
    def _make(name="Boulder Open", max_participants=0, **kwargs):
        event = Event(name=name, max_participants=max_participants, **kwargs)
        db.session.add(event)
        db.session.flush()
        event_id = event.id
        db.session.commit()
        return event_id
    return _make


@pytest.fixture
def counts(app):
    def _counts(event_id):
        db.session.rollback()
        event = db.session.get(Event, event_id)
        result = (event.registration_count, event.waitlist_count)
        db.session.rollback()
        return result
    return _counts


@pytest.fixture
def statuses(app):
    """Map of user_id -> list of ledger statuses for an event, oldest first."""
    def _statuses(event_id):
        db.session.rollback()
        rows = (
            Registration.query.filter_by(event_id=event_id)
            .order_by(Registration.id)
            .all()
        )
        result = {}
        for row in rows:
            result.setdefault(row.user_id, []).append(row.status)
        db.session.rollback()
        return result
    return _statuses


class FakeClock:
    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2025, 3, 1, 9, 0, 0)
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def frozen_clock():
    """A clock that always returns the same instant."""
    return FakeClock(step=timedelta(0))


@pytest.fixture
def service(app, clock):
    return RegistrationService(clock=clock)


@pytest.fixture
def auth_headers(app):
    def _headers(user_id, role="athlete"):
        token = create_access_token(identity=str(user_id), additional_claims={"role": role})
        return {"Authorization": f"Bearer {token}"}
    return _headers

