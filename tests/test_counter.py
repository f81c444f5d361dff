from datetime import timedelta

import pytest

from compreg.extensions import db
from compreg.models import Event, RegistrationStatus
from compreg.registration import (
    CapacityCounter,
    EventCapacityGateway,
    EventNotFound,
    RegistrationLedger,
    transaction,
    with_transaction,
)
from compreg.registration.transaction import has_pending_writes, resolve_session


@pytest.fixture
def counter(app, clock):
    return CapacityCounter(ledger=RegistrationLedger(clock=clock))


def test_read_returns_cached_counts(counter, make_event):
    event_id = make_event(registration_count=4, waitlist_count=1)
    with transaction():
        assert counter.read(event_id) == (4, 1)


def test_write_overwrites_counts(counter, make_event, counts):
    event_id = make_event()
    with transaction():
        counter.write(event_id, 7, 2)
    assert counts(event_id) == (7, 2)


def test_write_rolls_back_with_the_transaction(counter, make_event, counts):
    event_id = make_event()
    with pytest.raises(RuntimeError):
        with transaction():
            counter.write(event_id, 7, 2)
            raise RuntimeError("boom")
    assert counts(event_id) == (0, 0)


def test_missing_event(counter):
    with pytest.raises(EventNotFound):
        with transaction():
            counter.read(404)
    with pytest.raises(EventNotFound):
        with transaction():
            counter.write(404, 1, 0)


def test_negative_counts_rejected(counter, make_event):
    event_id = make_event()
    with pytest.raises(ValueError):
        with transaction():
            counter.write(event_id, -1, 0)


def test_recompute_uses_ledger(counter, make_event, counts):
    event_id = make_event(registration_count=9, waitlist_count=9)
    with transaction():
        counter.ledger.insert(1, event_id, RegistrationStatus.REGISTERED)
        counter.ledger.insert(2, event_id, RegistrationStatus.WAITLISTED)
        counter.ledger.insert(3, event_id, RegistrationStatus.WAITLISTED)
        assert counter.recompute(event_id) == (1, 2)
    assert counts(event_id) == (1, 2)


def test_snapshot_capacity_rules(app, make_event, clock):
    limited = make_event(max_participants=2, registration_count=2)
    unlimited = make_event(max_participants=0, registration_count=500)
    gateway = EventCapacityGateway()

    limited_snapshot = gateway.get_event_capacity(limited)
    unlimited_snapshot = gateway.get_event_capacity(unlimited)

    assert limited_snapshot.has_capacity(1)
    assert not limited_snapshot.has_capacity(2)
    assert unlimited_snapshot.unlimited
    assert unlimited_snapshot.has_capacity(10_000)
    assert gateway.get_event_capacity(999) is None


def test_snapshot_registration_window(app, make_event, clock):
    now = clock.now

    gateway = EventCapacityGateway()
    open_event = gateway.get_event_capacity(make_event(registration_deadline=now + timedelta(days=1)))
    late_event = gateway.get_event_capacity(make_event(registration_deadline=now - timedelta(seconds=1)))
    gated_event = gateway.get_event_capacity(make_event(allow_registration=False))

    assert open_event.registration_open(now)
    assert not late_event.registration_open(now)
    assert late_event.deadline_passed(now)
    assert not gated_event.registration_open(now)


def test_with_transaction_commits_the_callable(counter, make_event, counts):
    event_id = make_event()
    written = with_transaction(lambda session: counter.gateway.set_event_capacity(event_id, 3, 1))
    assert written is True
    assert counts(event_id) == (3, 1)
    assert with_transaction(lambda session: counter.gateway.set_event_capacity(404, 1, 1)) is False


def test_transaction_keeps_unflushed_work_of_the_caller(counter, make_event, counts):
    event_id = make_event()
    db.session.add(Event(name="Pending"))

    with_transaction(lambda session: counter.write(event_id, 2, 0))

    assert Event.query.filter_by(name="Pending").count() == 1
    db.session.commit()
    assert counts(event_id) == (2, 0)


def test_transaction_joins_an_open_write_as_a_savepoint(counter, make_event, counts):
    event_id = make_event()
    db.session.add(Event(name="Pending"))
    db.session.flush()

    with_transaction(lambda session: counter.write(event_id, 2, 0))
    db.session.rollback()

    assert Event.query.filter_by(name="Pending").count() == 0
    assert counts(event_id) == (0, 0)


def test_failing_savepoint_leaves_the_outer_work(counter, make_event, counts):
    event_id = make_event()
    db.session.add(Event(name="Pending"))
    db.session.flush()

    with pytest.raises(RuntimeError):
        with transaction():
            counter.write(event_id, 5, 5)
            raise RuntimeError("boom")
    db.session.commit()

    assert Event.query.filter_by(name="Pending").count() == 1
    assert counts(event_id) == (0, 0)


def test_default_session_resolves_to_the_scoped_session(app):
    session = resolve_session()
    assert session is db.session()
    assert not has_pending_writes(session)

    db.session.add(Event(name="Pending"))
    assert has_pending_writes(session)
    db.session.flush()
    assert has_pending_writes(session)
    db.session.rollback()
    assert not has_pending_writes(session)
