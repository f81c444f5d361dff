import pytest

from compreg.extensions import db
from compreg.models import Event, RegistrationStatus
from compreg.registration import (
    DuplicateActiveRegistration,
    InvalidTransition,
    RegistrationLedger,
    transaction,
)

REGISTERED = RegistrationStatus.REGISTERED
WAITLISTED = RegistrationStatus.WAITLISTED
CANCELLED = RegistrationStatus.CANCELLED


@pytest.fixture
def ledger(app, clock):
    return RegistrationLedger(clock=clock)


def insert(ledger, user_id, event_id, status):
    with transaction():
        registration = ledger.insert(user_id, event_id, status)
        registration_id = registration.id
    return registration_id


def test_find_active_ignores_cancelled_rows(ledger, make_event):
    event_id = make_event()
    registration_id = insert(ledger, 1, event_id, REGISTERED)

    assert ledger.find_active(1, event_id).id == registration_id

    with transaction():
        ledger.set_status(registration_id, CANCELLED)

    assert ledger.find_active(1, event_id) is None


def test_second_active_row_for_same_pair_is_rejected(ledger, make_event):
    event_id = make_event()
    insert(ledger, 1, event_id, REGISTERED)

    with pytest.raises(DuplicateActiveRegistration):
        insert(ledger, 1, event_id, WAITLISTED)

    assert ledger.count_by_status(event_id, REGISTERED) == 1
    assert ledger.count_by_status(event_id, WAITLISTED) == 0


def test_cancelled_row_does_not_block_a_new_registration(ledger, make_event):
    event_id = make_event()
    first = insert(ledger, 1, event_id, REGISTERED)
    with transaction():
        ledger.set_status(first, CANCELLED)

    second = insert(ledger, 1, event_id, REGISTERED)

    assert second != first
    rows = ledger.list_for_event(event_id)
    assert [(r.id, r.status) for r in rows] == [(first, CANCELLED), (second, REGISTERED)]


def test_insert_refuses_cancelled_status(ledger, make_event):
    event_id = make_event()
    with pytest.raises(InvalidTransition):
        insert(ledger, 1, event_id, CANCELLED)


@pytest.mark.parametrize("start, target", [
    (REGISTERED, WAITLISTED),
    (REGISTERED, REGISTERED),
    (WAITLISTED, WAITLISTED),
])
def test_set_status_rejects_transitions_outside_the_table(ledger, make_event, start, target):
    event_id = make_event()
    registration_id = insert(ledger, 1, event_id, start)

    with pytest.raises(InvalidTransition):
        with transaction():
            ledger.set_status(registration_id, target)


def test_cancelled_is_terminal(ledger, make_event):
    event_id = make_event()
    registration_id = insert(ledger, 1, event_id, WAITLISTED)
    with transaction():
        ledger.set_status(registration_id, CANCELLED)

    for target in (REGISTERED, WAITLISTED, CANCELLED):
        with pytest.raises(InvalidTransition):
            with transaction():
                ledger.set_status(registration_id, target)


def test_set_status_stamps_cancellation_time(ledger, make_event, clock):
    event_id = make_event()
    registration_id = insert(ledger, 1, event_id, REGISTERED)
    with transaction():
        registration = ledger.set_status(registration_id, CANCELLED)
        assert registration.cancelled_at == clock.now


def test_first_waitlisted_is_earliest_by_registered_at(ledger, make_event):
    event_id = make_event()
    insert(ledger, 1, event_id, REGISTERED)
    first = insert(ledger, 2, event_id, WAITLISTED)
    insert(ledger, 3, event_id, WAITLISTED)

    assert ledger.first_waitlisted(event_id).id == first


def test_first_waitlisted_breaks_ties_by_id(app, make_event, frozen_clock):
    ledger = RegistrationLedger(clock=frozen_clock)
    event_id = make_event()
    ids = [insert(ledger, user_id, event_id, WAITLISTED) for user_id in (5, 3, 4)]

    assert ledger.first_waitlisted(event_id).id == min(ids)
    positions = [ledger.waitlist_position(ledger.find_active(u, event_id)) for u in (5, 3, 4)]
    assert positions == [1, 2, 3]


def test_first_waitlisted_none_when_queue_empty(ledger, make_event):
    event_id = make_event()
    insert(ledger, 1, event_id, REGISTERED)
    assert ledger.first_waitlisted(event_id) is None


def test_waitlist_position_only_for_waitlisted(ledger, make_event):
    event_id = make_event()
    insert(ledger, 1, event_id, REGISTERED)
    insert(ledger, 2, event_id, WAITLISTED)
    insert(ledger, 3, event_id, WAITLISTED)

    assert ledger.waitlist_position(ledger.find_active(1, event_id)) is None
    assert ledger.waitlist_position(ledger.find_active(3, event_id)) == 2
    assert ledger.waitlist_position(None) is None


def test_all_for_event_is_restartable(ledger, make_event):
    event_id = make_event()
    other_event = make_event(name="Lead Cup")
    for user_id in (1, 2, 3):
        insert(ledger, user_id, event_id, REGISTERED)
    insert(ledger, 9, other_event, REGISTERED)

    first_pass = [r.user_id for r in ledger.all_for_event(event_id)]
    second_pass = [r.user_id for r in ledger.all_for_event(event_id)]

    assert first_pass == second_pass == [1, 2, 3]


def test_list_for_user_newest_first(ledger, make_event):
    first_event = make_event(name="Speed Trials")
    second_event = make_event(name="Lead Cup")
    insert(ledger, 1, first_event, REGISTERED)
    insert(ledger, 1, second_event, WAITLISTED)

    rows = ledger.list_for_user(1)
    assert [r.event_id for r in rows] == [second_event, first_event]
    assert [r.event_id for r in ledger.list_for_user(1, status="waitlisted")] == [second_event]


def test_find_orphaned_reports_active_rows_of_deleted_events(ledger, make_event):
    kept = make_event(name="Kept")
    doomed = make_event(name="Doomed")
    insert(ledger, 1, kept, REGISTERED)
    insert(ledger, 2, doomed, REGISTERED)
    insert(ledger, 3, doomed, WAITLISTED)
    cancelled = insert(ledger, 4, doomed, REGISTERED)
    with transaction():
        ledger.set_status(cancelled, CANCELLED)

    db.session.delete(db.session.get(Event, doomed))
    db.session.commit()

    orphans = ledger.find_orphaned()
    assert sorted(r.user_id for r in orphans) == [2, 3]
