import pytest

from compreg.extensions import db
from compreg.models import Event
from compreg.registration import Role


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def drifted(service, make_event):
    event_id = make_event(name="Boulder Open", max_participants=1)
    service.register(1, event_id, Role.ATHLETE)
    service.register(2, event_id, Role.ATHLETE)
    db.session.rollback()
    event = db.session.get(Event, event_id)
    event.registration_count = 3
    db.session.commit()
    return event_id


def reconcile(runner, *args):
    db.session.rollback()
    return runner.invoke(args=["reconcile", *args])


def test_conflicting_flags_exit_3(runner):
    result = reconcile(runner, "--dry-run", "--fix")
    assert result.exit_code == 3
    assert "Invalid options" in result.output


def test_clean_database_exits_0(runner, make_event):
    make_event()
    result = reconcile(runner, "-v")
    assert result.exit_code == 0
    assert "All registration counts are accurate!" in result.output
    assert "Events Checked: 1" in result.output


def test_dry_run_with_issues_exits_1(runner, drifted, counts):
    result = reconcile(runner, "-d")

    assert result.exit_code == 1
    assert "Mode: dry_run" in result.output
    assert "Registered: 3 -> 1 (-2)" in result.output
    assert counts(drifted) == (3, 1)


def test_fix_exits_0(runner, drifted, counts):
    result = reconcile(runner, "--fix")

    assert result.exit_code == 0
    assert "Issues found and resolved" in result.output
    assert counts(drifted) == (1, 1)


def test_unknown_event_exits_2(runner, drifted):
    result = reconcile(runner, "--event", "9999")

    assert result.exit_code == 2
    assert "Event 9999 not found" in result.output
