"""Registration count reconciliation.

The counts cached on each event are a materialized view of the registrations
ledger. A reconciliation pass recomputes them from the ledger, reports every
event whose cache disagrees and, with ``auto_fix``, writes the true values
back. It also cancels active registrations that point at deleted events.

The pass is not a transactional peer of the registration service: each fix is
its own short transaction, so a registration that lands between the count and
the fix can leave the counter off again until the next pass.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from compreg.extensions import db
from compreg.models import RegistrationStatus
from .counter import CapacityCounter
from .errors import ReconciliationConfigError
from .events import EventCapacityGateway
from .ledger import RegistrationLedger
from .transaction import resolve_session, transaction

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ISSUES = 1
EXIT_ERRORS = 2
EXIT_FAILURE = 3


class ReconciliationOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    dry_run: bool = False
    auto_fix: bool = False
    event_id: Optional[int] = None
    include_orphaned: bool = True

    @model_validator(mode="after")
    def _check_mode(self):
        if self.dry_run and self.auto_fix:
            raise ValueError("Cannot use both autoFix and dryRun options together")
        return self

    @classmethod
    def build(cls, **values):
        """Validate ``values``; raises ReconciliationConfigError."""
        try:
            return cls(**values)
        except ValidationError as exc:
            messages = "; ".join(err["msg"] for err in exc.errors())
            raise ReconciliationConfigError(messages) from exc

    @property
    def mode(self):
        if self.dry_run:
            return "dry_run"
        if self.auto_fix:
            return "auto_fix"
        return "check_only"

    @property
    def writes(self):
        return not self.dry_run


@dataclass(frozen=True)
class EventDiscrepancy:
    event_id: int
    event_name: str
    stored_registered: int
    actual_registered: int
    stored_waitlisted: int
    actual_waitlisted: int

    @property
    def registered_diff(self):
        return self.actual_registered - self.stored_registered

    @property
    def waitlisted_diff(self):
        return self.actual_waitlisted - self.stored_waitlisted


@dataclass(frozen=True)
class ReconciliationReport:
    timestamp: datetime
    mode: str
    events_checked: int = 0
    discrepancies_found: int = 0
    fixes_applied: int = 0
    orphaned_registrations: int = 0
    orphans_cancelled: int = 0
    discrepancies: Tuple[EventDiscrepancy, ...] = ()
    errors: Tuple[str, ...] = ()

    @property
    def has_issues(self):
        return self.discrepancies_found > 0 or self.orphaned_registrations > 0

    @property
    def unresolved(self):
        return (self.discrepancies_found - self.fixes_applied) + (
            self.orphaned_registrations - self.orphans_cancelled
        )


@dataclass
class _ReportBuilder:
    mode: str
    timestamp: datetime
    events_checked: int = 0
    fixes_applied: int = 0
    orphaned_registrations: int = 0
    orphans_cancelled: int = 0
    discrepancies: list = field(default_factory=list)
    errors: list = field(default_factory=list)

    def freeze(self):
        return ReconciliationReport(
            timestamp=self.timestamp,
            mode=self.mode,
            events_checked=self.events_checked,
            discrepancies_found=len(self.discrepancies),
            fixes_applied=self.fixes_applied,
            orphaned_registrations=self.orphaned_registrations,
            orphans_cancelled=self.orphans_cancelled,
            discrepancies=tuple(self.discrepancies),
            errors=tuple(self.errors),
        )


class ReconciliationEngine:

    def __init__(self, session=None, clock=None):
        self.session = session if session is not None else db.session
        self.clock = clock or datetime.utcnow
        self.events = EventCapacityGateway(self.session)
        self.ledger = RegistrationLedger(self.session, clock=self.clock)
        self.counter = CapacityCounter(self.session, gateway=self.events, ledger=self.ledger)

    def run(self, options=None, **values):
        if options is None:
            options = ReconciliationOptions.build(**values)
        elif values:
            raise ReconciliationConfigError(
                f"Pass either options or keyword values, not both (got {', '.join(sorted(values))})"
            )
        elif options.dry_run and options.auto_fix:
            raise ReconciliationConfigError("Cannot use both autoFix and dryRun options together")

        report = _ReportBuilder(mode=options.mode, timestamp=self.clock())

        if options.include_orphaned:
            self._orphan_pass(options, report)

        for event_id in self._target_events(options, report):
            report.events_checked += 1
            try:
                discrepancy = self._check_event(event_id)
            except Exception as exc:
                self.session.rollback()
                report.errors.append(f"Error checking event {event_id}: {exc}")
                logger.error("Error checking event %s: %s", event_id, exc)
                continue
            if discrepancy is None:
                continue

            report.discrepancies.append(discrepancy)
            logger.warning(
                "Discrepancy in event %s (%s): registered %s stored vs %s actual, "
                "waitlisted %s stored vs %s actual",
                discrepancy.event_id, discrepancy.event_name,
                discrepancy.stored_registered, discrepancy.actual_registered,
                discrepancy.stored_waitlisted, discrepancy.actual_waitlisted,
            )
            if options.auto_fix and not options.dry_run:
                try:
                    self._fix_event(discrepancy)
                except Exception as exc:
                    report.errors.append(f"Failed to fix counts for event {discrepancy.event_name}: {exc}")
                    logger.error("Failed to fix counts for event %s: %s", discrepancy.event_id, exc)
                else:
                    report.fixes_applied += 1
                    logger.info("Fixed counts for event %s", discrepancy.event_id)

        frozen = report.freeze()
        logger.info(
            "Reconciliation (%s): %s event(s) checked, %s discrepancies, %s fixed, %s orphaned, %s error(s)",
            frozen.mode, frozen.events_checked, frozen.discrepancies_found,
            frozen.fixes_applied, frozen.orphaned_registrations, len(frozen.errors),
        )
        return frozen

    def _target_events(self, options, report):
        try:
            if options.event_id is None:
                event_ids = self.events.event_ids()
            elif self.events.exists(options.event_id):
                event_ids = [options.event_id]
            else:
                report.errors.append(f"Event {options.event_id} not found")
                event_ids = []
        except Exception as exc:
            self.session.rollback()
            report.errors.append(f"Reconciliation failed: {exc}")
            logger.error("Could not list events to reconcile: %s", exc)
            return []
        finally:
            if resolve_session(self.session).in_transaction():
                self.session.rollback()
        return event_ids

    def _check_event(self, event_id):
        try:
            snapshot = self.events.get_event_capacity(event_id)
            if snapshot is None:
                # deleted since the event list was read
                return None
            actual_registered = self.ledger.count_by_status(event_id, RegistrationStatus.REGISTERED)
            actual_waitlisted = self.ledger.count_by_status(event_id, RegistrationStatus.WAITLISTED)
        finally:
            if resolve_session(self.session).in_transaction():
                self.session.rollback()

        if (actual_registered, actual_waitlisted) == (snapshot.admitted_count, snapshot.waitlisted_count):
            return None
        return EventDiscrepancy(
            event_id=event_id,
            event_name=snapshot.name,
            stored_registered=snapshot.admitted_count,
            actual_registered=actual_registered,
            stored_waitlisted=snapshot.waitlisted_count,
            actual_waitlisted=actual_waitlisted,
        )

    def _fix_event(self, discrepancy):
        with transaction(self.session):
            self.counter.write(
                discrepancy.event_id,
                discrepancy.actual_registered,
                discrepancy.actual_waitlisted,
            )

    def _orphan_pass(self, options, report):
        try:
            if not options.writes:
                orphans = self.ledger.find_orphaned()
                report.orphaned_registrations = len(orphans)
                self.session.rollback()
            else:
                with transaction(self.session):
                    orphans = self.ledger.find_orphaned()
                    report.orphaned_registrations = len(orphans)
                    for registration in orphans:
                        self.ledger.set_status(registration.id, RegistrationStatus.CANCELLED)
                report.orphans_cancelled = report.orphaned_registrations
        except Exception as exc:
            self.session.rollback()
            report.errors.append(f"Error checking orphaned registrations: {exc}")
            logger.error("Error checking orphaned registrations: %s", exc)
            return

        if report.orphaned_registrations:
            logger.warning("Found %s orphaned registration(s)", report.orphaned_registrations)
        if report.orphans_cancelled:
            logger.info("Cancelled %s orphaned registration(s)", report.orphans_cancelled)


def exit_code_for(report):
    """Map a report to the operator exit code contract."""
    if report.errors:
        return EXIT_ERRORS
    if report.unresolved > 0:
        return EXIT_ISSUES
    return EXIT_OK


def _signed(value):
    return f"+{value}" if value > 0 else str(value)


def format_report(report):
    lines = [
        "Registration Count Reconciliation Report",
        f"Timestamp: {report.timestamp.isoformat()}",
        f"Mode: {report.mode}",
        f"Events Checked: {report.events_checked}",
        f"Discrepancies Found: {report.discrepancies_found}",
        f"Fixes Applied: {report.fixes_applied}",
        f"Orphaned Registrations: {report.orphaned_registrations}",
        f"Orphans Cancelled: {report.orphans_cancelled}",
        f"Errors: {len(report.errors)}",
    ]
    if report.discrepancies:
        lines.append("")
        lines.append("Event Discrepancies:")
        for index, disc in enumerate(report.discrepancies, start=1):
            lines.append(f"{index}. {disc.event_name} ({disc.event_id})")
            lines.append(
                f"   Registered: {disc.stored_registered} -> {disc.actual_registered} "
                f"({_signed(disc.registered_diff)})"
            )
            lines.append(
                f"   Waitlisted: {disc.stored_waitlisted} -> {disc.actual_waitlisted} "
                f"({_signed(disc.waitlisted_diff)})"
            )
    if report.errors:
        lines.append("")
        lines.append("Errors Encountered:")
        for index, error in enumerate(report.errors, start=1):
            lines.append(f"{index}. {error}")
    return "\n".join(lines)
