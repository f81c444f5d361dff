"""Registration state machine.

Per (user, event) pair::

    NotRegistered -> Registered | Waitlisted -> Cancelled
                     Waitlisted -> Registered   (FIFO promotion)

Admission control is decided once, in ``register``, from counts read under a
row lock on the event in the same transaction as the ledger insert and the
counter write. ``unregister`` recomputes the counts from the ledger instead of
decrementing them, so any earlier drift on that event heals on the way.
"""

import logging
from datetime import datetime

from compreg.extensions import db
from compreg.models import RegistrationStatus
from .counter import CapacityCounter
from .errors import (
    AlreadyRegistered,
    CannotUnregisterAfterDeadline,
    EventNotFound,
    NotRegistered,
    PermissionDenied,
    RegistrationClosed,
    RegistrationError,
)
from .events import EventCapacityGateway
from .ledger import RegistrationLedger
from .results import Failure, Success, UnregisterOutcome
from .roles import can_manage_events, can_register as default_can_register
from .transaction import reading, transaction

logger = logging.getLogger(__name__)


class RegistrationService:

    def __init__(
        self,
        session=None,
        can_register=None,
        clock=None,
        timeout_ms=None,
        lock_after_deadline=True,
    ):
        self.session = session if session is not None else db.session
        self.clock = clock or datetime.utcnow
        self.can_register = can_register or default_can_register
        self.timeout_ms = timeout_ms
        self.lock_after_deadline = lock_after_deadline
        self.events = EventCapacityGateway(self.session)
        self.ledger = RegistrationLedger(self.session, clock=self.clock)
        self.counter = CapacityCounter(self.session, gateway=self.events, ledger=self.ledger)

    @classmethod
    def from_config(cls, config, **kwargs):
        kwargs.setdefault("timeout_ms", config.get("REGISTRATION_TRANSACTION_TIMEOUT_MS"))
        kwargs.setdefault("lock_after_deadline", config.get("REGISTRATION_LOCK_AFTER_DEADLINE", True))
        return cls(**kwargs)

    # ------------------------------------------------------------------
    # commands
    # ------------------------------------------------------------------

    def register(self, user_id, event_id, role):
        """Admit or waitlist ``user_id`` for ``event_id``.

        Returns ``Success(RegistrationStatus)`` or ``Failure(RegistrationError)``.
        Raises StorageError when the database is unavailable.
        """
        if not self.can_register(role):
            return Failure(PermissionDenied(role=str(getattr(role, "value", role))))
        with reading(self.session):
            known = self.events.exists(event_id)
        if not known:
            return Failure(EventNotFound(event_id=event_id))

        try:
            with transaction(self.session, timeout_ms=self.timeout_ms):
                status = self._register_locked(user_id, event_id)
        except RegistrationError as exc:
            logger.info("Registration refused user=%s event=%s: %s", user_id, event_id, exc.code)
            return Failure(exc)

        logger.info("User %s %s for event %s", user_id, status.value, event_id)
        return Success(status)

    def _register_locked(self, user_id, event_id):
        snapshot = self.events.get_event_capacity(event_id, for_update=True)
        if snapshot is None:
            raise EventNotFound(event_id=event_id)
        if not snapshot.registration_open(self.clock()):
            raise RegistrationClosed(event_id=event_id)

        existing = self.ledger.find_active(user_id, event_id)
        if existing is not None:
            raise AlreadyRegistered(existing.status)

        admitted, waitlisted = self.counter.read(event_id)
        if snapshot.has_capacity(admitted):
            status = RegistrationStatus.REGISTERED
            admitted += 1
        else:
            status = RegistrationStatus.WAITLISTED
            waitlisted += 1

        self.ledger.insert(user_id, event_id, status)
        self.counter.write(event_id, admitted, waitlisted)
        return status

    def unregister(self, user_id, event_id):
        """Cancel the active registration and promote the next waitlisted user.

        Returns ``Success(UnregisterOutcome)`` or ``Failure(RegistrationError)``.
        """
        try:
            with transaction(self.session, timeout_ms=self.timeout_ms):
                outcome = self._unregister_locked(user_id, event_id)
        except RegistrationError as exc:
            logger.info("Unregistration refused user=%s event=%s: %s", user_id, event_id, exc.code)
            return Failure(exc)

        logger.info("User %s cancelled %s registration for event %s",
                    user_id, outcome.cancelled_status.value, event_id)
        if outcome.promoted:
            logger.info("Promoted user %s from waitlist to registered for event %s",
                        outcome.promoted_user_id, event_id)
        return Success(outcome)

    def _unregister_locked(self, user_id, event_id):
        snapshot = self.events.get_event_capacity(event_id, for_update=True)
        if snapshot is None:
            raise EventNotFound(event_id=event_id)

        registration = self.ledger.find_active(user_id, event_id)
        if registration is None:
            raise NotRegistered(event_id=event_id)
        if self.lock_after_deadline and snapshot.deadline_passed(self.clock()):
            raise CannotUnregisterAfterDeadline(event_id=event_id)

        prior_status = registration.status
        self.ledger.set_status(registration.id, RegistrationStatus.CANCELLED)

        promoted = None
        if prior_status is RegistrationStatus.REGISTERED:
            admitted = self.ledger.count_by_status(event_id, RegistrationStatus.REGISTERED)
            if snapshot.has_capacity(admitted):
                promoted = self.ledger.first_waitlisted(event_id)
                if promoted is not None:
                    self.ledger.set_status(promoted.id, RegistrationStatus.REGISTERED)

        self.counter.recompute(event_id)
        return UnregisterOutcome(
            cancelled_status=prior_status,
            promoted_user_id=promoted.user_id if promoted is not None else None,
            promoted_registration_id=promoted.id if promoted is not None else None,
        )

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    # Storage failures on these reads raise StorageError, as writes do.

    def query_status(self, user_id, event_id):
        with reading(self.session):
            registration = self.ledger.find_active(user_id, event_id)
            return registration.status if registration is not None else None

    def waitlist_position(self, user_id, event_id):
        with reading(self.session):
            return self.ledger.waitlist_position(self.ledger.find_active(user_id, event_id))

    def event_registrations(self, event_id, role, status=None):
        if not can_manage_events(role):
            return Failure(PermissionDenied("Insufficient permissions"))
        with reading(self.session):
            if not self.events.exists(event_id):
                return Failure(EventNotFound(event_id=event_id))
            return Success(self.ledger.list_for_event(event_id, status=status))

    def user_registrations(self, user_id, status=None):
        with reading(self.session):
            return self.ledger.list_for_user(user_id, status=status)
