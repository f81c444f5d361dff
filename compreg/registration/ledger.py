import logging
from datetime import datetime

from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError

from compreg.extensions import db
from compreg.models import ACTIVE_STATUSES, Event, Registration, RegistrationStatus
from .errors import DuplicateActiveRegistration, InvalidTransition

logger = logging.getLogger(__name__)

# Allowed status changes of an existing ledger row. Cancelled is terminal.
TRANSITIONS = {
    RegistrationStatus.REGISTERED: {RegistrationStatus.CANCELLED},
    RegistrationStatus.WAITLISTED: {RegistrationStatus.REGISTERED, RegistrationStatus.CANCELLED},
    RegistrationStatus.CANCELLED: set(),
}


class RegistrationLedger:
    """Query and write surface over the registrations table.

    Every method works in the session's current transaction; none of them
    commits.
    """

    def __init__(self, session=None, clock=None):
        self.session = session if session is not None else db.session
        self.clock = clock or datetime.utcnow

    def find_active(self, user_id, event_id):
        stmt = select(Registration).where(
            Registration.user_id == user_id,
            Registration.event_id == event_id,
            Registration.status.in_(ACTIVE_STATUSES),
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def count_by_status(self, event_id, status):
        stmt = select(func.count(Registration.id)).where(
            Registration.event_id == event_id,
            Registration.status == RegistrationStatus(status),
        )
        return self.session.scalar(stmt) or 0

    def insert(self, user_id, event_id, status):
        status = RegistrationStatus(status)
        if not status.is_active:
            raise InvalidTransition("New registrations must be registered or waitlisted")
        registration = Registration(
            user_id=user_id,
            event_id=event_id,
            status=status,
            registered_at=self.clock(),
        )
        self.session.add(registration)
        try:
            self.session.flush()
        except IntegrityError as exc:
            logger.warning("Duplicate active registration user=%s event=%s", user_id, event_id)
            raise DuplicateActiveRegistration(user_id=user_id, event_id=event_id) from exc
        return registration

    def set_status(self, registration_id, new_status):
        new_status = RegistrationStatus(new_status)
        registration = self.session.get(Registration, registration_id)
        if registration is None:
            raise InvalidTransition(f"Registration {registration_id} does not exist")
        if new_status not in TRANSITIONS[registration.status]:
            raise InvalidTransition(
                f"Cannot change registration {registration_id} from "
                f"{registration.status.value} to {new_status.value}",
                registration_id=registration_id,
            )
        registration.status = new_status
        if new_status is RegistrationStatus.CANCELLED:
            registration.cancelled_at = self.clock()
        self.session.flush()
        return registration

    def first_waitlisted(self, event_id):
        stmt = (
            select(Registration)
            .where(
                Registration.event_id == event_id,
                Registration.status == RegistrationStatus.WAITLISTED,
            )
            .order_by(Registration.registered_at, Registration.id)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def waitlist_position(self, registration):
        """1-based FIFO position of a waitlisted registration, else None."""
        if registration is None or registration.status is not RegistrationStatus.WAITLISTED:
            return None
        ahead = select(func.count(Registration.id)).where(
            Registration.event_id == registration.event_id,
            Registration.status == RegistrationStatus.WAITLISTED,
            (Registration.registered_at < registration.registered_at)
            | (
                (Registration.registered_at == registration.registered_at)
                & (Registration.id < registration.id)
            ),
        )
        return (self.session.scalar(ahead) or 0) + 1

    def all_for_event(self, event_id):
        """Iterate every ledger row of an event; each call runs a fresh query."""
        stmt = (
            select(Registration)
            .where(Registration.event_id == event_id)
            .order_by(Registration.registered_at, Registration.id)
            .execution_options(yield_per=500)
        )
        yield from self.session.scalars(stmt)

    def list_for_event(self, event_id, status=None):
        stmt = select(Registration).where(Registration.event_id == event_id)
        if status is not None:
            stmt = stmt.where(Registration.status == RegistrationStatus(status))
        stmt = stmt.order_by(Registration.registered_at, Registration.id)
        return list(self.session.scalars(stmt))

    def list_for_user(self, user_id, status=None):
        stmt = select(Registration).where(Registration.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Registration.status == RegistrationStatus(status))
        stmt = stmt.order_by(Registration.registered_at.desc(), Registration.id.desc())
        return list(self.session.scalars(stmt))

    def find_orphaned(self):
        """Active rows whose event no longer exists."""
        event_exists = exists().where(Event.id == Registration.event_id)
        stmt = (
            select(Registration)
            .where(Registration.status.in_(ACTIVE_STATUSES), ~event_exists)
            .order_by(Registration.id)
        )
        return list(self.session.scalars(stmt))
