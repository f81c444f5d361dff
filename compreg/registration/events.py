from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select

from compreg.extensions import db
from compreg.models import Event


@dataclass(frozen=True)
class EventCapacitySnapshot:
    event_id: int
    name: str
    max_capacity: int
    admitted_count: int
    waitlisted_count: int
    allow_registration: bool
    registration_deadline: Optional[datetime] = None

    @classmethod
    def from_event(cls, event):
        return cls(
            event_id=event.id,
            name=event.name,
            max_capacity=event.max_participants or 0,
            admitted_count=event.registration_count or 0,
            waitlisted_count=event.waitlist_count or 0,
            allow_registration=bool(event.allow_registration),
            registration_deadline=event.registration_deadline,
        )

    @property
    def unlimited(self):
        return self.max_capacity == 0

    def has_capacity(self, admitted):
        return self.unlimited or admitted < self.max_capacity

    def deadline_passed(self, now):
        return self.registration_deadline is not None and now > self.registration_deadline

    def registration_open(self, now):
        return self.allow_registration and not self.deadline_passed(now)


class EventCapacityGateway:
    """Reads and writes the capacity projection stored on the events table."""

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def _load(self, event_id, for_update=False):
        stmt = select(Event).where(Event.id == event_id)
        if for_update:
            stmt = stmt.with_for_update()
        # populate_existing: a locked read must not be served from the identity map
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_event_capacity(self, event_id, for_update=False):
        event = self._load(event_id, for_update=for_update)
        return EventCapacitySnapshot.from_event(event) if event is not None else None

    def set_event_capacity(self, event_id, admitted, waitlisted):
        event = self.session.get(Event, event_id)
        if event is None:
            return False
        event.registration_count = admitted
        event.waitlist_count = waitlisted
        self.session.flush()
        return True

    def exists(self, event_id):
        return self.session.scalar(select(Event.id).where(Event.id == event_id)) is not None

    def event_ids(self):
        return list(self.session.scalars(select(Event.id).order_by(Event.id)))
