from compreg.extensions import db
from compreg.models import RegistrationStatus
from .errors import EventNotFound
from .events import EventCapacityGateway


class CapacityCounter:
    """The (admitted, waitlisted) counts cached on the event row.

    Reads that feed a write must happen in the writer's transaction; the
    default ``for_update=True`` locks the event row until commit.
    """

    def __init__(self, session=None, gateway=None, ledger=None):
        self.session = session if session is not None else db.session
        self.gateway = gateway or EventCapacityGateway(self.session)
        self.ledger = ledger

    def read(self, event_id, for_update=True):
        snapshot = self.gateway.get_event_capacity(event_id, for_update=for_update)
        if snapshot is None:
            raise EventNotFound(event_id=event_id)
        return snapshot.admitted_count, snapshot.waitlisted_count

    def write(self, event_id, admitted, waitlisted):
        if admitted < 0 or waitlisted < 0:
            raise ValueError("capacity counts cannot be negative")
        if not self.gateway.set_event_capacity(event_id, admitted, waitlisted):
            raise EventNotFound(event_id=event_id)

    def recompute(self, event_id):
        """Overwrite the cached counts with the ledger's and return them."""
        admitted = self.ledger.count_by_status(event_id, RegistrationStatus.REGISTERED)
        waitlisted = self.ledger.count_by_status(event_id, RegistrationStatus.WAITLISTED)
        self.write(event_id, admitted, waitlisted)
        return admitted, waitlisted
