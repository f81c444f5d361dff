from .events import Event
from .registrations import Registration, RegistrationStatus, ACTIVE_STATUSES

__all__ = [
    "Event",
    "Registration", "RegistrationStatus", "ACTIVE_STATUSES",
]
