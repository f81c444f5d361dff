"""Result values returned by the registration service.

    result = service.register(user_id, event_id, role)
    match result:
        case Success(value=status):
            ...
        case Failure(error=error):
            ...
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from compreg.models import RegistrationStatus

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self):
        return True


@dataclass(frozen=True)
class Failure(Generic[E]):
    error: E

    @property
    def ok(self):
        return False


Result = Union[Success[T], Failure[E]]


@dataclass(frozen=True)
class UnregisterOutcome:
    cancelled_status: RegistrationStatus
    promoted_user_id: Optional[int] = None
    promoted_registration_id: Optional[int] = None

    @property
    def promoted(self):
        return self.promoted_user_id is not None
