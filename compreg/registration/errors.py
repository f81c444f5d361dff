"""Failure kinds of the registration engine.

Policy and integrity failures are expected outcomes: the service raises them
inside its transaction so the transaction rolls back, then hands them to the
caller as ``Failure`` values. ``StorageError`` is the only one that escapes as
an exception; callers may retry it with backoff.
"""


class RegistrationError(Exception):
    code = "REGISTRATION_ERROR"
    http_status = 400
    default_message = "Registration request failed"

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        payload = {"code": self.code, "error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# ---- policy failures ----

class PolicyError(RegistrationError):
    pass


class PermissionDenied(PolicyError):
    code = "PERMISSION_DENIED"
    http_status = 403
    default_message = "You do not have permission to register for events"


class EventNotFound(PolicyError):
    code = "EVENT_NOT_FOUND"
    http_status = 404
    default_message = "Event not found"


class RegistrationClosed(PolicyError):
    code = "REGISTRATION_CLOSED"
    http_status = 409
    default_message = "Registration is closed for this event"


class AlreadyRegistered(PolicyError):
    code = "ALREADY_REGISTERED"
    http_status = 409

    def __init__(self, status, message=None):
        self.status = status
        super().__init__(message or f"You are already {status.value} for this event", status=status.value)


class NotRegistered(PolicyError):
    code = "NOT_REGISTERED"
    http_status = 404
    default_message = "You are not registered for this event"


class CannotUnregisterAfterDeadline(PolicyError):
    code = "UNREGISTER_AFTER_DEADLINE"
    http_status = 409
    default_message = "Cannot unregister after registration deadline"


# ---- integrity failures (a race lost to a concurrent request) ----

class IntegrityFailure(RegistrationError):
    http_status = 409


class DuplicateActiveRegistration(IntegrityFailure):
    code = "DUPLICATE_ACTIVE_REGISTRATION"
    default_message = "You are already registered for this event"


class InvalidTransition(IntegrityFailure):
    code = "INVALID_TRANSITION"
    default_message = "Registration cannot change to the requested status"


# ---- infrastructure ----

class StorageError(Exception):
    """Storage unavailable or transaction timed out. Safe to retry."""

    code = "STORAGE_ERROR"
    http_status = 503


class ReconciliationConfigError(ValueError):
    code = "INVALID_RECONCILIATION_OPTIONS"
