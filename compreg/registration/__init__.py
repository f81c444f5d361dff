from .errors import (
    AlreadyRegistered,
    CannotUnregisterAfterDeadline,
    DuplicateActiveRegistration,
    EventNotFound,
    IntegrityFailure,
    InvalidTransition,
    NotRegistered,
    PermissionDenied,
    PolicyError,
    ReconciliationConfigError,
    RegistrationClosed,
    RegistrationError,
    StorageError,
)
from .results import Failure, Success, UnregisterOutcome
from .roles import ROLE_PERMISSIONS, Role, can_manage_events, can_register, has_permission
from .events import EventCapacityGateway, EventCapacitySnapshot
from .ledger import RegistrationLedger
from .counter import CapacityCounter
from .transaction import transaction, with_transaction
from .service import RegistrationService
from .reconciliation import (
    EventDiscrepancy,
    ReconciliationEngine,
    ReconciliationOptions,
    ReconciliationReport,
    exit_code_for,
    format_report,
)

__all__ = [
    "RegistrationError", "PolicyError", "IntegrityFailure",
    "PermissionDenied", "EventNotFound", "RegistrationClosed", "AlreadyRegistered",
    "NotRegistered", "CannotUnregisterAfterDeadline",
    "DuplicateActiveRegistration", "InvalidTransition",
    "StorageError", "ReconciliationConfigError",
    "Success", "Failure", "UnregisterOutcome",
    "Role", "ROLE_PERMISSIONS", "has_permission", "can_register", "can_manage_events",
    "EventCapacityGateway", "EventCapacitySnapshot",
    "RegistrationLedger", "CapacityCounter",
    "transaction", "with_transaction",
    "RegistrationService",
    "ReconciliationEngine", "ReconciliationOptions", "ReconciliationReport", "EventDiscrepancy",
    "exit_code_for", "format_report",
]
