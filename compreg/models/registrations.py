import enum
from datetime import datetime
from compreg.extensions import db


class RegistrationStatus(str, enum.Enum):
    REGISTERED = "registered"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"

    @property
    def is_active(self):
        return self is not RegistrationStatus.CANCELLED


ACTIVE_STATUSES = (RegistrationStatus.REGISTERED, RegistrationStatus.WAITLISTED)

# Partial index predicate: uniqueness only applies to active rows, so a
# cancelled row can sit next to a later registration of the same user.
_ACTIVE_PREDICATE = db.text("status IN ('registered', 'waitlisted')")


class Registration(db.Model):
    __tablename__ = "registrations"

    id = db.Column(db.Integer, primary_key=True)
    # Not foreign keys: the ledger outlives deleted events (orphans) and
    # users are owned by the auth service.
    event_id = db.Column(db.Integer, nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)

    status = db.Column(
        db.Enum(
            RegistrationStatus,
            name="registration_status",
            native_enum=False,
            create_constraint=True,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=RegistrationStatus.REGISTERED,
    )

    registered_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    cancelled_at = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index(
            "uq_registrations_active",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        db.Index("idx_registrations_event_status", "event_id", "status"),
        db.Index("idx_registrations_user_status", "user_id", "status"),
    )

    @property
    def is_active(self):
        return self.status.is_active

    def __repr__(self):
        return f"<Registration {self.id} user={self.user_id} event={self.event_id} {self.status.value}>"
