from datetime import datetime
from compreg.extensions import db


# ================================
# Event capacity projection
# ================================

class Event(db.Model):
    """Capacity-relevant columns of a competition event.

    The event itself is managed by the events CRUD; registration_count and
    waitlist_count are a cache of the registrations ledger and are only
    written by the registration engine.
    """
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    date = db.Column(db.DateTime, index=True)

    # Capacity (0 = unlimited)
    max_participants = db.Column(
        db.Integer,
        db.CheckConstraint("max_participants >= 0", name="ck_events_max_participants"),
        nullable=False,
        default=0,
    )
    registration_count = db.Column(db.Integer, nullable=False, default=0)
    waitlist_count = db.Column(db.Integer, nullable=False, default=0)

    # Registration gate
    allow_registration = db.Column(db.Boolean, nullable=False, default=True)
    registration_deadline = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
