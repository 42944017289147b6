from models.db import db
from models.types import UTCDateTime, utcnow


class BookingStatusLog(db.Model):
    """Append-only audit trail of booking status transitions. Rows are never updated or deleted."""

    __tablename__ = "booking_status_logs"

    # autoincrement id doubles as the append order for entries sharing a timestamp
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    booking_id = db.Column(db.String(36), db.ForeignKey("bookings.id"), nullable=False, index=True)

    previous_status = db.Column(db.String(20), nullable=True)  # null for creation
    new_status = db.Column(db.String(20), nullable=False)

    changed_by = db.Column(db.String(36), nullable=True)  # actor id; null for system sweeps
    changed_at = db.Column(UTCDateTime(), default=utcnow, nullable=False)
    reason = db.Column(db.Text, nullable=True)
