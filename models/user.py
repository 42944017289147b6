from models.db import db
from models.types import UTCDateTime, new_id, utcnow


class User(db.Model):
    """Local projection of the user directory; bookings reference it."""

    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(30), nullable=True)

    created_at = db.Column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at = db.Column(UTCDateTime(), default=utcnow, nullable=False)

    bookings = db.relationship("Booking", back_populates="user", foreign_keys="Booking.user_id")
