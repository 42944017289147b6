import enum

from models.db import db
from models.types import UTCDateTime, new_id, utcnow


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class BookingType(str, enum.Enum):
    TEMPORARY = "temporary"
    CONFIRMED = "confirmed"


# Only these statuses hold the studio
ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.APPROVED.value)


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # nullable for admin-entered placeholder bookings
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True, index=True)

    start_time = db.Column(UTCDateTime(), nullable=False)
    end_time = db.Column(UTCDateTime(), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=BookingStatus.PENDING.value)
    booking_type = db.Column(db.String(20), nullable=False, default=BookingType.CONFIRMED.value)

    purpose = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    people_count = db.Column(db.Integer, nullable=True)

    confirmation_deadline = db.Column(UTCDateTime(), nullable=True)
    automatic_cancellation = db.Column(db.Boolean, default=False, nullable=False)

    total_amount = db.Column(db.Integer, nullable=False, default=0)  # cached, smallest unit

    approved_by = db.Column(db.String(36), nullable=True)
    approved_at = db.Column(UTCDateTime(), nullable=True)
    created_by = db.Column(db.String(36), nullable=True)
    updated_by = db.Column(db.String(36), nullable=True)

    # caller that submitted the create; idempotency keys are unique per caller
    requested_by = db.Column(db.String(36), nullable=True)
    idempotency_key = db.Column(db.String(64), nullable=True)

    created_at = db.Column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at = db.Column(UTCDateTime(), default=utcnow, nullable=False)

    user = db.relationship("User", back_populates="bookings", foreign_keys=[user_id])
    options = db.relationship(
        "BookingOption",
        back_populates="booking",
        order_by="BookingOption.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        # The one query conflict detection depends on
        db.Index("ix_bookings_time_status", "start_time", "end_time", "status"),
        db.CheckConstraint("end_time > start_time", name="ck_bookings_forward_interval"),
        db.UniqueConstraint("requested_by", "idempotency_key", name="uq_bookings_requester_idempotency_key"),
    )

    def __repr__(self):
        return f"<Booking {self.id} {self.status} {self.start_time}-{self.end_time}>"


class BookingOption(db.Model):
    """Line item: an option attached to a booking with the price captured at booking time."""

    __tablename__ = "booking_options"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    booking_id = db.Column(db.String(36), db.ForeignKey("bookings.id"), nullable=False, index=True)
    option_id = db.Column(db.String(36), db.ForeignKey("options.id"), nullable=False, index=True)

    position = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Integer, nullable=False)  # unit price at booking time

    created_at = db.Column(UTCDateTime(), default=utcnow, nullable=False)

    booking = db.relationship("Booking", back_populates="options")
    option = db.relationship("Option")

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_booking_options_quantity_positive"),
    )

    @property
    def line_total(self) -> int:
        return self.price * self.quantity
