"""
Create / update / cancel bookings as single atomic, audited transitions.

Every write runs inside one locked transaction:

    lock studio -> conflict check -> status machine -> booking rows
                -> line items -> status log -> commit

The lock makes the conflict check and the write one step, so of two
concurrent requests for overlapping time only one can commit.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from flask import current_app

from models.booking import ACTIVE_STATUSES, Booking, BookingStatus, BookingType
from models.types import new_id, utcnow
from services.actor import SYSTEM_ACTOR
from services.booking_store import BookingStore, LineItem
from services.conflicts import ConflictResolver
from services.status_machine import StatusMachine, normalize_status
from utils.errors import Conflict, NotFound, StorageFailure, ValidationError
from utils.interval import Interval
from utils.user_directory import UserDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptionSelection:
    option_id: str
    quantity: int = 1


@dataclass
class CreateBookingRequest:
    start_time: datetime
    end_time: datetime
    booking_type: str = BookingType.CONFIRMED.value
    user_id: Optional[str] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None
    people_count: Optional[int] = None
    confirmation_deadline: Optional[datetime] = None
    automatic_cancellation: bool = False
    options: List[OptionSelection] = field(default_factory=list)
    status: Optional[str] = None  # honoured for elevated actors only
    idempotency_key: Optional[str] = None


@dataclass
class BookingPatch:
    """Partial update. None means "leave unchanged"; options=[] clears the line items."""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    booking_type: Optional[str] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None
    people_count: Optional[int] = None
    confirmation_deadline: Optional[datetime] = None
    automatic_cancellation: Optional[bool] = None
    status: Optional[str] = None
    options: Optional[List[OptionSelection]] = None
    reason: Optional[str] = None


def normalize_booking_type(value) -> str:
    raw = value.value if isinstance(value, BookingType) else str(value or "").strip().lower()
    if raw not in {t.value for t in BookingType}:
        raise ValidationError(f"Unknown booking type: {value}")
    return raw


def _validate_people_count(value):
    if value is not None and (not isinstance(value, int) or value < 0):
        raise ValidationError("people_count must be a non-negative integer")


def _ensure_same_request(existing: Booking, request: CreateBookingRequest, interval, user_id, booking_type):
    """A replayed idempotency key must describe the booking it created."""
    requested_lines = [(str(s.option_id), s.quantity) for s in request.options or []]
    stored_lines = [(line.option_id, line.quantity) for line in existing.options]
    if (
        existing.user_id != user_id
        or existing.start_time != interval.start
        or existing.end_time != interval.end
        or existing.booking_type != booking_type
        or stored_lines != requested_lines
    ):
        raise Conflict(
            "Idempotency key was already used for a different booking",
            details={"idempotency_key": request.idempotency_key},
        )


class BookingOrchestrator:

    def __init__(self, store=None, conflicts=None, status_machine=None, directory=None):
        self.store = store or BookingStore()
        self.conflicts = conflicts or ConflictResolver(self.store)
        self.status_machine = status_machine or StatusMachine()
        self.directory = directory or UserDirectory()

    # ---------- writes ----------

    def create_booking(self, request: CreateBookingRequest, actor) -> Booking:
        # Without an idempotency key a retried create could insert twice
        if request.idempotency_key:
            return self._with_retry("create", lambda: self._create(request, actor))
        return self._create(request, actor)

    def _create(self, request: CreateBookingRequest, actor) -> Booking:
        interval = Interval(request.start_time, request.end_time)
        booking_type = normalize_booking_type(request.booking_type)
        _validate_people_count(request.people_count)
        user_id = self._resolve_user(request, actor)
        status = self.status_machine.initial_status(request.status, actor)

        with self.store.atomic(lock=True):
            if request.idempotency_key:
                existing = self.store.find_by_idempotency_key(request.idempotency_key, actor.actor_id)
                if existing is not None:
                    _ensure_same_request(existing, request, interval, user_id, booking_type)
                    logger.info("Create replayed for idempotency key %s -> booking %s",
                                request.idempotency_key, existing.id)
                    return existing

            lines = self._price_lines(request.options)
            self.conflicts.ensure_available(interval)

            now = utcnow()
            booking = Booking(
                id=new_id(),
                user_id=user_id,
                start_time=interval.start,
                end_time=interval.end,
                status=status,
                booking_type=booking_type,
                purpose=request.purpose,
                notes=request.notes,
                people_count=request.people_count,
                confirmation_deadline=request.confirmation_deadline,
                automatic_cancellation=bool(request.automatic_cancellation),
                created_by=actor.actor_id if actor.is_elevated else None,
                updated_by=actor.actor_id if actor.is_elevated else None,
                requested_by=actor.actor_id,
                idempotency_key=request.idempotency_key,
            )
            if status == BookingStatus.APPROVED.value:
                booking.approved_by = actor.actor_id
                booking.approved_at = now

            self.store.create(booking, lines)
            reason = "Created by administrator" if actor.is_elevated else "Created by user"
            self.store.append_status_log(self.status_machine.creation_log(booking, actor, reason, now))

        logger.info("Booking %s created (%s) for %s", booking.id, status, interval)
        return booking

    def update_booking(self, booking_id, patch: BookingPatch, actor) -> Booking:
        return self._with_retry("update", lambda: self._update(booking_id, patch, actor))

    def _update(self, booking_id, patch: BookingPatch, actor) -> Booking:
        with self.store.atomic(lock=True):
            booking = self.store.get(booking_id, refresh=True)
            changes = {}

            target_status = booking.status
            if patch.status is not None:
                target_status = normalize_status(patch.status)

            if patch.start_time is not None or patch.end_time is not None:
                interval = Interval(
                    patch.start_time or booking.start_time,
                    patch.end_time or booking.end_time,
                )
                if target_status in ACTIVE_STATUSES:
                    self.conflicts.ensure_available(interval, exclude_booking_id=booking.id)
                changes["start_time"] = interval.start
                changes["end_time"] = interval.end

            if patch.booking_type is not None:
                changes["booking_type"] = normalize_booking_type(patch.booking_type)
            if patch.people_count is not None:
                _validate_people_count(patch.people_count)
                changes["people_count"] = patch.people_count
            for name in ("purpose", "notes", "confirmation_deadline", "automatic_cancellation"):
                value = getattr(patch, name)
                if value is not None:
                    changes[name] = value
            if actor.is_elevated:
                changes["updated_by"] = actor.actor_id

            self.store.update(booking.id, changes)

            if patch.status is not None:
                reason = patch.reason or ("Updated by administrator" if actor.is_elevated else "Updated by user")
                entry = self.status_machine.transition(booking, target_status, actor, reason)
                if entry is not None:
                    self.store.append_status_log(entry)

            if patch.options is not None:
                self.store.replace_options(booking, self._price_lines(patch.options))

        logger.info("Booking %s updated (%s)", booking.id, ", ".join(sorted(changes)) or "no field changes")
        return booking

    def cancel_booking(self, booking_id, actor, reason: str = None) -> None:
        self._with_retry("cancel", lambda: self._cancel(booking_id, actor, reason))

    def _cancel(self, booking_id, actor, reason):
        with self.store.atomic(lock=True):
            booking = self.store.get(booking_id, refresh=True)
            if booking.status == BookingStatus.CANCELLED.value:
                # already cancelled: no-op, no log row
                return
            entry = self.status_machine.transition(
                booking,
                BookingStatus.CANCELLED.value,
                actor,
                reason or ("Cancelled by administrator" if actor.is_elevated else "Cancelled by user"),
            )
            self.store.update(booking.id, {"updated_by": actor.actor_id} if actor.is_elevated else {})
            self.store.append_status_log(entry)
        logger.info("Booking %s cancelled", booking_id)

    def expire_overdue(self, now=None, actor=SYSTEM_ACTOR) -> List[str]:
        """Cancel temporary bookings whose confirmation deadline has passed."""
        now = now or utcnow()
        expired_ids = []
        with self.store.atomic(lock=True):
            for booking in self.store.find_expired_temporaries(now):
                # now is only the cutoff; the log row carries the time of the change
                entry = self.status_machine.transition(
                    booking, BookingStatus.CANCELLED.value, actor, "Confirmation deadline passed"
                )
                self.store.touch(booking)
                self.store.append_status_log(entry)
                expired_ids.append(booking.id)
        if expired_ids:
            logger.info("Expired %d temporary bookings", len(expired_ids))
        return expired_ids

    # ---------- reads ----------

    def check_availability(self, interval: Interval, exclude_id=None) -> bool:
        return self.conflicts.is_available(interval, exclude_id)

    def get_booking(self, booking_id) -> Booking:
        return self.store.get(booking_id)

    def list_bookings(self, filters=None, sort=None, page=None):
        return self.store.query(filters, sort, page)

    def status_history(self, booking_id):
        self.store.get(booking_id)
        return self.store.status_logs(booking_id)

    # ---------- helpers ----------

    def _resolve_user(self, request: CreateBookingRequest, actor):
        if actor.is_elevated:
            user_id = request.user_id
        else:
            # self-service bookings are always for the caller
            user_id = actor.actor_id
            if not user_id:
                raise ValidationError("A user is required to book")

        if user_id is not None and not self.directory.user_exists(user_id):
            raise NotFound("User not found", details={"user_id": user_id})
        return str(user_id) if user_id is not None else None

    def _price_lines(self, selections) -> List[LineItem]:
        selections = list(selections or [])
        for s in selections:
            if not isinstance(s.quantity, int) or s.quantity < 1:
                raise ValidationError("Option quantity must be a positive integer",
                                      details={"option_id": s.option_id})
        catalog = self.store.find_options([s.option_id for s in selections])
        # price captured now; later catalog changes never touch these rows
        return [
            LineItem(option_id=str(s.option_id), quantity=s.quantity, price=catalog[str(s.option_id)].unit_price)
            for s in selections
        ]

    def _with_retry(self, operation: str, fn):
        attempts = max(1, int(current_app.config.get("STORAGE_RETRY_ATTEMPTS", 3)))
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except StorageFailure:
                if attempt == attempts:
                    logger.error("Storage failure during %s, giving up after %d attempts", operation, attempts)
                    raise
                logger.warning("Storage failure during %s (attempt %d/%d), retrying", operation, attempt, attempts)
