"""
Booking status state machine.

    pending  -> approved | rejected | cancelled
    approved -> cancelled
    rejected, cancelled: terminal

Every real transition produces exactly one BookingStatusLog entry. A request
whose target equals the current status is a no-op and produces none.
"""

import logging
from typing import Optional

from models.booking import ACTIVE_STATUSES, BookingStatus
from models.booking_status_log import BookingStatusLog
from models.types import utcnow
from utils.errors import InvalidTransition, ValidationError

logger = logging.getLogger(__name__)

TRANSITIONS = {
    BookingStatus.PENDING.value: {
        BookingStatus.APPROVED.value,
        BookingStatus.REJECTED.value,
        BookingStatus.CANCELLED.value,
    },
    BookingStatus.APPROVED.value: {BookingStatus.CANCELLED.value},
    BookingStatus.REJECTED.value: set(),
    BookingStatus.CANCELLED.value: set(),
}


def normalize_status(value) -> str:
    raw = value.value if isinstance(value, BookingStatus) else str(value or "").strip().lower()
    if raw not in TRANSITIONS:
        raise ValidationError(f"Unknown booking status: {value}")
    return raw


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())


class StatusMachine:

    def initial_status(self, requested, actor) -> str:
        """
        pending unless an elevated actor asks for something else.
        A booking may only start life in an active status.
        """
        if requested is None or not actor.is_elevated:
            return BookingStatus.PENDING.value
        status = normalize_status(requested)
        if status not in ACTIVE_STATUSES:
            raise InvalidTransition(
                f"A booking cannot be created as {status}",
                details={"from": None, "to": status},
            )
        return status

    def creation_log(self, booking, actor, reason: str, now=None) -> BookingStatusLog:
        return BookingStatusLog(
            booking_id=booking.id,
            previous_status=None,
            new_status=booking.status,
            changed_by=actor.actor_id,
            changed_at=now or utcnow(),
            reason=reason,
        )

    def transition(self, booking, target, actor, reason: str, now=None) -> Optional[BookingStatusLog]:
        target = normalize_status(target)
        current = booking.status
        if target == current:
            return None

        if not can_transition(current, target):
            logger.warning("Rejected status change %s -> %s for booking %s", current, target, booking.id)
            raise InvalidTransition(
                f"Cannot change booking status from {current} to {target}",
                details={"from": current, "to": target},
            )

        now = now or utcnow()
        booking.status = target
        if target == BookingStatus.APPROVED.value:
            booking.approved_by = actor.actor_id
            booking.approved_at = now

        return BookingStatusLog(
            booking_id=booking.id,
            previous_status=current,
            new_status=target,
            changed_by=actor.actor_id,
            changed_at=now,
            reason=reason,
        )
