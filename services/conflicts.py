import logging

from utils.errors import Conflict

logger = logging.getLogger(__name__)


class ConflictResolver:
    """
    Decides whether the studio is free for an interval.

    On its own this is only advisory. It guards the no-double-booking
    invariant only when called inside the locked write transaction.
    """

    def __init__(self, store):
        self.store = store

    def is_available(self, interval, exclude_booking_id=None) -> bool:
        return not self.store.list_active_overlapping(interval, exclude_booking_id)

    def ensure_available(self, interval, exclude_booking_id=None):
        clashes = self.store.list_active_overlapping(interval, exclude_booking_id)
        if clashes:
            logger.warning("Interval %s clashes with bookings %s", interval, [b.id for b in clashes])
            raise Conflict(
                "The studio is already booked for the selected time",
                details={"conflicting_booking_ids": [b.id for b in clashes]},
            )
