"""
Durable record of bookings, their option line items and status-log entries.

The store never commits on its own: every write happens inside `atomic()`,
which commits the booking row, its line items and its status-log row
together or rolls all of them back.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy import or_

from models import db
from models.booking import ACTIVE_STATUSES, Booking, BookingOption, BookingStatus, BookingType
from models.booking_status_log import BookingStatusLog
from models.option import Option
from models.user import User
from models.types import utcnow
from services.status_machine import normalize_status
from utils.errors import ConstraintViolation, NotFound, ValidationError
from utils.interval import Interval
from utils.transaction import atomic

UPDATABLE_FIELDS = {
    "start_time",
    "end_time",
    "booking_type",
    "purpose",
    "notes",
    "people_count",
    "confirmation_deadline",
    "automatic_cancellation",
    "updated_by",
}

SORTABLE_FIELDS = {"created_at", "updated_at", "start_time", "end_time", "status", "booking_type"}


def _escape_like(value: str) -> str:
    # search text is matched literally, so % and _ are not wildcards
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class LineItem:
    option_id: str
    quantity: int
    price: int


@dataclass
class BookingFilters:
    status: Optional[str] = None  # a status, "expiring" or "all"
    booking_type: Optional[str] = None
    user_id: Optional[str] = None
    start_date: Optional[object] = None  # datetime.date, inclusive
    end_date: Optional[object] = None    # datetime.date, inclusive
    search: Optional[str] = None


@dataclass
class Sort:
    field: str = "created_at"
    direction: str = "desc"


@dataclass
class PageRequest:
    page: int = 1
    limit: Optional[int] = None


@dataclass
class Page:
    items: List[Booking] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def has_next(self) -> bool:
        return self.total > self.page * self.limit


class BookingStore:

    def atomic(self, lock: bool = False):
        key = current_app.config.get("BOOKING_LOCK_KEY", "studio") if lock else None
        return atomic(lock_key=key)

    # ---------- writes ----------

    def create(self, booking: Booking, lines: List[LineItem]) -> Booking:
        if booking.user_id is not None and db.session.get(User, booking.user_id) is None:
            raise ConstraintViolation(
                "Booking user does not exist",
                details={"user_id": booking.user_id},
            )

        now = utcnow()
        booking.created_at = now
        booking.updated_at = now
        db.session.add(booking)
        self._write_lines(booking, lines)
        db.session.flush()
        return booking

    def update(self, booking_id, patch: dict) -> Booking:
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        booking = self.get(booking_id)
        for key, value in patch.items():
            setattr(booking, key, value)
        self.touch(booking)
        db.session.flush()
        return booking

    def touch(self, booking: Booking):
        # updated_at never goes backwards, even if the clock does
        now = utcnow()
        if booking.updated_at is None or now > booking.updated_at:
            booking.updated_at = now

    def replace_options(self, booking: Booking, lines: List[LineItem]):
        """Delete-then-insert of the whole line-item set."""
        booking.options.clear()
        db.session.flush()
        self._write_lines(booking, lines)
        db.session.flush()

    def _write_lines(self, booking: Booking, lines: List[LineItem]):
        total = 0
        for position, line in enumerate(lines):
            item = BookingOption(
                option_id=line.option_id,
                quantity=line.quantity,
                price=line.price,
                position=position,
            )
            booking.options.append(item)
            total += item.line_total
        booking.total_amount = total

    def append_status_log(self, entry: BookingStatusLog) -> BookingStatusLog:
        db.session.add(entry)
        db.session.flush()
        return entry

    # ---------- reads ----------

    def get(self, booking_id, refresh: bool = False) -> Booking:
        booking = None
        if booking_id:
            booking = db.session.get(Booking, str(booking_id), populate_existing=refresh)
        if booking is None:
            raise NotFound("Booking not found", details={"booking_id": booking_id})
        return booking

    def find_by_idempotency_key(self, key: str, requested_by=None) -> Optional[Booking]:
        if not key:
            return None
        q = Booking.query.filter(Booking.idempotency_key == key)
        if requested_by is None:
            q = q.filter(Booking.requested_by.is_(None))
        else:
            q = q.filter(Booking.requested_by == str(requested_by))
        return q.first()

    def list_active_overlapping(self, interval: Interval, exclude_id=None) -> List[Booking]:
        return self.list_overlapping(interval, ACTIVE_STATUSES, exclude_id=exclude_id)

    def list_overlapping(self, interval: Interval, statuses, exclude_id=None) -> List[Booking]:
        q = Booking.query.filter(
            Booking.status.in_(list(statuses)),
            Booking.start_time < interval.end,
            Booking.end_time > interval.start,
        )
        if exclude_id is not None:
            q = q.filter(Booking.id != str(exclude_id))
        return q.order_by(Booking.start_time.asc(), Booking.id.asc()).all()

    def status_logs(self, booking_id) -> List[BookingStatusLog]:
        return (
            BookingStatusLog.query
            .filter_by(booking_id=str(booking_id))
            .order_by(BookingStatusLog.changed_at.asc(), BookingStatusLog.id.asc())
            .all()
        )

    def find_options(self, option_ids) -> dict:
        """Catalog lookup. Unknown or inactive ids are NotFound."""
        wanted = {str(i) for i in option_ids}
        if not wanted:
            return {}
        rows = Option.query.filter(Option.id.in_(wanted), Option.is_active.is_(True)).all()
        found = {o.id: o for o in rows}
        missing = sorted(wanted - set(found))
        if missing:
            raise NotFound("Option not found", details={"option_ids": missing})
        return found

    def find_expired_temporaries(self, now) -> List[Booking]:
        return (
            Booking.query
            .filter(
                Booking.booking_type == BookingType.TEMPORARY.value,
                Booking.status == BookingStatus.PENDING.value,
                Booking.automatic_cancellation.is_(True),
                Booking.confirmation_deadline.isnot(None),
                Booking.confirmation_deadline <= now,
            )
            .order_by(Booking.confirmation_deadline.asc())
            .all()
        )

    def query(self, filters: BookingFilters = None, sort: Sort = None, page: PageRequest = None) -> Page:
        filters = filters or BookingFilters()
        sort = sort or Sort()
        page = page or PageRequest()
        cfg = current_app.config

        q = Booking.query

        status = (filters.status or "").strip().lower()
        if status and status != "all":
            if status == "expiring":
                now = utcnow()
                horizon = now + timedelta(hours=cfg.get("EXPIRING_WINDOW_HOURS", 48))
                q = q.filter(
                    Booking.booking_type == BookingType.TEMPORARY.value,
                    Booking.status == BookingStatus.PENDING.value,
                    Booking.confirmation_deadline <= horizon,
                    Booking.confirmation_deadline > now,
                )
            else:
                q = q.filter(Booking.status == normalize_status(status))

        booking_type = (filters.booking_type or "").strip().lower()
        if booking_type and booking_type != "all":
            q = q.filter(Booking.booking_type == booking_type)

        if filters.user_id:
            q = q.filter(Booking.user_id == str(filters.user_id))

        tz = cfg.get("STUDIO_TIMEZONE", "UTC")
        if filters.start_date:
            q = q.filter(Booking.start_time >= Interval.for_days(filters.start_date, filters.start_date, tz).start)
        if filters.end_date:
            q = q.filter(Booking.start_time < Interval.for_days(filters.end_date, filters.end_date, tz).end)

        if filters.search:
            pattern = f"%{_escape_like(filters.search.strip())}%"
            q = q.outerjoin(User, User.id == Booking.user_id).filter(or_(
                User.full_name.ilike(pattern, escape="\\"),
                User.email.ilike(pattern, escape="\\"),
                Booking.purpose.ilike(pattern, escape="\\"),
            ))

        total = q.count()

        sort_field = sort.field if sort.field in SORTABLE_FIELDS else "created_at"
        column = getattr(Booking, sort_field)
        order = column.asc() if (sort.direction or "").lower() == "asc" else column.desc()

        max_limit = cfg.get("MAX_PAGE_SIZE", 100)
        limit = page.limit or cfg.get("DEFAULT_PAGE_SIZE", 20)
        limit = max(1, min(int(limit), max_limit))
        page_no = max(1, int(page.page or 1))

        items = (
            q.order_by(order, Booking.id.asc())
            .offset((page_no - 1) * limit)
            .limit(limit)
            .all()
        )
        return Page(items=items, total=total, page=page_no, limit=limit)
