"""
Half-open time interval value object.

Every overlap decision in the engine (conflict checks, availability slots,
tests) goes through `overlaps` so that back-to-back reservations never
collide: a booking ending at 11:00 and one starting at 11:00 are both fine.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from utils.errors import ValidationError


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are read as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso(dt_str: str) -> datetime:
    # Accepts "2025-06-02T10:00:00Z" as well as explicit offsets
    if not isinstance(dt_str, str) or not dt_str.strip():
        raise ValidationError("Datetime value required")
    raw = dt_str.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError:
        raise ValidationError(f"Invalid datetime format: {dt_str}. Use ISO 8601")


def parse_date(date_str: str) -> date:
    try:
        return date.fromisoformat((date_str or "").strip())
    except ValueError:
        raise ValidationError(f"Invalid date: {date_str}. Use YYYY-MM-DD")


@dataclass(frozen=True)
class Interval:
    """
    Time range [start, end).

    start is inclusive, end is exclusive. Both ends are stored as aware UTC
    datetimes. An empty or inverted range is rejected at construction.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise ValidationError("start and end must be datetimes")
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))
        if self.end <= self.start:
            raise ValidationError(
                "end must be after start",
                details={"start": self.start.isoformat(), "end": self.end.isoformat()},
            )

    @classmethod
    def for_days(cls, start_date: date, end_date: date, tz: str = "UTC") -> "Interval":
        """
        Convert an inclusive calendar-date range into instants.

        The range covers start_date 00:00 up to (but excluding) the midnight
        after end_date, in the given zone.
        """
        if end_date < start_date:
            raise ValidationError("end date must not be before start date")
        zone = ZoneInfo(tz)
        start = datetime.combine(start_date, time.min, tzinfo=zone)
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=zone)
        return cls(start, end)

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)

    def contains(self, instant: datetime) -> bool:
        return self.start <= as_utc(instant) < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def __str__(self):
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"


def overlaps(a: Interval, b: Interval) -> bool:
    """a.start < b.end AND b.start < a.end. Adjacent intervals do not overlap."""
    return a.start < b.end and b.start < a.end
