from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List
from zoneinfo import ZoneInfo

from flask import current_app

from services.booking_store import BookingStore
from utils.errors import ValidationError
from utils.interval import Interval

BUSINESS_HOURS = "business_hours"


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    available: bool
    kind: str = BUSINESS_HOURS

    def to_dict(self):
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "available": self.available,
            "type": self.kind,
        }


@dataclass(frozen=True)
class BusinessHours:
    start_hour: int = 9
    end_hour: int = 22
    slot_minutes: int = 60
    weekdays: tuple = (0, 1, 2, 3, 4)  # Monday..Friday
    timezone: str = "UTC"

    @classmethod
    def from_config(cls, config) -> "BusinessHours":
        return cls(
            start_hour=int(config.get("BUSINESS_START_HOUR", 9)),
            end_hour=int(config.get("BUSINESS_END_HOUR", 22)),
            slot_minutes=int(config.get("SLOT_MINUTES", 60)),
            weekdays=tuple(config.get("BUSINESS_WEEKDAYS", (0, 1, 2, 3, 4))),
            timezone=config.get("STUDIO_TIMEZONE", "UTC"),
        )


class AvailabilityProjector:
    """
    Derives bookable slots for a date range from stored bookings.

    Read-only: booked intervals are fetched once for the whole range and
    every slot is checked against them with the shared overlap predicate.
    """

    def __init__(self, store=None, hours: BusinessHours = None):
        self.store = store or BookingStore()
        self.hours = hours

    def project(self, start_date: date, end_date: date) -> List[Slot]:
        hours = self.hours or BusinessHours.from_config(current_app.config)
        if hours.slot_minutes <= 0 or hours.end_hour <= hours.start_hour:
            raise ValidationError("Business hours are misconfigured")

        span = Interval.for_days(start_date, end_date, hours.timezone)
        # sorted by start, so each slot scan can stop early
        booked = [
            Interval(b.start_time, b.end_time)
            for b in self.store.list_active_overlapping(span)
        ]

        zone = ZoneInfo(hours.timezone)
        step = timedelta(minutes=hours.slot_minutes)
        slots = []
        day = start_date
        while day <= end_date:
            if day.weekday() in hours.weekdays:
                slot_start = datetime.combine(day, time(hour=hours.start_hour), tzinfo=zone)
                close = datetime.combine(day, time.min, tzinfo=zone) + timedelta(hours=hours.end_hour)
                while slot_start + step <= close:
                    slot = Interval(slot_start, slot_start + step)
                    slots.append(Slot(
                        start=slot.start,
                        end=slot.end,
                        available=not _is_booked(slot, booked),
                    ))
                    slot_start += step
            day += timedelta(days=1)
        return slots


def _is_booked(slot: Interval, booked: List[Interval]) -> bool:
    for interval in booked:
        if interval.start >= slot.end:
            break
        if slot.overlaps(interval):
            return True
    return False
