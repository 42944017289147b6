from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List

from flask import current_app

from models.booking import BookingStatus
from services.booking_store import BookingStore
from utils.interval import Interval
from utils.user_directory import UserDirectory

TEXT_COLOR = "#FFFFFF"

# (background, border)
STATUS_COLORS = {
    BookingStatus.CANCELLED.value: ("#9CA3AF", "#6B7280"),
    BookingStatus.PENDING.value: ("#F59E0B", "#D97706"),
    BookingStatus.REJECTED.value: ("#EF4444", "#DC2626"),
}
APPROVED_TEMPORARY_COLORS = ("#10B981", "#059669")
APPROVED_CONFIRMED_COLORS = ("#3B82F6", "#2563EB")
DEFAULT_COLORS = ("#6B7280", "#4B5563")

# Cancelled bookings are not shown on the calendar
VISIBLE_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.APPROVED.value,
    BookingStatus.REJECTED.value,
)


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start: datetime
    end: datetime
    background_color: str
    border_color: str
    text_color: str = TEXT_COLOR
    extended_props: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "backgroundColor": self.background_color,
            "borderColor": self.border_color,
            "textColor": self.text_color,
            "extendedProps": self.extended_props,
        }


def event_colors(status: str, booking_type: str):
    if status == BookingStatus.APPROVED.value:
        return APPROVED_TEMPORARY_COLORS if booking_type == "temporary" else APPROVED_CONFIRMED_COLORS
    return STATUS_COLORS.get(status, DEFAULT_COLORS)


class CalendarService:

    def __init__(self, store=None, directory=None):
        self.store = store or BookingStore()
        self.directory = directory or UserDirectory()

    def list_events(self, start_date: date, end_date: date) -> List[CalendarEvent]:
        tz = current_app.config.get("STUDIO_TIMEZONE", "UTC")
        span = Interval.for_days(start_date, end_date, tz)
        return [self._to_event(b) for b in self.store.list_overlapping(span, VISIBLE_STATUSES)]

    def _to_event(self, booking) -> CalendarEvent:
        info = self.directory.user_display_info(booking.user_id) or {}
        user_name = info.get("name") or ""
        purpose = booking.purpose or ""
        if user_name and purpose:
            title = f"{user_name} - {purpose}"
        else:
            title = user_name or purpose or "Reserved"

        background, border = event_colors(booking.status, booking.booking_type)
        return CalendarEvent(
            id=booking.id,
            title=title,
            start=booking.start_time,
            end=booking.end_time,
            background_color=background,
            border_color=border,
            extended_props={
                "userId": booking.user_id,
                "userName": user_name,
                "status": booking.status,
                "bookingType": booking.booking_type,
                "purpose": purpose,
                "createdAt": booking.created_at.isoformat() if booking.created_at else None,
            },
        )
