from flask import Blueprint, jsonify, request

from routes.payloads import parse_date_range
from services.availability import AvailabilityProjector
from services.calendar import CalendarService
from utils.auth_context import login_required

calendar_bp = Blueprint("calendar", __name__, url_prefix="/calendar")


# ?start=YYYY-MM-DD&end=YYYY-MM-DD, both days inclusive
@calendar_bp.get("/events")
@login_required
def calendar_events():
    start_date, end_date = parse_date_range(request.args)
    events = CalendarService().list_events(start_date, end_date)
    slots = AvailabilityProjector().project(start_date, end_date)
    return jsonify(
        events=[e.to_dict() for e in events],
        availability=[s.to_dict() for s in slots],
    ), 200


@calendar_bp.get("/availability")
@login_required
def calendar_availability():
    start_date, end_date = parse_date_range(request.args)
    slots = AvailabilityProjector().project(start_date, end_date)
    return jsonify(availability=[s.to_dict() for s in slots]), 200
