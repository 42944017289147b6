from flask import Blueprint, g, jsonify, request

from routes.payloads import (
    booking_to_dict,
    parse_create_request,
    parse_patch,
    status_log_to_dict,
)
from security.rbac import require_elevated
from services.booking_store import BookingFilters, PageRequest, Sort
from services.orchestrator import BookingOrchestrator
from utils.auth_context import login_required
from utils.errors import NotFound, ValidationError
from utils.interval import Interval, parse_date, parse_iso
from utils.user_directory import UserDirectory

booking_bp = Blueprint("booking", __name__)


def _load_visible_booking(orchestrator, booking_id):
    booking = orchestrator.get_booking(booking_id)
    # other people's bookings look like missing ones
    if not g.actor.is_elevated and booking.user_id != g.actor.actor_id:
        raise NotFound("Booking not found", details={"booking_id": booking_id})
    return booking


# ---------- create (self-service and admin) ----------
@booking_bp.post("/bookings")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    booking = BookingOrchestrator().create_booking(parse_create_request(data), g.actor)
    return jsonify(booking_to_dict(booking, UserDirectory())), 201


# ---------- ADMIN: list / search ----------
@booking_bp.get("/bookings")
@require_elevated
def list_bookings():
    args = request.args
    filters = BookingFilters(
        status=args.get("status"),
        booking_type=args.get("booking_type"),
        user_id=args.get("user_id"),
        start_date=parse_date(args["start_date"]) if args.get("start_date") else None,
        end_date=parse_date(args["end_date"]) if args.get("end_date") else None,
        search=args.get("search"),
    )
    sort = Sort(field=args.get("sort_by") or "created_at", direction=args.get("sort_order") or "desc")
    page = PageRequest(page=args.get("page", 1, type=int), limit=args.get("limit", type=int))

    result = BookingOrchestrator().list_bookings(filters, sort, page)
    directory = UserDirectory()
    return jsonify(
        bookings=[booking_to_dict(b, directory) for b in result.items],
        total_count=result.total,
        page=result.page,
        limit=result.limit,
        has_next_page=result.has_next,
    ), 200


@booking_bp.get("/bookings/<booking_id>")
@login_required
def get_booking(booking_id: str):
    booking = _load_visible_booking(BookingOrchestrator(), booking_id)
    return jsonify(booking_to_dict(booking, UserDirectory())), 200


# ---------- ADMIN: edit ----------
@booking_bp.patch("/bookings/<booking_id>")
@require_elevated
def update_booking(booking_id: str):
    data = request.get_json(silent=True) or {}
    booking = BookingOrchestrator().update_booking(booking_id, parse_patch(data), g.actor)
    return jsonify(booking_to_dict(booking, UserDirectory())), 200


# ---------- cancel (owner or admin); rows are never deleted ----------
@booking_bp.delete("/bookings/<booking_id>")
@booking_bp.post("/bookings/<booking_id>/cancel")
@login_required
def cancel_booking(booking_id: str):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None

    orchestrator = BookingOrchestrator()
    _load_visible_booking(orchestrator, booking_id)
    orchestrator.cancel_booking(booking_id, g.actor, reason=reason)
    return jsonify(message="Cancelled"), 200


@booking_bp.get("/bookings/<booking_id>/status-logs")
@require_elevated
def booking_status_logs(booking_id: str):
    logs = BookingOrchestrator().status_history(booking_id)
    return jsonify([status_log_to_dict(entry) for entry in logs]), 200


# ---------- pre-submission check (advisory only) ----------
@booking_bp.post("/bookings/check-availability")
@login_required
def check_availability():
    data = request.get_json(silent=True) or {}
    if not data.get("start_time") or not data.get("end_time"):
        raise ValidationError("start_time and end_time are required")
    interval = Interval(parse_iso(data["start_time"]), parse_iso(data["end_time"]))
    available = BookingOrchestrator().check_availability(interval, data.get("exclude_booking_id"))
    return jsonify(available=available), 200
