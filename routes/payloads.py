"""Request parsing and response shaping for the booking endpoints."""

from services.orchestrator import BookingPatch, CreateBookingRequest, OptionSelection
from utils.errors import ValidationError
from utils.interval import parse_date, parse_iso


def _optional_str(data, key):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip()


def _optional_int(data, key):
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


def _optional_bool(data, key):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false")
    return value


def _optional_dt(data, key):
    value = data.get(key)
    return parse_iso(value) if value is not None else None


def parse_options(data):
    """
    Either "option_ids": ["id", ...] (quantity 1 each) or
    "options": [{"option_id": "id", "quantity": 2}, ...].
    Returns None when neither key is present.
    """
    if "options" in data and data["options"] is not None:
        raw = data["options"]
        if not isinstance(raw, list):
            raise ValidationError("options must be a list")
        out = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("option_id"):
                raise ValidationError("each option needs an option_id")
            quantity = _optional_int(item, "quantity")
            out.append(OptionSelection(option_id=str(item["option_id"]), quantity=1 if quantity is None else quantity))
        return out

    if "option_ids" in data and data["option_ids"] is not None:
        raw = data["option_ids"]
        if not isinstance(raw, list):
            raise ValidationError("option_ids must be a list")
        # blank ids are skipped, an empty list clears the options
        return [OptionSelection(option_id=str(i)) for i in raw if i]

    return None


def parse_create_request(data: dict) -> CreateBookingRequest:
    if not data.get("start_time") or not data.get("end_time"):
        raise ValidationError("start_time and end_time are required")

    return CreateBookingRequest(
        start_time=parse_iso(data["start_time"]),
        end_time=parse_iso(data["end_time"]),
        booking_type=_optional_str(data, "booking_type") or "confirmed",
        user_id=_optional_str(data, "user_id") or None,
        purpose=_optional_str(data, "purpose"),
        notes=_optional_str(data, "notes"),
        people_count=_optional_int(data, "people_count"),
        confirmation_deadline=_optional_dt(data, "confirmation_deadline"),
        automatic_cancellation=bool(_optional_bool(data, "automatic_cancellation")),
        options=parse_options(data) or [],
        status=_optional_str(data, "status") or None,
        idempotency_key=_optional_str(data, "idempotency_key") or None,
    )


def parse_patch(data: dict) -> BookingPatch:
    return BookingPatch(
        start_time=_optional_dt(data, "start_time"),
        end_time=_optional_dt(data, "end_time"),
        booking_type=_optional_str(data, "booking_type"),
        purpose=_optional_str(data, "purpose"),
        notes=_optional_str(data, "notes"),
        people_count=_optional_int(data, "people_count"),
        confirmation_deadline=_optional_dt(data, "confirmation_deadline"),
        automatic_cancellation=_optional_bool(data, "automatic_cancellation"),
        status=_optional_str(data, "status"),
        options=parse_options(data),
        reason=_optional_str(data, "reason"),
    )


def parse_date_range(args):
    start, end = args.get("start"), args.get("end")
    if not start or not end:
        raise ValidationError("start and end parameters are required")
    start_date, end_date = parse_date(start), parse_date(end)
    if end_date < start_date:
        raise ValidationError("end must not be before start")
    return start_date, end_date


def _iso(value):
    return value.isoformat() if value else None


def booking_to_dict(b, directory) -> dict:
    info = directory.user_display_info(b.user_id) or {}
    return {
        "id": b.id,
        "user_id": b.user_id,
        "user_name": info.get("name"),
        "user_email": info.get("email"),
        "user_phone": info.get("phone"),
        "start_time": _iso(b.start_time),
        "end_time": _iso(b.end_time),
        "status": b.status,
        "booking_type": b.booking_type,
        "purpose": b.purpose,
        "notes": b.notes,
        "people_count": b.people_count,
        "confirmation_deadline": _iso(b.confirmation_deadline),
        "automatic_cancellation": b.automatic_cancellation,
        "total_amount": b.total_amount,
        "approved_by": b.approved_by,
        "approved_at": _iso(b.approved_at),
        "created_by": b.created_by,
        "updated_by": b.updated_by,
        "created_at": _iso(b.created_at),
        "updated_at": _iso(b.updated_at),
        "options": [
            {
                "option_id": line.option_id,
                "name": line.option.name if line.option else None,
                "unit": line.option.unit if line.option else None,
                "quantity": line.quantity,
                "price": line.price,
            }
            for line in b.options
        ],
    }


def status_log_to_dict(entry) -> dict:
    return {
        "id": entry.id,
        "booking_id": entry.booking_id,
        "previous_status": entry.previous_status,
        "new_status": entry.new_status,
        "changed_by": entry.changed_by,
        "changed_at": _iso(entry.changed_at),
        "reason": entry.reason,
    }
