from datetime import timedelta

import pytest

from models import Booking, BookingStatusLog, db
from models.types import utcnow
from services.actor import Actor
from services.orchestrator import BookingPatch, CreateBookingRequest, OptionSelection
from utils.errors import Conflict, InvalidTransition, NotFound, StorageFailure, ValidationError

from tests.conftest import active_bookings, at, log_count


# ---------- create ----------

def test_self_service_booking_starts_pending(book, user):
    booking = book(at(2, 10), at(2, 11), purpose="Band rehearsal")

    assert booking.status == "pending"
    assert booking.user_id == user.id
    assert booking.created_by is None
    assert booking.start_time == at(2, 10)
    assert booking.end_time == at(2, 11)

    logs = BookingStatusLog.query.filter_by(booking_id=booking.id).all()
    assert len(logs) == 1
    assert logs[0].previous_status is None
    assert logs[0].new_status == "pending"
    assert logs[0].changed_by == user.id
    assert logs[0].reason == "Created by user"


def test_member_cannot_pick_status_or_user(book, user, other_user):
    booking = book(at(2, 10), at(2, 11), status="approved", user_id=other_user.id)
    assert booking.status == "pending"
    assert booking.user_id == user.id


def test_admin_creates_approved_booking_for_user(book, admin_actor, user):
    booking = book(at(2, 10), at(2, 11), actor=admin_actor, user_id=user.id, status="approved")

    assert booking.status == "approved"
    assert booking.user_id == user.id
    assert booking.approved_by == admin_actor.actor_id
    assert booking.approved_at is not None
    assert booking.created_by == admin_actor.actor_id
    assert BookingStatusLog.query.filter_by(booking_id=booking.id).one().reason == "Created by administrator"


def test_admin_placeholder_booking_without_user(book, admin_actor):
    booking = book(at(2, 10), at(2, 11), actor=admin_actor, purpose="Maintenance")
    assert booking.user_id is None


def test_admin_cannot_create_rejected_booking(book, admin_actor):
    with pytest.raises(InvalidTransition):
        book(at(2, 10), at(2, 11), actor=admin_actor, status="rejected")
    assert Booking.query.count() == 0


def test_unknown_user_is_not_found(book, admin_actor):
    with pytest.raises(NotFound):
        book(at(2, 10), at(2, 11), actor=admin_actor, user_id="no-such-user")


def test_unregistered_actor_is_not_found(book):
    with pytest.raises(NotFound):
        book(at(2, 10), at(2, 11), actor=Actor(actor_id="ghost"))


def test_inverted_interval_is_rejected(book):
    with pytest.raises(ValidationError):
        book(at(2, 11), at(2, 10))
    assert Booking.query.count() == 0


def test_unknown_booking_type_is_rejected(book):
    with pytest.raises(ValidationError):
        book(at(2, 10), at(2, 11), booking_type="forever")


def test_overlapping_booking_conflicts(book):
    first = book(at(2, 10), at(2, 12))

    with pytest.raises(Conflict) as exc:
        book(at(2, 11), at(2, 13))

    assert exc.value.details["conflicting_booking_ids"] == [first.id]
    assert Booking.query.count() == 1


def test_back_to_back_bookings_are_allowed(book):
    book(at(2, 10), at(2, 11))
    book(at(2, 11), at(2, 12))
    book(at(2, 9), at(2, 10))
    assert len(active_bookings()) == 3


def test_inactive_bookings_do_not_block(book, orchestrator, admin_actor):
    rejected = book(at(2, 10), at(2, 11))
    orchestrator.update_booking(rejected.id, BookingPatch(status="rejected"), admin_actor)
    cancelled = book(at(2, 10), at(2, 11))
    orchestrator.cancel_booking(cancelled.id, admin_actor)

    again = book(at(2, 10), at(2, 11))
    assert again.status == "pending"


def test_options_are_priced_and_totalled(book, mic, engineer):
    booking = book(
        at(2, 10), at(2, 12),
        options=[OptionSelection(mic.id, quantity=2), OptionSelection(engineer.id)],
    )

    assert [(line.option_id, line.quantity, line.price) for line in booking.options] == [
        (mic.id, 2, 1500),
        (engineer.id, 1, 4000),
    ]
    assert booking.total_amount == 2 * 1500 + 4000


def test_unknown_option_writes_nothing(book, mic):
    with pytest.raises(NotFound):
        book(at(2, 10), at(2, 11), options=[OptionSelection(mic.id), OptionSelection("missing")])
    assert Booking.query.count() == 0
    assert BookingStatusLog.query.count() == 0


def test_inactive_option_is_not_found(book, mic):
    mic.is_active = False
    db.session.commit()
    with pytest.raises(NotFound):
        book(at(2, 10), at(2, 11), options=[OptionSelection(mic.id)])


def test_non_positive_quantity_is_rejected(book, mic):
    with pytest.raises(ValidationError):
        book(at(2, 10), at(2, 11), options=[OptionSelection(mic.id, quantity=0)])


def test_catalog_price_change_does_not_touch_existing_lines(book, orchestrator, mic):
    booking = book(at(2, 10), at(2, 11), options=[OptionSelection(mic.id)])

    mic.unit_price = 9900
    db.session.commit()

    stored = orchestrator.get_booking(booking.id)
    assert stored.options[0].price == 1500
    assert stored.total_amount == 1500


def test_idempotency_key_replays_first_result(book):
    first = book(at(2, 10), at(2, 11), idempotency_key="req-42")
    replay = book(at(2, 10), at(2, 11), idempotency_key="req-42")

    assert replay.id == first.id
    assert Booking.query.count() == 1
    assert log_count(first.id) == 1


def test_idempotency_key_is_scoped_to_the_caller(book, user, other_user):
    alice = book(at(2, 10), at(2, 11), idempotency_key="k1")
    bob = book(at(3, 14), at(3, 15), actor=Actor(actor_id=other_user.id), idempotency_key="k1")

    assert bob.id != alice.id
    assert bob.user_id == other_user.id
    assert bob.start_time == at(3, 14)
    assert alice.user_id == user.id
    assert Booking.query.count() == 2


@pytest.mark.parametrize(
    "changes",
    [
        {"end": at(2, 12)},
        {"booking_type": "temporary"},
        {"with_option": True},
    ],
)
def test_reused_idempotency_key_with_different_request_conflicts(book, mic, changes):
    first = book(at(2, 10), at(2, 11), idempotency_key="k1")

    kwargs = {"idempotency_key": "k1"}
    if "booking_type" in changes:
        kwargs["booking_type"] = changes["booking_type"]
    if changes.get("with_option"):
        kwargs["options"] = [OptionSelection(mic.id)]

    with pytest.raises(Conflict) as exc:
        book(at(2, 10), changes.get("end", at(2, 11)), **kwargs)

    assert exc.value.details == {"idempotency_key": "k1"}
    assert [b.id for b in Booking.query.all()] == [first.id]


# ---------- update ----------

def test_update_overlapping_only_itself_succeeds(book, orchestrator, admin_actor):
    booking = book(at(2, 10), at(2, 11))

    updated = orchestrator.update_booking(booking.id, BookingPatch(start_time=at(2, 10, 30)), admin_actor)

    assert updated.start_time == at(2, 10, 30)
    assert updated.end_time == at(2, 11)
    assert updated.updated_by == admin_actor.actor_id


def test_update_moving_one_end_into_another_booking_conflicts(book, orchestrator, admin_actor):
    booking = book(at(2, 10), at(2, 11))
    other = book(at(2, 12), at(2, 13))

    with pytest.raises(Conflict) as exc:
        orchestrator.update_booking(booking.id, BookingPatch(end_time=at(2, 12, 30)), admin_actor)

    assert exc.value.details["conflicting_booking_ids"] == [other.id]
    assert orchestrator.get_booking(booking.id).end_time == at(2, 11)


def test_update_to_inverted_interval_is_rejected(book, orchestrator, admin_actor):
    booking = book(at(2, 10), at(2, 11))
    with pytest.raises(ValidationError):
        orchestrator.update_booking(booking.id, BookingPatch(start_time=at(2, 12)), admin_actor)


def test_moving_a_cancelled_booking_is_not_checked(book, orchestrator, admin_actor):
    booking = book(at(2, 10), at(2, 11))
    book(at(2, 12), at(2, 13))
    orchestrator.cancel_booking(booking.id, admin_actor)

    moved = orchestrator.update_booking(
        booking.id, BookingPatch(start_time=at(2, 12), end_time=at(2, 13)), admin_actor
    )
    assert moved.start_time == at(2, 12)


def test_update_missing_booking_is_not_found(orchestrator, admin_actor):
    with pytest.raises(NotFound):
        orchestrator.update_booking("missing", BookingPatch(purpose="x"), admin_actor)


def test_status_change_writes_exactly_one_log_row(book, orchestrator, admin_actor):
    booking = book(at(2, 10), at(2, 11))

    orchestrator.update_booking(booking.id, BookingPatch(status="approved", reason="Deposit received"), admin_actor)

    logs = orchestrator.status_history(booking.id)
    assert [(entry.previous_status, entry.new_status) for entry in logs] == [
        (None, "pending"),
        ("pending", "approved"),
    ]
    assert logs[-1].reason == "Deposit received"
    assert logs[-1].changed_by == admin_actor.actor_id


def test_same_status_update_writes_no_log_row(book, orchestrator, admin_actor):
    booking = book(at(2, 10), at(2, 11))

    orchestrator.update_booking(booking.id, BookingPatch(status="pending", notes="still waiting"), admin_actor)

    assert log_count(booking.id) == 1
    assert orchestrator.get_booking(booking.id).notes == "still waiting"


FORBIDDEN_TRANSITIONS = [
    ("approved", "pending"),
    ("approved", "rejected"),
    ("rejected", "pending"),
    ("rejected", "approved"),
    ("rejected", "cancelled"),
    ("cancelled", "pending"),
    ("cancelled", "approved"),
    ("cancelled", "rejected"),
]


@pytest.mark.parametrize("source,target", FORBIDDEN_TRANSITIONS)
def test_forbidden_update_is_invalid_and_rolls_back(book, orchestrator, admin_actor, source, target):
    booking = book(at(2, 10), at(2, 11))
    orchestrator.update_booking(booking.id, BookingPatch(status=source), admin_actor)
    before = log_count(booking.id)

    with pytest.raises(InvalidTransition) as exc:
        orchestrator.update_booking(booking.id, BookingPatch(status=target, purpose="changed"), admin_actor)

    assert exc.value.details == {"from": source, "to": target}
    assert log_count(booking.id) == before
    stored = orchestrator.get_booking(booking.id)
    assert stored.status == source
    assert stored.purpose is None


def test_options_replace_and_clear(book, orchestrator, admin_actor, mic, engineer):
    booking = book(at(2, 10), at(2, 11), options=[OptionSelection(mic.id)])

    orchestrator.update_booking(
        booking.id, BookingPatch(options=[OptionSelection(engineer.id, quantity=3)]), admin_actor
    )
    stored = orchestrator.get_booking(booking.id)
    assert [(line.option_id, line.quantity) for line in stored.options] == [(engineer.id, 3)]
    assert stored.total_amount == 12000

    orchestrator.update_booking(booking.id, BookingPatch(options=[]), admin_actor)
    stored = orchestrator.get_booking(booking.id)
    assert stored.options == []
    assert stored.total_amount == 0


def test_replaced_options_capture_current_price(book, orchestrator, admin_actor, mic):
    booking = book(at(2, 10), at(2, 11), options=[OptionSelection(mic.id)])
    mic.unit_price = 2000
    db.session.commit()

    orchestrator.update_booking(booking.id, BookingPatch(options=[OptionSelection(mic.id)]), admin_actor)

    assert orchestrator.get_booking(booking.id).options[0].price == 2000


def test_updated_at_never_goes_backwards(book, orchestrator, admin_actor):
    booking = book(at(2, 10), at(2, 11))
    created = booking.created_at

    updated = orchestrator.update_booking(booking.id, BookingPatch(notes="bring cables"), admin_actor)

    assert updated.updated_at >= created


# ---------- cancel ----------

def test_cancel_writes_log_and_frees_the_slot(book, orchestrator, user_actor):
    booking = book(at(2, 10), at(2, 11))

    orchestrator.cancel_booking(booking.id, user_actor)

    stored = orchestrator.get_booking(booking.id)
    assert stored.status == "cancelled"
    last = orchestrator.status_history(booking.id)[-1]
    assert (last.previous_status, last.new_status, last.reason) == ("pending", "cancelled", "Cancelled by user")
    assert book(at(2, 10), at(2, 11)).status == "pending"


def test_cancel_approved_booking(book, orchestrator, admin_actor):
    booking = book(at(2, 10), at(2, 11), actor=admin_actor, status="approved")
    orchestrator.cancel_booking(booking.id, admin_actor, reason="Studio flooded")

    last = orchestrator.status_history(booking.id)[-1]
    assert last.reason == "Studio flooded"
    assert orchestrator.get_booking(booking.id).updated_by == admin_actor.actor_id


def test_cancelling_twice_is_a_silent_no_op(book, orchestrator, user_actor):
    booking = book(at(2, 10), at(2, 11))
    orchestrator.cancel_booking(booking.id, user_actor)

    orchestrator.cancel_booking(booking.id, user_actor)

    assert log_count(booking.id) == 2
    assert orchestrator.get_booking(booking.id).status == "cancelled"


def test_cancelling_rejected_booking_is_invalid(book, orchestrator, admin_actor):
    booking = book(at(2, 10), at(2, 11))
    orchestrator.update_booking(booking.id, BookingPatch(status="rejected"), admin_actor)

    with pytest.raises(InvalidTransition):
        orchestrator.cancel_booking(booking.id, admin_actor)
    assert log_count(booking.id) == 2


def test_cancel_missing_booking_is_not_found(orchestrator, admin_actor):
    with pytest.raises(NotFound):
        orchestrator.cancel_booking("missing", admin_actor)


# ---------- expiry sweep ----------

def test_expire_overdue_cancels_lapsed_temporary_bookings(book, orchestrator):
    now = utcnow()
    lapsed = book(
        at(2, 10), at(2, 11), booking_type="temporary",
        confirmation_deadline=now - timedelta(hours=1), automatic_cancellation=True,
    )
    manual = book(
        at(2, 12), at(2, 13), booking_type="temporary",
        confirmation_deadline=now - timedelta(hours=1), automatic_cancellation=False,
    )
    future = book(
        at(2, 14), at(2, 15), booking_type="temporary",
        confirmation_deadline=now + timedelta(hours=5), automatic_cancellation=True,
    )

    assert orchestrator.expire_overdue(now=now) == [lapsed.id]

    assert orchestrator.get_booking(lapsed.id).status == "cancelled"
    assert orchestrator.get_booking(manual.id).status == "pending"
    assert orchestrator.get_booking(future.id).status == "pending"

    created, last = orchestrator.status_history(lapsed.id)
    assert (created.new_status, last.new_status) == ("pending", "cancelled")
    assert last.changed_by is None
    assert last.reason == "Confirmation deadline passed"
    # stamped with the time of the sweep, not the cutoff
    assert last.changed_at >= created.changed_at >= now


def test_expire_overdue_with_earlier_cutoff_keeps_log_order(book, orchestrator):
    deadline = utcnow() - timedelta(hours=2)
    lapsed = book(
        at(2, 10), at(2, 11), booking_type="temporary",
        confirmation_deadline=deadline, automatic_cancellation=True,
    )

    assert orchestrator.expire_overdue(now=deadline + timedelta(minutes=1)) == [lapsed.id]

    history = orchestrator.status_history(lapsed.id)
    assert [(e.previous_status, e.new_status) for e in history] == [
        (None, "pending"),
        ("pending", "cancelled"),
    ]

    assert orchestrator.expire_overdue(now=deadline + timedelta(minutes=1)) == []


# ---------- availability check and retries ----------

def test_check_availability_excludes_given_booking(book, orchestrator):
    from utils.interval import Interval

    booking = book(at(2, 10), at(2, 11))
    window = Interval(at(2, 10, 30), at(2, 11, 30))

    assert orchestrator.check_availability(window) is False
    assert orchestrator.check_availability(window, booking.id) is True
    assert orchestrator.check_availability(Interval(at(2, 11), at(2, 12))) is True


def test_update_retries_storage_failure(app, book, orchestrator, admin_actor, monkeypatch):
    app.config["STORAGE_RETRY_ATTEMPTS"] = 3
    booking = book(at(2, 10), at(2, 11))

    real_update = orchestrator._update
    calls = []

    def flaky(*args):
        calls.append(args)
        if len(calls) == 1:
            raise StorageFailure("database is locked")
        return real_update(*args)

    monkeypatch.setattr(orchestrator, "_update", flaky)
    orchestrator.update_booking(booking.id, BookingPatch(notes="second try"), admin_actor)

    assert len(calls) == 2
    assert orchestrator.get_booking(booking.id).notes == "second try"


def test_create_without_key_is_not_retried(app, orchestrator, user_actor, monkeypatch):
    app.config["STORAGE_RETRY_ATTEMPTS"] = 3
    calls = []

    def failing(*args):
        calls.append(args)
        raise StorageFailure("database is locked")

    monkeypatch.setattr(orchestrator, "_create", failing)
    request = CreateBookingRequest(start_time=at(2, 10), end_time=at(2, 11))

    with pytest.raises(StorageFailure):
        orchestrator.create_booking(request, user_actor)
    assert len(calls) == 1

    request.idempotency_key = "retry-me"
    with pytest.raises(StorageFailure):
        orchestrator.create_booking(request, user_actor)
    assert len(calls) == 4
