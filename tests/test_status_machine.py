import itertools

import pytest

from models.booking import Booking
from services.actor import Actor
from services.status_machine import TRANSITIONS, StatusMachine, can_transition, normalize_status
from utils.errors import InvalidTransition, ValidationError

STATUSES = ["pending", "approved", "rejected", "cancelled"]
PERMITTED = {
    ("pending", "approved"),
    ("pending", "rejected"),
    ("pending", "cancelled"),
    ("approved", "cancelled"),
}

ADMIN = Actor(actor_id="admin-1", is_elevated=True)
MEMBER = Actor(actor_id="user-1")


def _booking(status):
    return Booking(id="b-1", status=status)


def test_transition_table_matches_permitted_pairs():
    table = {(src, dst) for src, targets in TRANSITIONS.items() for dst in targets}
    assert table == PERMITTED


@pytest.mark.parametrize("src,dst", sorted(PERMITTED))
def test_permitted_transition_returns_one_entry(src, dst):
    booking = _booking(src)
    entry = StatusMachine().transition(booking, dst, ADMIN, "because")

    assert booking.status == dst
    assert entry.previous_status == src
    assert entry.new_status == dst
    assert entry.changed_by == "admin-1"
    assert entry.reason == "because"


@pytest.mark.parametrize(
    "src,dst",
    [p for p in itertools.permutations(STATUSES, 2) if p not in PERMITTED],
)
def test_forbidden_transition_raises_and_leaves_status(src, dst):
    booking = _booking(src)
    with pytest.raises(InvalidTransition) as exc:
        StatusMachine().transition(booking, dst, ADMIN, "nope")
    assert booking.status == src
    assert exc.value.details == {"from": src, "to": dst}
    assert not can_transition(src, dst)


@pytest.mark.parametrize("status", STATUSES)
def test_same_status_is_a_no_op(status):
    booking = _booking(status)
    assert StatusMachine().transition(booking, status, ADMIN, "again") is None
    assert booking.status == status


def test_approval_stamps_approver():
    booking = _booking("pending")
    StatusMachine().transition(booking, "approved", ADMIN, "ok")
    assert booking.approved_by == "admin-1"
    assert booking.approved_at is not None


def test_unknown_status_is_a_validation_error():
    with pytest.raises(ValidationError):
        normalize_status("archived")
    assert normalize_status(" Approved ") == "approved"


def test_initial_status_defaults_to_pending():
    machine = StatusMachine()
    assert machine.initial_status(None, MEMBER) == "pending"
    assert machine.initial_status(None, ADMIN) == "pending"


def test_initial_status_request_ignored_for_members():
    assert StatusMachine().initial_status("approved", MEMBER) == "pending"


def test_admin_may_start_as_approved():
    assert StatusMachine().initial_status("approved", ADMIN) == "approved"


@pytest.mark.parametrize("status", ["rejected", "cancelled"])
def test_admin_may_not_start_in_terminal_status(status):
    with pytest.raises(InvalidTransition):
        StatusMachine().initial_status(status, ADMIN)


def test_creation_log_has_no_previous_status():
    booking = _booking("approved")
    entry = StatusMachine().creation_log(booking, ADMIN, "Created by administrator")
    assert entry.previous_status is None
    assert entry.new_status == "approved"
    assert entry.changed_at is not None
