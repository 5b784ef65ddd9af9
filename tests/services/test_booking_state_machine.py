from datetime import datetime, timezone

import pytest

from marketplace.core.exceptions import Forbidden, InvalidBookingStatus
from marketplace.models.booking import Booking, BookingStatus
from marketplace.services.booking_state_machine import (
    BookingAction,
    BookingActor,
    BookingStateMachine,
)

CLIENT = BookingActor(user_id='client-1')
PROVIDER = BookingActor(user_id='provider-user-1', provider_id='profile-1')


def make_booking(status: BookingStatus) -> Booking:
    created = datetime(2000, 1, 1, 12, 0, tzinfo=timezone.utc)
    return Booking(
        id='booking-1',
        client_id='client-1',
        provider_id='profile-1',
        service_id='service-1',
        slot_id='slot-1',
        status=status.value,
        created_at=created,
        updated_at=created,
    )


def actor_for(action: BookingAction) -> BookingActor:
    return CLIENT if action is BookingAction.CANCEL else PROVIDER


@pytest.mark.parametrize(
    ('status', 'action', 'target'),
    [
        (BookingStatus.PENDING, BookingAction.ACCEPT, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING, BookingAction.REJECT, BookingStatus.REJECTED),
        (BookingStatus.PENDING, BookingAction.CANCEL, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingAction.CANCEL, BookingStatus.CANCELLED),
    ],
)
def test_transition_applies_allowed_moves(status, action, target) -> None:
    booking = make_booking(status)
    before = booking.updated_at

    BookingStateMachine().transition(booking, action, actor_for(action))

    assert booking.status == target.value
    assert booking.updated_at > before


@pytest.mark.parametrize(
    ('status', 'action'),
    [
        (BookingStatus.CONFIRMED, BookingAction.ACCEPT),
        (BookingStatus.CONFIRMED, BookingAction.REJECT),
        (BookingStatus.REJECTED, BookingAction.ACCEPT),
        (BookingStatus.REJECTED, BookingAction.REJECT),
        (BookingStatus.REJECTED, BookingAction.CANCEL),
        (BookingStatus.CANCELLED, BookingAction.ACCEPT),
        (BookingStatus.CANCELLED, BookingAction.REJECT),
        (BookingStatus.CANCELLED, BookingAction.CANCEL),
    ],
)
def test_transition_rejects_illegal_moves(status, action) -> None:
    booking = make_booking(status)

    with pytest.raises(InvalidBookingStatus) as exception_info:
        BookingStateMachine().transition(booking, action, actor_for(action))

    assert exception_info.value.code == 'INVALID_BOOKING_STATUS'
    assert booking.status == status.value


def test_provider_actions_require_owning_profile() -> None:
    booking = make_booking(BookingStatus.PENDING)
    other_provider = BookingActor(user_id='provider-user-2', provider_id='profile-2')

    with pytest.raises(Forbidden):
        BookingStateMachine().transition(booking, BookingAction.ACCEPT, other_provider)

    with pytest.raises(Forbidden):
        BookingStateMachine().transition(booking, BookingAction.REJECT, CLIENT)

    assert booking.status == BookingStatus.PENDING.value


def test_cancel_requires_owning_client() -> None:
    booking = make_booking(BookingStatus.CONFIRMED)

    with pytest.raises(Forbidden):
        BookingStateMachine().transition(booking, BookingAction.CANCEL, BookingActor(user_id='client-2'))


def test_authorization_is_checked_before_status() -> None:
    booking = make_booking(BookingStatus.CANCELLED)

    with pytest.raises(Forbidden):
        BookingStateMachine().transition(booking, BookingAction.CANCEL, BookingActor(user_id='client-2'))


def test_releases_slot_only_for_reject_and_cancel() -> None:
    machine = BookingStateMachine()

    assert machine.releases_slot(BookingAction.ACCEPT) is False
    assert machine.releases_slot(BookingAction.REJECT) is True
    assert machine.releases_slot(BookingAction.CANCEL) is True
