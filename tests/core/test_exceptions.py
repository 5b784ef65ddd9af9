import pytest

from marketplace.core.exceptions import (
    CancellationWindowPassed,
    InvalidBookingStatus,
    SlotAlreadyBooked,
    SlotNotFound,
)


@pytest.mark.parametrize(
    ('error', 'status_code', 'code'),
    [
        (SlotNotFound('slot-1'), 404, 'SLOT_NOT_FOUND'),
        (SlotAlreadyBooked('slot-1'), 409, 'SLOT_ALREADY_BOOKED'),
        (InvalidBookingStatus('booking-1', 'REJECTED', 'CANCEL'), 400, 'INVALID_BOOKING_STATUS'),
        (CancellationWindowPassed(60), 400, 'CANCELLATION_WINDOW_PASSED'),
    ],
)
def test_domain_errors_map_to_http(error, status_code: int, code: str) -> None:
    http_error = error.to_http_exception()

    assert http_error.status_code == status_code
    assert http_error.detail['code'] == code
    assert http_error.detail['message'] == error.message


def test_invalid_status_message_names_action_and_state() -> None:
    error = InvalidBookingStatus('booking-1', 'REJECTED', 'CANCEL')

    assert error.message == 'Cannot cancel a booking that is REJECTED'
    assert error.details == {'booking_id': 'booking-1', 'status': 'REJECTED', 'action': 'CANCEL'}
