"""
Booking lifecycle.

    PENDING --accept--> CONFIRMED
    PENDING --reject--> REJECTED
    PENDING | CONFIRMED --cancel--> CANCELLED

Accept and reject belong to the provider who owns the booking, cancel to the
client who made it. REJECTED and CANCELLED are terminal.
"""

import enum
from dataclasses import dataclass

from marketplace.core.exceptions import Forbidden, InvalidBookingStatus
from marketplace.models.booking import Booking, BookingStatus
from marketplace.models.common import utcnow


class BookingAction(str, enum.Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    CANCEL = "CANCEL"


@dataclass(frozen=True)
class Transition:
    allowed_from: frozenset[BookingStatus]
    target: BookingStatus
    by_provider: bool
    releases_slot: bool


TRANSITIONS: dict[BookingAction, Transition] = {
    BookingAction.ACCEPT: Transition(
        allowed_from=frozenset({BookingStatus.PENDING}),
        target=BookingStatus.CONFIRMED,
        by_provider=True,
        releases_slot=False,
    ),
    BookingAction.REJECT: Transition(
        allowed_from=frozenset({BookingStatus.PENDING}),
        target=BookingStatus.REJECTED,
        by_provider=True,
        releases_slot=True,
    ),
    BookingAction.CANCEL: Transition(
        allowed_from=frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
        target=BookingStatus.CANCELLED,
        by_provider=False,
        releases_slot=True,
    ),
}


@dataclass(frozen=True)
class BookingActor:
    """Who is acting. ``provider_id`` is the caller's provider profile, if any."""

    user_id: str
    provider_id: str | None = None


class BookingStateMachine:
    def can_apply(self, booking: Booking, action: BookingAction) -> bool:
        return BookingStatus(booking.status) in TRANSITIONS[action].allowed_from

    def releases_slot(self, action: BookingAction) -> bool:
        return TRANSITIONS[action].releases_slot

    def authorize(self, booking: Booking, action: BookingAction, actor: BookingActor) -> None:
        if TRANSITIONS[action].by_provider:
            if actor.provider_id is None or actor.provider_id != booking.provider_id:
                raise Forbidden("Only the provider who owns this booking can do that")
        elif booking.client_id != actor.user_id:
            raise Forbidden("Only the client who made this booking can do that")

    def check(self, booking: Booking, action: BookingAction) -> None:
        if not self.can_apply(booking, action):
            raise InvalidBookingStatus(booking.id, booking.status, action.value)

    def transition(self, booking: Booking, action: BookingAction, actor: BookingActor) -> Booking:
        self.authorize(booking, action, actor)
        self.check(booking, action)

        booking.status = TRANSITIONS[action].target.value
        booking.updated_at = utcnow()
        return booking
