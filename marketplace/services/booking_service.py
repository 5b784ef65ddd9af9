"""
Booking workflows: create, accept, reject, cancel.

Every workflow writes its booking and slot changes in one transaction and
commits before any notification or audit row is written. Those side effects
are best-effort; their failure never undoes a committed booking change.
"""

import logging
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import update
from sqlalchemy.orm import Session

from marketplace.core.exceptions import (
    BookingNotFound,
    CancellationWindowPassed,
    InvalidBookingStatus,
    ServiceNotFound,
    SlotNotFound,
    SlotProviderMismatch,
)
from marketplace.models.availability_slot import AvailabilitySlot
from marketplace.models.booking import Booking, BookingStatus
from marketplace.models.common import utcnow
from marketplace.models.notification import NotificationType
from marketplace.models.provider_profile import ProviderProfile
from marketplace.models.service import Service
from marketplace.models.user import User
from marketplace.services.audit_service import AuditService
from marketplace.services.booking_state_machine import (
    BookingAction,
    BookingActor,
    BookingStateMachine,
)
from marketplace.services.cancellation_policy import CancellationPolicy
from marketplace.services.notification_service import NotificationService
from marketplace.services.provider_service import ProviderService
from marketplace.services.slot_store import SlotStore

logger = logging.getLogger(__name__)

ENTITY_BOOKING = "booking"


class BookingService:
    def __init__(
        self,
        db: Session,
        policy: CancellationPolicy | None = None,
        notifications: NotificationService | None = None,
        audit: AuditService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.policy = policy or CancellationPolicy()
        self.slots = SlotStore(db)
        self.providers = ProviderService(db)
        self.state_machine = BookingStateMachine()
        self.notifications = notifications or NotificationService(db)
        self.audit = audit or AuditService(db)
        self.clock = clock

    # --- create ------------------------------------------------------------

    def create_booking(
        self,
        client_id: str,
        service_id: str,
        slot_id: str,
        note: str | None = None,
    ) -> Booking:
        try:
            service = self.db.get(Service, service_id)
            if service is None:
                raise ServiceNotFound(service_id)

            slot = self.slots.get(slot_id)
            if slot is None:
                raise SlotNotFound(slot_id)
            if slot.provider_id != service.provider_id:
                raise SlotProviderMismatch(slot_id, service_id)

            self.slots.claim(slot_id)
            booking = self._insert_booking(client_id, service, slot_id, note)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info('Booking %s created by client %s for slot %s', booking.id, client_id, slot_id)

        provider_user_id = self._provider_user_id(service.provider_id)
        if provider_user_id is not None:
            self._side_effect(
                self.notifications.notify,
                provider_user_id,
                NotificationType.BOOKING_CREATED,
                "New Booking Request",
                f"You have a new booking request for {service.title}",
            )
        self._side_effect(
            self.audit.record,
            client_id,
            "BOOKING_CREATED",
            ENTITY_BOOKING,
            booking.id,
            {"service_id": service_id, "slot_id": slot_id},
        )
        return booking

    def _insert_booking(self, client_id: str, service: Service, slot_id: str, note: str | None) -> Booking:
        booking = Booking(
            client_id=client_id,
            provider_id=service.provider_id,
            service_id=service.id,
            slot_id=slot_id,
            note=note,
            status=BookingStatus.PENDING.value,
        )
        self.db.add(booking)
        self.db.flush()
        return booking

    # --- provider decisions ------------------------------------------------

    def accept_booking(self, booking_id: str, provider_user_id: str) -> Booking:
        booking, actor = self._load_for_provider(booking_id, provider_user_id)
        self._apply(booking, BookingAction.ACCEPT, actor)

        self._side_effect(
            self.notifications.notify,
            booking.client_id,
            NotificationType.BOOKING_CONFIRMED,
            "Booking Confirmed",
            "Your booking has been confirmed by the provider",
        )
        self._side_effect(self.audit.record, provider_user_id, "BOOKING_ACCEPTED", ENTITY_BOOKING, booking.id)
        return booking

    def reject_booking(self, booking_id: str, provider_user_id: str) -> Booking:
        booking, actor = self._load_for_provider(booking_id, provider_user_id)
        self._apply(booking, BookingAction.REJECT, actor)

        self._side_effect(
            self.notifications.notify,
            booking.client_id,
            NotificationType.BOOKING_REJECTED,
            "Booking Rejected",
            "Your booking has been rejected by the provider",
        )
        self._side_effect(self.audit.record, provider_user_id, "BOOKING_REJECTED", ENTITY_BOOKING, booking.id)
        return booking

    def _load_for_provider(self, booking_id: str, provider_user_id: str) -> tuple[Booking, BookingActor]:
        profile = self.providers.require_profile(provider_user_id)
        booking = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id, Booking.provider_id == profile.id)
            .first()
        )
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking, BookingActor(user_id=provider_user_id, provider_id=profile.id)

    # --- client cancellation -----------------------------------------------

    def cancel_booking(self, booking_id: str, client_id: str) -> Booking:
        booking = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id, Booking.client_id == client_id)
            .first()
        )
        if booking is None:
            raise BookingNotFound(booking_id)

        self.state_machine.check(booking, BookingAction.CANCEL)

        slot = self.slots.get(booking.slot_id)
        if slot is not None and not self.policy.allows(slot.start_at, self.clock()):
            raise CancellationWindowPassed(self.policy.window_minutes)

        self._apply(booking, BookingAction.CANCEL, BookingActor(user_id=client_id))

        provider_user_id = self._provider_user_id(booking.provider_id)
        if provider_user_id is not None:
            self._side_effect(
                self.notifications.notify,
                provider_user_id,
                NotificationType.BOOKING_CANCELLED,
                "Booking Cancelled",
                "A client has cancelled their booking",
            )
        self._side_effect(self.audit.record, client_id, "BOOKING_CANCELLED", ENTITY_BOOKING, booking.id)
        return booking

    # --- listings ----------------------------------------------------------

    def list_client_bookings(self, client_id: str) -> list[tuple[Booking, Service | None, AvailabilitySlot | None]]:
        return (
            self.db.query(Booking, Service, AvailabilitySlot)
            .outerjoin(Service, Booking.service_id == Service.id)
            .outerjoin(AvailabilitySlot, Booking.slot_id == AvailabilitySlot.id)
            .filter(Booking.client_id == client_id)
            .order_by(Booking.created_at.desc())
            .all()
        )

    def list_provider_bookings(
        self,
        provider_user_id: str,
    ) -> list[tuple[Booking, Service | None, AvailabilitySlot | None, User | None]]:
        profile = self.providers.require_profile(provider_user_id)
        return (
            self.db.query(Booking, Service, AvailabilitySlot, User)
            .outerjoin(Service, Booking.service_id == Service.id)
            .outerjoin(AvailabilitySlot, Booking.slot_id == AvailabilitySlot.id)
            .outerjoin(User, Booking.client_id == User.id)
            .filter(Booking.provider_id == profile.id)
            .order_by(Booking.created_at.desc())
            .all()
        )

    # --- internals ---------------------------------------------------------

    def _apply(self, booking: Booking, action: BookingAction, actor: BookingActor) -> None:
        """Transition ``booking`` and release its slot if needed, as one transaction."""
        previous_status = booking.status
        try:
            self.state_machine.transition(booking, action, actor)

            # Compare-and-swap on status: a concurrent transition on the same row loses here.
            result = self.db.execute(
                update(Booking)
                .where(Booking.id == booking.id, Booking.status == previous_status)
                .values(status=booking.status, updated_at=booking.updated_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidBookingStatus(booking.id, previous_status, action.value)

            if self.state_machine.releases_slot(action):
                self.slots.release(booking.slot_id)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info('Booking %s: %s -> %s by %s', booking.id, previous_status, booking.status, actor.user_id)

    def _provider_user_id(self, provider_id: str) -> str | None:
        profile = self.db.get(ProviderProfile, provider_id)
        return profile.user_id if profile else None

    def _side_effect(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception('Side effect %s failed', getattr(fn, '__qualname__', fn))
