"""Provider profile and service lookups used by the booking and slot workflows."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, exists, update
from sqlalchemy.orm import Session

from marketplace.core.exceptions import (
    ConflictException,
    NotFoundException,
    ProfileNotFound,
    ServiceNotFound,
    ValidationException,
)
from marketplace.models.availability_slot import AvailabilitySlot
from marketplace.models.booking import Booking
from marketplace.models.common import utcnow
from marketplace.models.provider_profile import ProviderProfile
from marketplace.models.service import Service
from marketplace.services.slot_store import SlotStore

logger = logging.getLogger(__name__)

UPDATABLE_SERVICE_FIELDS = frozenset({"title", "description", "duration_minutes", "price_cents", "is_active"})


class ProviderService:
    def __init__(self, db: Session):
        self.db = db

    def get_profile_by_user_id(self, user_id: str) -> ProviderProfile | None:
        return self.db.query(ProviderProfile).filter(ProviderProfile.user_id == user_id).first()

    def require_profile(self, user_id: str) -> ProviderProfile:
        profile = self.get_profile_by_user_id(user_id)
        if profile is None:
            raise ProfileNotFound(user_id)
        return profile

    def upsert_profile(
        self,
        user_id: str,
        name: str,
        description: str = "",
        address: str = "",
        city: str = "",
        lat: float | None = None,
        lng: float | None = None,
        working_hours: str = "",
    ) -> ProviderProfile:
        """Create the caller's profile, or overwrite it if one exists. ``verified`` is never touched."""
        profile = self.get_profile_by_user_id(user_id)
        created = profile is None
        if created:
            profile = ProviderProfile(user_id=user_id)
            self.db.add(profile)

        profile.name = name
        profile.description = description
        profile.address = address
        profile.city = city
        profile.lat = lat
        profile.lng = lng
        profile.working_hours = working_hours

        self._commit()
        self.db.refresh(profile)
        logger.info('%s provider profile %s for user %s', 'Created' if created else 'Updated', profile.id, user_id)
        return profile

    def get_service(self, service_id: str) -> Service | None:
        return self.db.get(Service, service_id)

    def require_owned_service(self, profile: ProviderProfile, service_id: str) -> Service:
        service = self.get_service(service_id)
        if service is None or service.provider_id != profile.id:
            raise ServiceNotFound(service_id)
        return service

    def create_service(
        self,
        provider_user_id: str,
        title: str,
        duration_minutes: int,
        price_cents: int,
        description: str = "",
        category_id: str | None = None,
    ) -> Service:
        profile = self.require_profile(provider_user_id)
        service = Service(
            provider_id=profile.id,
            category_id=category_id,
            title=title,
            description=description,
            duration_minutes=duration_minutes,
            price_cents=price_cents,
            is_active=True,
        )
        self.db.add(service)
        self._commit()
        self.db.refresh(service)
        logger.info('Provider %s created service %s', profile.id, service.id)
        return service

    def update_service(self, provider_user_id: str, service_id: str, changes: dict[str, Any]) -> Service:
        profile = self.require_profile(provider_user_id)
        service = self.require_owned_service(profile, service_id)

        unknown = sorted(set(changes) - UPDATABLE_SERVICE_FIELDS)
        if unknown:
            raise ValidationException(
                "These fields cannot be updated",
                code="INVALID_SERVICE_FIELD",
                details={"fields": unknown},
            )

        for field, value in changes.items():
            setattr(service, field, value)

        self._commit()
        self.db.refresh(service)
        logger.info('Provider %s updated service %s: %s', profile.id, service.id, sorted(changes))
        return service

    def delete_service(self, provider_user_id: str, service_id: str) -> None:
        """
        Delete a service the caller owns, together with its open slots.

        Services that bookings point to are kept; deactivate them instead.
        Slots tagged with the service that a booking still references are
        detached rather than deleted.
        """
        profile = self.require_profile(provider_user_id)
        self.require_owned_service(profile, service_id)

        try:
            self.db.execute(
                delete(AvailabilitySlot)
                .where(
                    AvailabilitySlot.service_id == service_id,
                    AvailabilitySlot.is_booked.is_(False),
                    ~exists().where(Booking.slot_id == AvailabilitySlot.id),
                )
                .execution_options(synchronize_session=False)
            )
            self.db.execute(
                update(AvailabilitySlot)
                .where(AvailabilitySlot.service_id == service_id)
                .values(service_id=None)
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(
                delete(Service)
                .where(
                    Service.id == service_id,
                    Service.provider_id == profile.id,
                    ~exists().where(Booking.service_id == Service.id),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictException(
                    "Service has bookings and cannot be deleted; deactivate it instead",
                    code="SERVICE_HAS_BOOKINGS",
                    details={"service_id": service_id},
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.expire_all()
        logger.info('Provider %s deleted service %s', profile.id, service_id)

    def list_services(self, provider_user_id: str) -> list[Service]:
        profile = self.require_profile(provider_user_id)
        return self.db.query(Service).filter(Service.provider_id == profile.id).all()

    def get_service_detail(self, service_id: str) -> Service:
        service = self.get_service(service_id)
        if service is None:
            raise ServiceNotFound(service_id)
        return service

    def get_provider_detail(
        self,
        provider_id: str,
        now: datetime | None = None,
    ) -> tuple[ProviderProfile, list[Service], list[AvailabilitySlot]]:
        profile = self.db.get(ProviderProfile, provider_id)
        if profile is None:
            raise NotFoundException("Provider not found", code="PROVIDER_NOT_FOUND")

        services = (
            self.db.query(Service)
            .filter(Service.provider_id == provider_id, Service.is_active.is_(True))
            .all()
        )
        next_slots = SlotStore(self.db).list_open(provider_id, now or utcnow())
        return profile, services, next_slots

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
