from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from marketplace.auth.dependencies import Actor, require_role
from marketplace.database import get_db
from marketplace.models.user import Role
from marketplace.routes.errors import service_errors
from marketplace.routes.schemas import (
    BookingDetailResponse,
    BookingResponse,
    ServiceResponse,
    SlotResponse,
    build_booking_detail,
)
from marketplace.services.booking_service import BookingService
from marketplace.services.provider_service import ProviderService

router = APIRouter(tags=['client'])

MAX_BOOKING_NOTE_LENGTH = 1000

client_only = require_role(Role.CLIENT)
any_user = require_role(Role.CLIENT, Role.PROVIDER, Role.ADMIN)


class CreateBookingRequest(BaseModel):
    service_id: str
    slot_id: str
    note: str | None = None

    @field_validator('note')
    @classmethod
    def validate_note(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_BOOKING_NOTE_LENGTH:
            raise ValueError(f'Note must be {MAX_BOOKING_NOTE_LENGTH} characters or fewer.')

        return normalized


class ProviderSummary(BaseModel):
    id: str
    name: str
    description: str
    city: str
    verified: bool

    class Config:
        from_attributes = True


class ProviderDetailResponse(BaseModel):
    profile: ProviderSummary
    services: list[ServiceResponse]
    next_slots: list[SlotResponse]


@router.post('/bookings', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    actor: Actor = Depends(client_only),
    db: Session = Depends(get_db),
):
    with service_errors(db):
        return BookingService(db).create_booking(actor.user_id, data.service_id, data.slot_id, data.note)


@router.get('/bookings/me', response_model=list[BookingDetailResponse])
def list_my_bookings(actor: Actor = Depends(client_only), db: Session = Depends(get_db)):
    with service_errors(db):
        rows = BookingService(db).list_client_bookings(actor.user_id)
        return [build_booking_detail(booking, service, slot) for booking, service, slot in rows]


@router.post('/bookings/{booking_id}/cancel', response_model=BookingResponse)
def cancel_booking(booking_id: str, actor: Actor = Depends(client_only), db: Session = Depends(get_db)):
    with service_errors(db):
        return BookingService(db).cancel_booking(booking_id, actor.user_id)


@router.get('/providers/{provider_id}', response_model=ProviderDetailResponse)
def get_provider(provider_id: str, actor: Actor = Depends(any_user), db: Session = Depends(get_db)):
    del actor
    with service_errors(db):
        profile, services, next_slots = ProviderService(db).get_provider_detail(provider_id)
        return ProviderDetailResponse(
            profile=ProviderSummary.model_validate(profile),
            services=[ServiceResponse.model_validate(service) for service in services],
            next_slots=[SlotResponse.model_validate(slot) for slot in next_slots],
        )


@router.get('/services/{service_id}', response_model=ServiceResponse)
def get_service(service_id: str, actor: Actor = Depends(any_user), db: Session = Depends(get_db)):
    del actor
    with service_errors(db):
        return ProviderService(db).get_service_detail(service_id)
