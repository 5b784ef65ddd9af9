from datetime import date, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, Response, status
from pydantic import AwareDatetime, BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from marketplace.auth.dependencies import Actor, require_role
from marketplace.core import config
from marketplace.database import get_db
from marketplace.models.user import Role
from marketplace.routes.errors import service_errors
from marketplace.routes.schemas import (
    BookingDetailResponse,
    BookingResponse,
    ProviderProfileResponse,
    ServiceResponse,
    SlotResponse,
    build_booking_detail,
)
from marketplace.services.booking_service import BookingService
from marketplace.services.provider_service import ProviderService
from marketplace.services.slot_store import SlotSpec, SlotStore

router = APIRouter(tags=['provider'])

MIN_SERVICE_DURATION_MINUTES = 5
MAX_SERVICE_DURATION_MINUTES = 480

provider_only = require_role(Role.PROVIDER)


def _validate_timezone(value: str) -> str:
    normalized = value.strip()
    try:
        ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError('Unknown timezone.') from exc
    return normalized


class ProviderProfileRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    address: str = Field(min_length=1, max_length=500)
    city: str = Field(min_length=1, max_length=100)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    working_hours: str = Field(min_length=1, max_length=500)

    @field_validator('name', 'description', 'address', 'city', 'working_hours')
    @classmethod
    def strip_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Must not be blank.')
        return normalized


class CreateServiceRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default='', max_length=2000)
    duration_minutes: int = Field(ge=MIN_SERVICE_DURATION_MINUTES, le=MAX_SERVICE_DURATION_MINUTES)
    price_cents: int = Field(ge=0)
    category_id: str | None = None


class UpdateServiceRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    duration_minutes: int | None = Field(default=None, ge=MIN_SERVICE_DURATION_MINUTES, le=MAX_SERVICE_DURATION_MINUTES)
    price_cents: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class SlotInput(BaseModel):
    start_at: AwareDatetime
    end_at: AwareDatetime
    timezone: str = Field(default='UTC', min_length=1, max_length=50)

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        return _validate_timezone(value)


class CreateSlotsRequest(BaseModel):
    slots: list[SlotInput] = Field(min_length=1, max_length=config.MAX_SLOTS_PER_REQUEST)


class CreateSingleSlotRequest(SlotInput):
    service_id: str | None = None


class UpdateSlotRequest(BaseModel):
    start_at: AwareDatetime | None = None
    end_at: AwareDatetime | None = None


class GenerateSlotsRequest(BaseModel):
    service_id: str
    date: date
    start_time: time
    end_time: time
    timezone: str = Field(min_length=1, max_length=50)

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        return _validate_timezone(value)

    def window(self) -> tuple[datetime, datetime]:
        zone = ZoneInfo(self.timezone)
        return (
            datetime.combine(self.date, self.start_time, tzinfo=zone),
            datetime.combine(self.date, self.end_time, tzinfo=zone),
        )


# ---------- profile ----------
@router.post('/profile', response_model=ProviderProfileResponse, status_code=status.HTTP_201_CREATED)
def upsert_profile(data: ProviderProfileRequest, actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        return ProviderService(db).upsert_profile(actor.user_id, **data.model_dump())


# ---------- services ----------
@router.post('/services', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(data: CreateServiceRequest, actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        return ProviderService(db).create_service(
            actor.user_id,
            title=data.title.strip(),
            description=data.description.strip(),
            duration_minutes=data.duration_minutes,
            price_cents=data.price_cents,
            category_id=data.category_id,
        )


@router.get('/services', response_model=list[ServiceResponse])
def list_my_services(actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        return ProviderService(db).list_services(actor.user_id)


@router.patch('/services/{service_id}', response_model=ServiceResponse)
def update_service(
    service_id: str,
    data: UpdateServiceRequest,
    actor: Actor = Depends(provider_only),
    db: Session = Depends(get_db),
):
    with service_errors(db):
        return ProviderService(db).update_service(
            actor.user_id,
            service_id,
            data.model_dump(exclude_unset=True, exclude_none=True),
        )


@router.delete('/services/{service_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_service(service_id: str, actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        ProviderService(db).delete_service(actor.user_id, service_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('/services/{service_id}/slots', response_model=list[SlotResponse])
def list_service_slots(service_id: str, actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        profile = ProviderService(db).require_profile(actor.user_id)
        return SlotStore(db).list_for_service(profile.id, service_id)


# ---------- availability ----------
@router.post('/availability', response_model=list[SlotResponse], status_code=status.HTTP_201_CREATED)
def create_slots(data: CreateSlotsRequest, actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        profile = ProviderService(db).require_profile(actor.user_id)
        specs = [SlotSpec(slot.start_at, slot.end_at, slot.timezone) for slot in data.slots]
        return SlotStore(db).create_many(profile.id, specs)


@router.post('/availability/single', response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_single_slot(
    data: CreateSingleSlotRequest,
    actor: Actor = Depends(provider_only),
    db: Session = Depends(get_db),
):
    with service_errors(db):
        providers = ProviderService(db)
        profile = providers.require_profile(actor.user_id)
        if data.service_id is not None:
            providers.require_owned_service(profile, data.service_id)
        return SlotStore(db).create_single(
            profile.id,
            data.start_at,
            data.end_at,
            timezone=data.timezone,
            service_id=data.service_id,
        )


@router.post('/availability/generate', response_model=list[SlotResponse], status_code=status.HTTP_201_CREATED)
def generate_slots(data: GenerateSlotsRequest, actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        providers = ProviderService(db)
        profile = providers.require_profile(actor.user_id)
        service = providers.require_owned_service(profile, data.service_id)
        window_start, window_end = data.window()
        return SlotStore(db).generate(
            profile.id,
            service.id,
            window_start,
            window_end,
            service.duration_minutes,
            timezone=data.timezone,
        )


@router.patch('/availability/{slot_id}', response_model=SlotResponse)
def update_slot(
    slot_id: str,
    data: UpdateSlotRequest,
    actor: Actor = Depends(provider_only),
    db: Session = Depends(get_db),
):
    with service_errors(db):
        profile = ProviderService(db).require_profile(actor.user_id)
        return SlotStore(db).update(profile.id, slot_id, start_at=data.start_at, end_at=data.end_at)


@router.delete('/availability/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(slot_id: str, actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        profile = ProviderService(db).require_profile(actor.user_id)
        SlotStore(db).delete(profile.id, slot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('/schedule', response_model=list[SlotResponse])
def get_schedule(actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        profile = ProviderService(db).require_profile(actor.user_id)
        return SlotStore(db).list_for_provider(profile.id)


# ---------- bookings ----------
@router.get('/bookings', response_model=list[BookingDetailResponse])
def list_bookings(actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        rows = BookingService(db).list_provider_bookings(actor.user_id)
        return [
            build_booking_detail(booking, service, slot, client)
            for booking, service, slot, client in rows
        ]


@router.post('/bookings/{booking_id}/accept', response_model=BookingResponse)
def accept_booking(booking_id: str, actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        return BookingService(db).accept_booking(booking_id, actor.user_id)


@router.post('/bookings/{booking_id}/reject', response_model=BookingResponse)
def reject_booking(booking_id: str, actor: Actor = Depends(provider_only), db: Session = Depends(get_db)):
    with service_errors(db):
        return BookingService(db).reject_booking(booking_id, actor.user_id)
