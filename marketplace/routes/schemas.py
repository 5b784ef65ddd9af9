"""Response models shared by the client and provider routers."""

from datetime import datetime

from pydantic import BaseModel, field_validator

from marketplace.models.common import as_utc


class UtcModel(BaseModel):
    @field_validator('start_at', 'end_at', 'created_at', 'updated_at', mode='after', check_fields=False)
    @classmethod
    def attach_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return as_utc(value)


class ProviderProfileResponse(BaseModel):
    id: str
    user_id: str
    name: str
    description: str
    address: str
    city: str
    lat: float | None = None
    lng: float | None = None
    working_hours: str
    verified: bool

    class Config:
        from_attributes = True


class SlotResponse(UtcModel):
    id: str
    provider_id: str
    service_id: str | None = None
    start_at: datetime
    end_at: datetime
    timezone: str
    is_booked: bool

    class Config:
        from_attributes = True


class ServiceResponse(BaseModel):
    id: str
    provider_id: str
    category_id: str | None = None
    title: str
    description: str
    duration_minutes: int
    price_cents: int
    is_active: bool

    class Config:
        from_attributes = True


class BookingResponse(UtcModel):
    id: str
    client_id: str
    provider_id: str
    service_id: str
    slot_id: str
    status: str
    note: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BookingServiceSummary(BaseModel):
    id: str
    title: str
    price_cents: int


class BookingSlotSummary(UtcModel):
    id: str
    start_at: datetime
    end_at: datetime


class BookingClientSummary(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str


class BookingDetailResponse(BookingResponse):
    service: BookingServiceSummary | None = None
    slot: BookingSlotSummary | None = None
    client: BookingClientSummary | None = None


def build_booking_detail(booking, service=None, slot=None, client=None) -> BookingDetailResponse:
    response = BookingDetailResponse.model_validate(booking)
    if service is not None:
        response.service = BookingServiceSummary(id=service.id, title=service.title, price_cents=service.price_cents)
    if slot is not None:
        response.slot = BookingSlotSummary(id=slot.id, start_at=slot.start_at, end_at=slot.end_at)
    if client is not None:
        response.client = BookingClientSummary(
            id=client.id,
            email=client.email,
            first_name=client.first_name,
            last_name=client.last_name,
        )
    return response
