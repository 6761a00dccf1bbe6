"""Record shapes exchanged at the boundary. Field names are camelCase on the wire."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from dietbook.scheduling.timezones import from_storage


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class AvailabilityScheduleIn(CamelModel):
    id: int | None = None
    day_of_week: int
    start_time: time
    end_time: time
    active: bool = True


class AvailabilityScheduleOut(CamelModel):
    id: int
    dietitian_id: int
    day_of_week: int
    start_time: time
    end_time: time
    active: bool

    @field_serializer('start_time', 'end_time')
    def serialize_wall_clock(self, value: time) -> str:
        return value.strftime('%H:%M')


class ToggleAllRequest(CamelModel):
    enabled: bool


class ToggleAllResponse(CamelModel):
    enabled: bool
    message: str | None = None


class OutOfOfficePeriodIn(CamelModel):
    start_date: date | datetime | str
    end_date: date | datetime | str
    reason: str | None = None
    notes: str | None = None
    forward_to_team: bool = False
    forward_url: str | None = None


class OutOfOfficePeriodUpdate(CamelModel):
    start_date: date | datetime | str | None = None
    end_date: date | datetime | str | None = None
    reason: str | None = None
    notes: str | None = None
    forward_to_team: bool | None = None
    forward_url: str | None = None


class OutOfOfficePeriodOut(CamelModel):
    id: int
    dietitian_id: int
    start_date: date
    end_date: date
    reason: str
    notes: str
    forward_to_team: bool
    forward_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator('created_at', 'updated_at')
    @classmethod
    def attach_utc(cls, value: datetime | None) -> datetime | None:
        return from_storage(value)


class OverrideSlot(CamelModel):
    start_time: time
    end_time: time

    @field_serializer('start_time', 'end_time')
    def serialize_wall_clock(self, value: time) -> str:
        return value.strftime('%H:%M')


class AvailabilityOverrideIn(CamelModel):
    override_date: date
    is_unavailable: bool = False
    slots: list[OverrideSlot] = []


class AvailabilityOverrideBatch(CamelModel):
    overrides: list[AvailabilityOverrideIn]


class AvailabilityOverrideUpdate(CamelModel):
    is_unavailable: bool | None = None
    slots: list[OverrideSlot] | None = None


class AvailabilityOverrideOut(CamelModel):
    id: int
    dietitian_id: int
    override_date: date
    is_unavailable: bool
    slots: list[OverrideSlot]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator('created_at', 'updated_at')
    @classmethod
    def attach_utc(cls, value: datetime | None) -> datetime | None:
        return from_storage(value)


class EventTypeIn(CamelModel):
    title: str
    slug: str
    description: str | None = None
    duration_minutes: int = 30
    price: Decimal = Decimal('0')
    currency: str | None = None


class EventTypeUpdate(CamelModel):
    title: str | None = None
    slug: str | None = None
    description: str | None = None
    duration_minutes: int | None = None
    price: Decimal | None = None
    currency: str | None = None
    active: bool | None = None


class EventTypeOut(CamelModel):
    id: int
    dietitian_id: int
    title: str
    slug: str | None = None
    description: str | None = None
    duration_minutes: int
    price: float | None = None
    currency: str
    active: bool
    created_at: datetime | None = None

    @field_validator('created_at')
    @classmethod
    def attach_utc(cls, value: datetime | None) -> datetime | None:
        return from_storage(value)


RequestType = Literal['CONSULTATION', 'MEAL_PLAN', 'RESCHEDULE_REQUEST']


class SessionRequestCreate(CamelModel):
    request_type: RequestType
    client_name: str | None = None
    client_email: str | None = None
    dietitian_id: int | None = None
    message: str | None = None
    event_type_id: int | None = None
    meal_plan_type: str | None = None
    price: float | None = None
    currency: str | None = None
    requested_date: datetime | None = None
    original_booking_id: int | None = None
    payment_data: dict[str, Any] | None = None


class RescheduleProposal(CamelModel):
    requested_date: datetime


class SessionRequestOut(CamelModel):
    id: int
    request_type: RequestType
    client_name: str | None = None
    client_email: str
    dietitian_id: int
    message: str | None = None
    status: Literal['PENDING', 'APPROVED', 'REJECTED', 'RESCHEDULE_REQUESTED']
    event_type_id: int | None = None
    meal_plan_type: str | None = None
    price: float | None = None
    currency: str | None = None
    requested_date: datetime | None = None
    original_booking_id: int | None = None
    proposed_by: str | None = None
    payment_data: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @field_validator('requested_date', 'created_at', 'updated_at')
    @classmethod
    def attach_utc(cls, value: datetime | None) -> datetime | None:
        return from_storage(value)


class SlotOut(CamelModel):
    start: datetime
    end: datetime
    local_date: date
    local_time: str


class TimeSlotsResponse(CamelModel):
    dietitian_id: int
    event_type_id: int
    duration_minutes: int
    timezone: str
    slots: list[SlotOut]
