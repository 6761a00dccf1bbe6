from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dietbook.auth.dependencies import get_current_user
from dietbook.auth.permissions import require_dietitian
from dietbook.core.errors import NotFoundError, TransientStorageError
from dietbook.database import (
    SessionLocal,
    ensure_availability_schema,
    ensure_booking_schema,
    ensure_event_type_schema,
    ensure_session_request_schema,
)
from dietbook.models.event_type import EventType
from dietbook.models.user import User
from dietbook.scheduling.out_of_office import OutOfOfficePeriodStore
from dietbook.scheduling.overrides import AvailabilityOverrideStore
from dietbook.scheduling.schedules import AvailabilityScheduleStore
from dietbook.scheduling.schemas import (
    AvailabilityOverrideBatch,
    AvailabilityOverrideOut,
    AvailabilityOverrideUpdate,
    AvailabilityScheduleIn,
    AvailabilityScheduleOut,
    OutOfOfficePeriodIn,
    OutOfOfficePeriodOut,
    OutOfOfficePeriodUpdate,
    SlotOut,
    TimeSlotsResponse,
    ToggleAllRequest,
    ToggleAllResponse,
)
from dietbook.scheduling.slots import SlotGenerator
from dietbook.scheduling.storage import STORAGE_UNAVAILABLE_MESSAGE
from dietbook.scheduling.timezones import get_zone

router = APIRouter(tags=['availability'])


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_booking_schema()
        ensure_event_type_schema()
        ensure_session_request_schema()
    except SQLAlchemyError as exc:
        raise TransientStorageError(STORAGE_UNAVAILABLE_MESSAGE) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@router.get('/schedules', response_model=list[AvailabilityScheduleOut])
def list_schedules(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return AvailabilityScheduleStore(db).list(current_user.id)


@router.put('/schedules', response_model=AvailabilityScheduleOut)
def save_schedule(
    data: AvailabilityScheduleIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return AvailabilityScheduleStore(db).upsert(current_user.id, data)


@router.delete('/schedules/{schedule_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    AvailabilityScheduleStore(db).delete(current_user.id, schedule_id)


@router.get('/toggle-all', response_model=ToggleAllResponse)
def get_toggle_state(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return ToggleAllResponse(enabled=AvailabilityScheduleStore(db).is_enabled(current_user.id))


@router.post('/toggle-all', response_model=ToggleAllResponse)
def toggle_all(
    data: ToggleAllRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    AvailabilityScheduleStore(db).set_all_active(current_user.id, data.enabled)
    return ToggleAllResponse(
        enabled=data.enabled,
        message='All availability enabled' if data.enabled else 'All availability disabled',
    )


@router.get('/out-of-office', response_model=list[OutOfOfficePeriodOut])
def list_out_of_office(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return OutOfOfficePeriodStore(db).list(current_user.id)


@router.post('/out-of-office', response_model=OutOfOfficePeriodOut, status_code=status.HTTP_201_CREATED)
def create_out_of_office(
    data: OutOfOfficePeriodIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return OutOfOfficePeriodStore(db).create(current_user.id, data)


@router.get('/out-of-office/{period_id}', response_model=OutOfOfficePeriodOut)
def get_out_of_office(
    period_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return OutOfOfficePeriodStore(db).get(current_user.id, period_id)


@router.put('/out-of-office/{period_id}', response_model=OutOfOfficePeriodOut)
def update_out_of_office(
    period_id: int,
    data: OutOfOfficePeriodUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return OutOfOfficePeriodStore(db).update(current_user.id, period_id, data)


@router.delete('/out-of-office/{period_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_out_of_office(
    period_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    OutOfOfficePeriodStore(db).delete(current_user.id, period_id)


@router.get('/overrides', response_model=list[AvailabilityOverrideOut])
def list_overrides(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return AvailabilityOverrideStore(db).list(current_user.id)


@router.post('/overrides', response_model=list[AvailabilityOverrideOut])
def save_overrides(
    data: AvailabilityOverrideBatch,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return AvailabilityOverrideStore(db).save_many(current_user.id, data.overrides)


@router.get('/overrides/{override_id}', response_model=AvailabilityOverrideOut)
def get_override(
    override_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return AvailabilityOverrideStore(db).get(current_user.id, override_id)


@router.put('/overrides/{override_id}', response_model=AvailabilityOverrideOut)
def update_override(
    override_id: int,
    data: AvailabilityOverrideUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    return AvailabilityOverrideStore(db).update(current_user.id, override_id, data)


@router.delete('/overrides/{override_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_override(
    override_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user)
    ensure_database_ready()

    AvailabilityOverrideStore(db).delete(current_user.id, override_id)


@router.get('/timeslots', response_model=TimeSlotsResponse)
def list_timeslots(
    dietitian_id: int = Query(...),
    event_type_id: int = Query(...),
    start_date: str = Query(...),
    end_date: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    dietitian = db.query(User).filter(User.id == dietitian_id).first()
    if dietitian is None or not dietitian.is_dietitian:
        raise NotFoundError('Dietitian not found.')

    event_type = db.query(EventType).filter(EventType.id == event_type_id).first()
    if event_type is None or event_type.dietitian_id != dietitian.id or not event_type.active:
        raise NotFoundError('Event type not found or does not belong to this dietitian.')

    zone = get_zone(dietitian.timezone)
    slots = SlotGenerator(db).generate(
        dietitian.id,
        start_date,
        end_date or start_date,
        event_type,
        dietitian.timezone,
    )

    return TimeSlotsResponse(
        dietitian_id=dietitian.id,
        event_type_id=event_type.id,
        duration_minutes=event_type.duration_minutes,
        timezone=dietitian.timezone,
        slots=[
            SlotOut(
                start=slot.start,
                end=slot.end,
                local_date=slot.start.astimezone(zone).date(),
                local_time=slot.start.astimezone(zone).strftime('%H:%M'),
            )
            for slot in slots
        ],
    )
