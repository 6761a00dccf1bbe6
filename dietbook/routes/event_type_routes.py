from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from dietbook.auth.dependencies import get_current_user
from dietbook.auth.permissions import require_dietitian
from dietbook.models.user import User
from dietbook.routes.availability_routes import ensure_database_ready, get_db
from dietbook.scheduling.event_types import EventTypeStore
from dietbook.scheduling.schemas import EventTypeIn, EventTypeOut, EventTypeUpdate

router = APIRouter(tags=['event-types'])


@router.get('', response_model=list[EventTypeOut])
def list_event_types(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user, 'manage event types')
    ensure_database_ready()

    return EventTypeStore(db).list(current_user.id)


@router.post('', response_model=EventTypeOut, status_code=status.HTTP_201_CREATED)
def create_event_type(
    data: EventTypeIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user, 'manage event types')
    ensure_database_ready()

    return EventTypeStore(db).create(current_user.id, data)


@router.get('/{event_type_id}', response_model=EventTypeOut)
def get_event_type(
    event_type_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user, 'manage event types')
    ensure_database_ready()

    return EventTypeStore(db).get(current_user.id, event_type_id)


@router.put('/{event_type_id}', response_model=EventTypeOut)
def update_event_type(
    event_type_id: int,
    data: EventTypeUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user, 'manage event types')
    ensure_database_ready()

    return EventTypeStore(db).update(current_user.id, event_type_id, data)


@router.delete('/{event_type_id}')
def delete_event_type(
    event_type_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_dietitian(current_user, 'manage event types')
    ensure_database_ready()

    if EventTypeStore(db).delete(current_user.id, event_type_id):
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return {'deactivated': True}
