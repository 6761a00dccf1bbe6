from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from dietbook.auth.dependencies import get_current_user
from dietbook.database import SessionLocal
from dietbook.models.user import User
from dietbook.routes.availability_routes import ensure_database_ready, get_db
from dietbook.scheduling.live_updates import record_events
from dietbook.scheduling.schemas import RescheduleProposal, SessionRequestCreate, SessionRequestOut
from dietbook.scheduling.session_requests import SessionRequestStateMachine

router = APIRouter(tags=['session-requests'])


def serialize_requests(requests) -> list[dict]:
    return [
        SessionRequestOut.model_validate(request).model_dump(mode='json', by_alias=True)
        for request in requests
    ]


@router.get('', response_model=list[SessionRequestOut])
def list_session_requests(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    return SessionRequestStateMachine(db).list_for(current_user)


@router.post('', response_model=SessionRequestOut, status_code=status.HTTP_201_CREATED)
def create_session_request(
    data: SessionRequestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    return SessionRequestStateMachine(db).create(current_user, data)


@router.get('/stream')
def stream_session_requests(current_user: User = Depends(get_current_user)):
    ensure_database_ready()

    def fetch() -> list[dict]:
        db = SessionLocal()
        try:
            return serialize_requests(SessionRequestStateMachine(db).list_for(current_user))
        finally:
            db.close()

    return StreamingResponse(
        record_events(fetch),
        media_type='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'Connection': 'keep-alive'},
    )


@router.get('/{request_id}', response_model=SessionRequestOut)
def get_session_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    return SessionRequestStateMachine(db).get(current_user, request_id)


@router.post('/{request_id}/approve', response_model=SessionRequestOut)
def approve_session_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    return SessionRequestStateMachine(db).approve(current_user, request_id)


@router.post('/{request_id}/reject', response_model=SessionRequestOut)
def reject_session_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    return SessionRequestStateMachine(db).reject(current_user, request_id)


@router.post('/{request_id}/reschedule', response_model=SessionRequestOut)
def reschedule_session_request(
    request_id: int,
    data: RescheduleProposal,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    return SessionRequestStateMachine(db).request_reschedule(current_user, request_id, data.requested_date)
