from datetime import datetime, timedelta, timezone

import pytest
from fastapi.responses import StreamingResponse

from dietbook.core.errors import InvalidTransition, status_code_for
from dietbook.models.booking import Booking
from dietbook.routes.session_request_routes import (
    approve_session_request,
    create_session_request,
    get_session_request,
    list_session_requests,
    reject_session_request,
    reschedule_session_request,
    serialize_requests,
    stream_session_requests,
)
from dietbook.scheduling.schemas import RescheduleProposal, SessionRequestCreate


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('dietbook.routes.session_request_routes.ensure_database_ready', lambda: None)


def next_week(hour: int = 9) -> datetime:
    start = datetime.now(timezone.utc) + timedelta(days=7)
    return start.replace(hour=hour, minute=0, second=0, microsecond=0)


def create_consultation(db, client_user, dietitian, event_type):
    return create_session_request(
        data=SessionRequestCreate.model_validate(
            {
                'requestType': 'CONSULTATION',
                'dietitianId': dietitian.id,
                'eventTypeId': event_type.id,
                'requestedDate': next_week().isoformat(),
            }
        ),
        current_user=client_user,
        db=db,
    )


def test_client_creates_and_dietitian_approves(db, dietitian, client_user, event_type) -> None:
    request = create_consultation(db, client_user, dietitian, event_type)

    approved = approve_session_request(request_id=request.id, current_user=dietitian, db=db)

    assert approved.status == 'APPROVED'
    assert db.query(Booking).filter(Booking.session_request_id == request.id).count() == 1


def test_repeated_approval_is_a_conflict(db, dietitian, client_user, event_type) -> None:
    request = create_consultation(db, client_user, dietitian, event_type)
    approve_session_request(request_id=request.id, current_user=dietitian, db=db)

    with pytest.raises(InvalidTransition) as exception_info:
        approve_session_request(request_id=request.id, current_user=dietitian, db=db)

    assert status_code_for(exception_info.value) == 409


def test_reschedule_and_reject(db, dietitian, client_user, event_type) -> None:
    request = create_consultation(db, client_user, dietitian, event_type)

    rescheduled = reschedule_session_request(
        request_id=request.id,
        data=RescheduleProposal(requested_date=next_week(hour=14)),
        current_user=dietitian,
        db=db,
    )
    assert rescheduled.status == 'RESCHEDULE_REQUESTED'

    rejected = reject_session_request(request_id=request.id, current_user=client_user, db=db)
    assert rejected.status == 'REJECTED'
    assert get_session_request(request_id=request.id, current_user=dietitian, db=db).status == 'REJECTED'


def test_list_and_serialize_use_camel_case(db, dietitian, client_user, event_type) -> None:
    request = create_consultation(db, client_user, dietitian, event_type)

    records = serialize_requests(list_session_requests(current_user=dietitian, db=db))

    assert len(records) == 1
    assert records[0]['id'] == request.id
    assert records[0]['requestType'] == 'CONSULTATION'
    assert records[0]['clientEmail'] == 'chioma@example.com'
    assert records[0]['status'] == 'PENDING'
    assert records[0]['requestedDate'].startswith(next_week().date().isoformat())


def test_stream_is_served_as_server_sent_events(client_user) -> None:
    response = stream_session_requests(current_user=client_user)

    assert isinstance(response, StreamingResponse)
    assert response.media_type == 'text/event-stream'
    assert response.headers['cache-control'] == 'no-cache'
