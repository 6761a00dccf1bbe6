import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from dietbook.core import config
from dietbook.core.errors import SchedulingError, status_code_for
from dietbook.database import (
    Base,
    engine,
    ensure_availability_schema,
    ensure_booking_schema,
    ensure_event_type_schema,
    ensure_session_request_schema,
)
from dietbook.models import availability, booking, event_type, out_of_office, session_request, user  # noqa: F401
from dietbook.routes import availability_routes, event_type_routes, session_request_routes

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_booking_schema()
        ensure_event_type_schema()
        ensure_session_request_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.exception_handler(SchedulingError)
def handle_scheduling_error(request: Request, exc: SchedulingError) -> JSONResponse:
    return JSONResponse(status_code=status_code_for(exc), content=exc.to_payload())


@app.get('/')
def root():
    return {'status': 'Dietbook Scheduling API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(event_type_routes.router, prefix='/event-types')
app.include_router(session_request_routes.router, prefix='/session-requests')
