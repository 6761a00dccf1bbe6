from datetime import datetime, timezone
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from dietbook.core import config


def _engine_options(database_url: str) -> dict:
    options = {'echo': config.SQL_ECHO, 'pool_pre_ping': True}
    if not database_url.startswith('sqlite'):
        options['pool_timeout'] = config.STORAGE_TIMEOUT_SECONDS
    return options


engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_booking_schema_checked = False
_session_request_schema_checked = False
_event_type_schema_checked = False


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability_schedules' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('availability_schedules')}
        migration_steps = [
            ('active', 'ALTER TABLE availability_schedules ADD COLUMN active BOOLEAN DEFAULT TRUE'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_availability_schedules_active '
                    'ON availability_schedules(dietitian_id, active)'
                )
            )

        _availability_schema_checked = True


def ensure_booking_schema() -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(engine)

        if 'bookings' not in inspector.get_table_names():
            _booking_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_dietitian_range ON bookings(dietitian_id, start_time, end_time)')
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_active_slot '
                    "ON bookings(dietitian_id, start_time) WHERE status IN ('CONFIRMED', 'COMPLETED')"
                )
            )

        _booking_schema_checked = True


def ensure_session_request_schema() -> None:
    global _session_request_schema_checked

    if _session_request_schema_checked:
        return

    with _schema_lock:
        if _session_request_schema_checked:
            return

        inspector = inspect(engine)

        if 'session_requests' not in inspector.get_table_names():
            _session_request_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('session_requests')}

        with engine.begin() as connection:
            if 'proposed_by' not in existing_columns:
                connection.execute(text('ALTER TABLE session_requests ADD COLUMN proposed_by VARCHAR'))

        _session_request_schema_checked = True


def ensure_event_type_schema() -> None:
    global _event_type_schema_checked

    if _event_type_schema_checked:
        return

    with _schema_lock:
        if _event_type_schema_checked:
            return

        inspector = inspect(engine)

        if 'event_types' not in inspector.get_table_names():
            _event_type_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('event_types')}
        migration_steps = [
            ('slug', 'ALTER TABLE event_types ADD COLUMN slug VARCHAR'),
            ('description', 'ALTER TABLE event_types ADD COLUMN description TEXT'),
            ('created_at', 'ALTER TABLE event_types ADD COLUMN created_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_event_types_dietitian_slug '
                    'ON event_types(dietitian_id, slug)'
                )
            )

        _event_type_schema_checked = True


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
