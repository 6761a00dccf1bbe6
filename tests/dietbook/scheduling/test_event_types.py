from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from dietbook.core.errors import ForbiddenError, NotFoundError, ValidationError
from dietbook.models.event_type import EventType
from dietbook.scheduling.event_types import EventTypeStore
from dietbook.scheduling.schemas import EventTypeIn, EventTypeUpdate


def test_create_applies_defaults(db, dietitian) -> None:
    event_type = EventTypeStore(db).create(dietitian.id, EventTypeIn(title=' Follow-up ', slug='Follow-Up'))

    assert event_type.title == 'Follow-up'
    assert event_type.slug == 'follow-up'
    assert event_type.duration_minutes == 30
    assert event_type.price == Decimal('0')
    assert event_type.currency == 'NGN'
    assert event_type.active is True


@pytest.mark.parametrize(
    'payload',
    [
        {'title': '', 'slug': 'intro'},
        {'title': 'Intro', 'slug': 'not a slug'},
        {'title': 'Intro', 'slug': 'intro', 'duration_minutes': 0},
        {'title': 'Intro', 'slug': 'intro', 'price': Decimal('-1')},
    ],
)
def test_create_rejects_invalid_terms(db, dietitian, payload: dict) -> None:
    with pytest.raises(ValidationError):
        EventTypeStore(db).create(dietitian.id, EventTypeIn(**payload))


def test_slugs_are_unique_per_dietitian(db, dietitian, other_dietitian, event_type) -> None:
    store = EventTypeStore(db)

    with pytest.raises(ValidationError):
        store.create(dietitian.id, EventTypeIn(title='Another', slug=event_type.slug))

    assert store.create(other_dietitian.id, EventTypeIn(title='Intro', slug=event_type.slug)).slug == event_type.slug

    follow_up = store.create(dietitian.id, EventTypeIn(title='Follow-up', slug='follow-up'))
    with pytest.raises(ValidationError):
        store.update(dietitian.id, follow_up.id, EventTypeUpdate(slug=event_type.slug))


def test_list_returns_newest_first(db, dietitian) -> None:
    store = EventTypeStore(db)
    older = store.create(dietitian.id, EventTypeIn(title='Intro', slug='intro'))
    older.created_at = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=1)
    db.commit()
    newer = store.create(dietitian.id, EventTypeIn(title='Follow-up', slug='follow-up'))

    assert [item.id for item in store.list(dietitian.id)] == [newer.id, older.id]


def test_update_changes_only_given_fields(db, dietitian, event_type) -> None:
    updated = EventTypeStore(db).update(dietitian.id, event_type.id, EventTypeUpdate(duration_minutes=45, active=False))

    assert updated.duration_minutes == 45
    assert updated.active is False
    assert updated.title == 'Initial consultation'
    assert updated.price == Decimal('15000.00')


def test_delete_removes_an_unused_event_type(db, dietitian, event_type) -> None:
    assert EventTypeStore(db).delete(dietitian.id, event_type.id) is True

    assert db.query(EventType).count() == 0


def test_delete_deactivates_an_event_type_with_bookings(db, dietitian, event_type, add_booking) -> None:
    start = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
    add_booking(dietitian.id, start, start + timedelta(hours=1), event_type_id=event_type.id)

    assert EventTypeStore(db).delete(dietitian.id, event_type.id) is False

    db.refresh(event_type)
    assert event_type.active is False


def test_event_types_are_scoped_to_their_owner(db, other_dietitian, event_type) -> None:
    store = EventTypeStore(db)

    with pytest.raises(ForbiddenError):
        store.get(other_dietitian.id, event_type.id)
    with pytest.raises(ForbiddenError):
        store.update(other_dietitian.id, event_type.id, EventTypeUpdate(title='Mine now'))
    with pytest.raises(NotFoundError):
        store.get(other_dietitian.id, 999)
