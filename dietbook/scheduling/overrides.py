from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from dietbook.core.errors import ForbiddenError, NotFoundError, ValidationError
from dietbook.models.availability import AvailabilityOverride, AvailabilityOverrideSlot
from dietbook.scheduling.schemas import AvailabilityOverrideIn, AvailabilityOverrideUpdate, OverrideSlot
from dietbook.scheduling.storage import storage_operation

logger = logging.getLogger(__name__)


def _validate_slots(slots: list[OverrideSlot]) -> None:
    for slot in slots:
        if slot.start_time >= slot.end_time:
            raise ValidationError('Override slot startTime must be before endTime.')


def _slot_rows(slots: list[OverrideSlot]) -> list[AvailabilityOverrideSlot]:
    return [
        AvailabilityOverrideSlot(
            start_time=slot.start_time.replace(second=0, microsecond=0),
            end_time=slot.end_time.replace(second=0, microsecond=0),
        )
        for slot in slots
    ]


class AvailabilityOverrideStore:
    """Per-date exceptions to the weekly rules; one row per dietitian and date."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list(self, dietitian_id: int) -> list[AvailabilityOverride]:
        with storage_operation(self.db, 'list availability overrides'):
            return self.db.query(AvailabilityOverride).filter(
                AvailabilityOverride.dietitian_id == dietitian_id,
            ).order_by(AvailabilityOverride.override_date.asc()).all()

    def for_range(self, dietitian_id: int, start_date: date, end_date: date) -> dict[date, AvailabilityOverride]:
        with storage_operation(self.db, 'read availability overrides'):
            records = self.db.query(AvailabilityOverride).filter(
                AvailabilityOverride.dietitian_id == dietitian_id,
                AvailabilityOverride.override_date >= start_date,
                AvailabilityOverride.override_date <= end_date,
            ).all()
        return {record.override_date: record for record in records}

    def get(self, dietitian_id: int, override_id: int) -> AvailabilityOverride:
        with storage_operation(self.db, 'read availability override'):
            return self._owned(dietitian_id, override_id)

    def save_many(self, dietitian_id: int, overrides: list[AvailabilityOverrideIn]) -> list[AvailabilityOverride]:
        """Upsert by date; the slots of an existing override are replaced, not merged."""
        for override in overrides:
            _validate_slots(override.slots)

        with storage_operation(self.db, 'save availability overrides'):
            saved = []
            for override in overrides:
                record = self.db.query(AvailabilityOverride).filter(
                    AvailabilityOverride.dietitian_id == dietitian_id,
                    AvailabilityOverride.override_date == override.override_date,
                ).first()
                if record is None:
                    record = AvailabilityOverride(dietitian_id=dietitian_id, override_date=override.override_date)
                    self.db.add(record)

                record.is_unavailable = override.is_unavailable
                record.slots = [] if override.is_unavailable else _slot_rows(override.slots)
                saved.append(record)

            self.db.commit()
            for record in saved:
                self.db.refresh(record)

        logger.info('Saved %s availability overrides for dietitian %s.', len(saved), dietitian_id)
        return saved

    def update(self, dietitian_id: int, override_id: int, changes: AvailabilityOverrideUpdate) -> AvailabilityOverride:
        if changes.slots is not None:
            _validate_slots(changes.slots)

        with storage_operation(self.db, 'update availability override'):
            record = self._owned(dietitian_id, override_id)

            if changes.is_unavailable is not None:
                record.is_unavailable = changes.is_unavailable
            if record.is_unavailable:
                record.slots = []
            elif changes.slots is not None:
                record.slots = _slot_rows(changes.slots)

            self.db.commit()
            self.db.refresh(record)
            return record

    def delete(self, dietitian_id: int, override_id: int) -> None:
        with storage_operation(self.db, 'delete availability override'):
            record = self._owned(dietitian_id, override_id)
            self.db.delete(record)
            self.db.commit()

    def _owned(self, dietitian_id: int, override_id: int) -> AvailabilityOverride:
        record = self.db.query(AvailabilityOverride).filter(AvailabilityOverride.id == override_id).first()
        if record is None:
            raise NotFoundError('Availability override not found.')
        if record.dietitian_id != dietitian_id:
            logger.warning('Dietitian %s attempted to access availability override %s owned by %s.', dietitian_id, override_id, record.dietitian_id)
            raise ForbiddenError('Forbidden: this availability override does not belong to you.')
        return record
