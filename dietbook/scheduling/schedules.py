from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from dietbook.core.errors import ForbiddenError, NotFoundError, ValidationError
from dietbook.models.availability import AvailabilitySchedule
from dietbook.scheduling.schemas import AvailabilityScheduleIn
from dietbook.scheduling.storage import storage_operation

logger = logging.getLogger(__name__)


def validate_rule(rule: AvailabilityScheduleIn) -> None:
    if not 0 <= rule.day_of_week <= 6:
        raise ValidationError('dayOfWeek must be between 0 (Sunday) and 6 (Saturday).')
    if rule.start_time >= rule.end_time:
        raise ValidationError('startTime must be before endTime.')


class AvailabilityScheduleStore:
    """Weekly availability rules, always scoped to one dietitian."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list(self, dietitian_id: int) -> list[AvailabilitySchedule]:
        with storage_operation(self.db, 'list availability schedules'):
            return self.db.query(AvailabilitySchedule).filter(
                AvailabilitySchedule.dietitian_id == dietitian_id,
            ).order_by(
                AvailabilitySchedule.day_of_week.asc(),
                AvailabilitySchedule.start_time.asc(),
            ).all()

    def active_rules(self, dietitian_id: int) -> list[AvailabilitySchedule]:
        return [rule for rule in self.list(dietitian_id) if rule.active]

    def upsert(self, dietitian_id: int, rule: AvailabilityScheduleIn) -> AvailabilitySchedule:
        validate_rule(rule)

        with storage_operation(self.db, 'save availability schedule'):
            if rule.id is None:
                schedule = AvailabilitySchedule(dietitian_id=dietitian_id)
                self.db.add(schedule)
            else:
                schedule = self._owned(dietitian_id, rule.id)

            schedule.day_of_week = rule.day_of_week
            schedule.start_time = rule.start_time.replace(second=0, microsecond=0)
            schedule.end_time = rule.end_time.replace(second=0, microsecond=0)
            schedule.active = rule.active

            self.db.commit()
            self.db.refresh(schedule)
            return schedule

    def delete(self, dietitian_id: int, rule_id: int) -> None:
        with storage_operation(self.db, 'delete availability schedule'):
            schedule = self._owned(dietitian_id, rule_id)
            self.db.delete(schedule)
            self.db.commit()

    def set_all_active(self, dietitian_id: int, active: bool) -> int:
        with storage_operation(self.db, 'toggle availability schedules'):
            updated = self.db.query(AvailabilitySchedule).filter(
                AvailabilitySchedule.dietitian_id == dietitian_id,
            ).update({AvailabilitySchedule.active: active}, synchronize_session=False)
            self.db.commit()

        logger.info('Set %s availability schedules to active=%s for dietitian %s.', updated, active, dietitian_id)
        return updated

    def is_enabled(self, dietitian_id: int) -> bool:
        with storage_operation(self.db, 'read availability state'):
            states = [
                active
                for (active,) in self.db.query(AvailabilitySchedule.active).filter(
                    AvailabilitySchedule.dietitian_id == dietitian_id,
                ).all()
            ]

        # No schedule yet means the dietitian has not opted out.
        if not states:
            return True
        return any(active is not False for active in states)

    def _owned(self, dietitian_id: int, rule_id: int) -> AvailabilitySchedule:
        schedule = self.db.query(AvailabilitySchedule).filter(AvailabilitySchedule.id == rule_id).first()
        if schedule is None:
            raise NotFoundError('Availability schedule not found.')
        if schedule.dietitian_id != dietitian_id:
            logger.warning('Dietitian %s attempted to modify schedule %s owned by %s.', dietitian_id, rule_id, schedule.dietitian_id)
            raise ForbiddenError('Forbidden: this availability schedule does not belong to you.')
        return schedule
