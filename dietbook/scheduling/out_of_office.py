from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from dietbook.core.errors import ForbiddenError, NotFoundError, ValidationError
from dietbook.models.out_of_office import OutOfOfficePeriod
from dietbook.scheduling.schemas import OutOfOfficePeriodIn, OutOfOfficePeriodUpdate
from dietbook.scheduling.storage import storage_operation
from dietbook.scheduling.timezones import parse_date

logger = logging.getLogger(__name__)

DEFAULT_REASON = 'Unspecified'


def covers(periods: list[OutOfOfficePeriod], day: date) -> bool:
    return any(period.start_date <= day <= period.end_date for period in periods)


def _validate_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise ValidationError('startDate must be before or equal to endDate.')


class OutOfOfficePeriodStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list(self, dietitian_id: int) -> list[OutOfOfficePeriod]:
        with storage_operation(self.db, 'list out-of-office periods'):
            return self.db.query(OutOfOfficePeriod).filter(
                OutOfOfficePeriod.dietitian_id == dietitian_id,
            ).order_by(OutOfOfficePeriod.start_date.asc(), OutOfOfficePeriod.id.asc()).all()

    def get(self, dietitian_id: int, period_id: int) -> OutOfOfficePeriod:
        with storage_operation(self.db, 'read out-of-office period'):
            return self._owned(dietitian_id, period_id)

    def create(self, dietitian_id: int, period: OutOfOfficePeriodIn) -> OutOfOfficePeriod:
        start_date = parse_date(period.start_date)
        end_date = parse_date(period.end_date)
        _validate_range(start_date, end_date)

        with storage_operation(self.db, 'create out-of-office period'):
            record = OutOfOfficePeriod(
                dietitian_id=dietitian_id,
                start_date=start_date,
                end_date=end_date,
                reason=(period.reason or '').strip() or DEFAULT_REASON,
                notes=period.notes or '',
                forward_to_team=bool(period.forward_to_team),
                forward_url=period.forward_url or None,
            )
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)

        logger.info('Dietitian %s is out of office %s to %s.', dietitian_id, start_date, end_date)
        return record

    def update(self, dietitian_id: int, period_id: int, changes: OutOfOfficePeriodUpdate) -> OutOfOfficePeriod:
        with storage_operation(self.db, 'update out-of-office period'):
            record = self._owned(dietitian_id, period_id)

            start_date = parse_date(changes.start_date) if changes.start_date is not None else record.start_date
            end_date = parse_date(changes.end_date) if changes.end_date is not None else record.end_date
            _validate_range(start_date, end_date)

            record.start_date = start_date
            record.end_date = end_date
            if changes.reason is not None:
                record.reason = changes.reason.strip() or DEFAULT_REASON
            if changes.notes is not None:
                record.notes = changes.notes
            if changes.forward_to_team is not None:
                record.forward_to_team = changes.forward_to_team
            if changes.forward_url is not None:
                record.forward_url = changes.forward_url or None

            self.db.commit()
            self.db.refresh(record)
            return record

    def delete(self, dietitian_id: int, period_id: int) -> None:
        with storage_operation(self.db, 'delete out-of-office period'):
            record = self._owned(dietitian_id, period_id)
            self.db.delete(record)
            self.db.commit()

    def _owned(self, dietitian_id: int, period_id: int) -> OutOfOfficePeriod:
        record = self.db.query(OutOfOfficePeriod).filter(OutOfOfficePeriod.id == period_id).first()
        if record is None:
            raise NotFoundError('Out-of-office period not found.')
        if record.dietitian_id != dietitian_id:
            logger.warning('Dietitian %s attempted to access out-of-office period %s owned by %s.', dietitian_id, period_id, record.dietitian_id)
            raise ForbiddenError('Forbidden: this out-of-office period does not belong to you.')
        return record
