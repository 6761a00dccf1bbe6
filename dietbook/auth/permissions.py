import logging

from dietbook.core.errors import ForbiddenError
from dietbook.models.user import User

logger = logging.getLogger(__name__)


def normalize_email(value: str | None) -> str:
    return (value or '').strip().lower()


def deny(user: User, action: str, message: str) -> ForbiddenError:
    logger.warning('Forbidden: user %s (%s) attempted to %s.', getattr(user, 'id', None), getattr(user, 'role', None), action)
    return ForbiddenError(message)


def require_dietitian(user: User, action: str = 'manage availability') -> None:
    if not user.is_dietitian:
        raise deny(user, action, 'Only dietitians can manage availability.')

