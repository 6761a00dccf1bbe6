"""User model definitions."""

from sqlalchemy import Column, Integer, String

from dietbook.core import config
from dietbook.database import Base


ROLE_DIETITIAN = 'DIETITIAN'
ROLE_USER = 'USER'


class User(Base):
    """Represents an authenticated caller, either a dietitian or a client."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    role = Column(String, nullable=False, default=ROLE_USER)  # DIETITIAN/USER
    timezone = Column(String, nullable=False, default=config.DEFAULT_TIMEZONE)

    @property
    def is_dietitian(self) -> bool:
        return self.role == ROLE_DIETITIAN
