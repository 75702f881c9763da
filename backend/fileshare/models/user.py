import uuid

from sqlalchemy import Column, String

from fileshare.core.database import Base, UTCDateTime, utcnow
from fileshare.core.security import ROLE_USER


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(64), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(16), nullable=False, default=ROLE_USER)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
