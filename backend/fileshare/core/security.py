from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt

from fileshare.core.config import settings
from fileshare.core.database import utcnow
from fileshare.core.errors import Unauthorized

ROLE_USER = "user"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """Authenticated requester as seen by the access-control engine."""

    user_id: str
    email: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(identity: Identity, expires_delta: Optional[timedelta] = None) -> str:
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": identity.user_id,
        "email": identity.email,
        "role": identity.role,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Identity:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        raise Unauthorized("Invalid or expired access token")

    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized("Invalid user identifier in token")
    return Identity(
        user_id=str(user_id),
        email=payload.get("email") or "",
        role=payload.get("role") or ROLE_USER,
    )
