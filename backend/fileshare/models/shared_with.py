import uuid

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from fileshare.core.database import Base


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class SharedWith(Base):
    """Whitelist entry: one normalized email per file, linked to the user when registered."""

    __tablename__ = "shared_with"
    __table_args__ = (UniqueConstraint("file_id", "email", name="uq_shared_with_file_email"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    file = relationship("File", back_populates="shared_with_entries")
