import uuid

from sqlalchemy import BigInteger, Boolean, Column, ForeignKey, String
from sqlalchemy.orm import relationship

from fileshare.core.database import Base, UTCDateTime, utcnow


class File(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    share_token = Column(String(32), unique=True, index=True, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=True)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
    password_hash = Column(String(255), nullable=True)
    available_from = Column(UTCDateTime, nullable=True)
    available_to = Column(UTCDateTime, index=True, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, index=True)

    owner = relationship("User", lazy="selectin")
    shared_with_entries = relationship(
        "SharedWith",
        back_populates="file",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="SharedWith.email",
    )
    statistics = relationship(
        "FileStatistics",
        back_populates="file",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    @property
    def has_statistics(self) -> bool:
        return self.owner_id is not None

    @property
    def shared_with(self) -> list:
        return [entry.email for entry in self.shared_with_entries]
