import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String
from sqlalchemy.orm import relationship

from fileshare.core.database import Base, UTCDateTime, utcnow


class DownloadHistory(Base):
    __tablename__ = "download_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    downloader_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    downloaded_at = Column(UTCDateTime, default=utcnow, index=True)
    download_completed = Column(Boolean, nullable=False, default=True)

    downloader = relationship("User", lazy="selectin")
