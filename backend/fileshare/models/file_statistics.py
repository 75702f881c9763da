import uuid

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from fileshare.core.database import Base, UTCDateTime, utcnow


class FileStatistics(Base):
    __tablename__ = "file_statistics"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), unique=True, nullable=False)
    download_count = Column(Integer, nullable=False, default=0, server_default="0")
    unique_downloaders = Column(Integer, nullable=False, default=0, server_default="0")
    last_downloaded_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow)

    file = relationship("File", back_populates="statistics")
