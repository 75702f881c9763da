from sqlalchemy import Column, Integer

from fileshare.core.database import Base

POLICY_ID = 1


class SystemPolicy(Base):
    __tablename__ = "system_policy"

    id = Column(Integer, primary_key=True, default=POLICY_ID)
    max_file_size_mb = Column(Integer, nullable=False, default=50)
    min_validity_hours = Column(Integer, nullable=False, default=1)
    max_validity_days = Column(Integer, nullable=False, default=30)
    default_validity_days = Column(Integer, nullable=False, default=7)
    require_password_min_length = Column(Integer, nullable=False, default=8)
