from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PolicyResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    max_file_size_mb: int = Field(alias="maxFileSizeMB")
    min_validity_hours: int
    max_validity_days: int
    default_validity_days: int
    require_password_min_length: int


class PolicyUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    max_file_size_mb: Optional[int] = Field(default=None, ge=1, alias="maxFileSizeMB")
    min_validity_hours: Optional[int] = Field(default=None, ge=1)
    max_validity_days: Optional[int] = Field(default=None, ge=1)
    default_validity_days: Optional[int] = Field(default=None, ge=1)
    require_password_min_length: Optional[int] = Field(default=None, ge=4)


class CleanupResponse(BaseModel):
    found: int
    deleted: int
    failed: int
    timestamp: str
