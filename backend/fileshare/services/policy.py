import logging
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.core.errors import InternalError, ValidationError
from fileshare.models.system_policy import POLICY_ID, SystemPolicy

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH_FLOOR = 4


@dataclass(frozen=True)
class Policy:
    """Immutable snapshot of the system-wide upload limits."""

    max_file_size_mb: int = 50
    min_validity_hours: int = 1
    max_validity_days: int = 30
    default_validity_days: int = 7
    require_password_min_length: int = 8

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


DEFAULT_POLICY = Policy()

POLICY_FIELDS = tuple(DEFAULT_POLICY.to_dict().keys())


def _snapshot(row: SystemPolicy) -> Policy:
    """Builds a snapshot, repairing non-positive values with the defaults."""
    values = {}
    for field in POLICY_FIELDS:
        value = getattr(row, field)
        if value is None or value <= 0:
            value = getattr(DEFAULT_POLICY, field)
        values[field] = value
    if values["require_password_min_length"] < MIN_PASSWORD_LENGTH_FLOOR:
        values["require_password_min_length"] = DEFAULT_POLICY.require_password_min_length
    return Policy(**values)


def validate_policy(policy: Policy) -> None:
    for field in POLICY_FIELDS:
        if getattr(policy, field) < 1:
            raise ValidationError(f"{field} must be at least 1")
    if policy.require_password_min_length < MIN_PASSWORD_LENGTH_FLOOR:
        raise ValidationError(
            f"require_password_min_length must be at least {MIN_PASSWORD_LENGTH_FLOOR}"
        )
    if policy.max_validity_days * 24 < policy.min_validity_hours:
        raise ValidationError("max_validity_days must cover at least min_validity_hours")
    if policy.default_validity_days > policy.max_validity_days:
        raise ValidationError("default_validity_days cannot exceed max_validity_days")


class PolicyStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _row(self):
        res = await self.session.execute(
            select(SystemPolicy).where(SystemPolicy.id == POLICY_ID).execution_options(populate_existing=True)
        )
        return res.scalars().first()

    async def get(self) -> Policy:
        try:
            row = await self._row()
        except SQLAlchemyError as e:
            raise InternalError(f"Failed to load system policy: {e}", e)
        if row is None:
            return DEFAULT_POLICY
        return _snapshot(row)

    async def update(self, changes: Dict[str, Any]) -> Policy:
        unknown = set(changes) - set(POLICY_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown policy fields: {', '.join(sorted(unknown))}")

        current = await self.get()
        updated = replace(current, **{k: v for k, v in changes.items() if v is not None})
        validate_policy(updated)

        try:
            row = await self._row()
            if row is None:
                row = SystemPolicy(id=POLICY_ID)
                self.session.add(row)
            for field, value in updated.to_dict().items():
                setattr(row, field, value)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise InternalError(f"Failed to update system policy: {e}", e)

        logger.info("System policy updated: %s", updated.to_dict())
        return updated

    async def ensure_exists(self) -> Policy:
        row = await self._row()
        if row is None:
            logger.info("Initializing default system policy")
            self.session.add(SystemPolicy(id=POLICY_ID, **DEFAULT_POLICY.to_dict()))
            await self.session.commit()
            return DEFAULT_POLICY
        return _snapshot(row)
