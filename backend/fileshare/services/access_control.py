"""
Access-control decisions for uploads, downloads and file management.

Everything here is pure: callers pass the ``File`` row, the requester's
``Identity`` (``None`` for anonymous requests) and a ``Policy`` snapshot, and
get back either a result or one of the typed errors from
``fileshare.core.errors``. No function in this module touches the database or
the blob store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

from fileshare.core.database import utcnow
from fileshare.core.errors import (
    Forbidden,
    Gone,
    Locked,
    NotFound,
    PayloadTooLarge,
    Unauthorized,
    ValidationError,
)
from fileshare.core.security import Identity, verify_password
from fileshare.models.file import File
from fileshare.models.shared_with import normalize_email
from fileshare.services.policy import Policy

PENDING = "pending"
ACTIVE = "active"
EXPIRED = "expired"
STATUSES = (ACTIVE, PENDING, EXPIRED)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_status(file: File, now: Optional[datetime] = None) -> str:
    """
    Availability state of a file at ``now``.

    ``pending`` before ``available_from``, ``expired`` after
    ``available_to``, ``active`` otherwise (including when neither bound is
    set).
    """
    now = as_utc(now) or utcnow()
    available_from = as_utc(file.available_from)
    available_to = as_utc(file.available_to)
    if available_from is not None and now < available_from:
        return PENDING
    if available_to is not None and now > available_to:
        return EXPIRED
    return ACTIVE


def is_owner(file: File, identity: Optional[Identity]) -> bool:
    return (
        identity is not None
        and file.owner_id is not None
        and str(file.owner_id) == str(identity.user_id)
    )


# -----------------------------
# Upload
# -----------------------------

@dataclass
class UploadRequest:
    file_name: str
    size: int
    content_type: Optional[str] = None
    is_public: Optional[bool] = None
    password: Optional[str] = None
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None
    shared_with: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class UploadPlan:
    """What the upload is allowed to persist, after every check passed."""

    is_public: bool
    available_from: datetime
    available_to: datetime
    shared_with: Tuple[str, ...]
    password: Optional[str]


def normalize_whitelist(emails: Iterable[str], owner_email: Optional[str] = None) -> Tuple[str, ...]:
    """Lower-cases, strips, de-duplicates and drops the owner's own address."""
    owner = normalize_email(owner_email) if owner_email else ""
    seen = []
    for email in emails or ():
        email = normalize_email(email)
        if email and email != owner and email not in seen:
            seen.append(email)
    return tuple(seen)


def authorize_upload(
    request: UploadRequest,
    identity: Optional[Identity],
    policy: Policy,
    now: Optional[datetime] = None,
) -> UploadPlan:
    """
    Runs the pre-write upload checks, in order:

    1. anonymous requesters may only upload public files without a password
       or whitelist (``Unauthorized``);
    2. the password must satisfy the policy's minimum length
       (``ValidationError``);
    3. an explicit availability window must be ordered, not already over,
       and last between ``min_validity_hours`` and ``max_validity_days``
       (``ValidationError``). A missing bound is filled in from the policy
       first: ``available_from`` defaults to now, ``available_to`` to
       ``available_from + default_validity_days``;
    4. the declared size must fit ``max_file_size_mb`` (``PayloadTooLarge``).

    Without any window the file is available from now for
    ``default_validity_days``. ``is_public`` defaults to ``True``.
    """
    now = as_utc(now) or utcnow()
    is_public = True if request.is_public is None else bool(request.is_public)
    password = request.password or None
    raw_whitelist = [e for e in (request.shared_with or ()) if e and e.strip()]

    if identity is None:
        if not is_public:
            raise Unauthorized("Private uploads (isPublic=false) require authentication")
        if password:
            raise Unauthorized("Password protection requires authentication")
        if raw_whitelist:
            raise Unauthorized("Whitelist (sharedWith) requires authentication")

    if password and len(password) < policy.require_password_min_length:
        raise ValidationError(
            f"Password must have at least {policy.require_password_min_length} characters"
        )

    available_from = as_utc(request.available_from)
    available_to = as_utc(request.available_to)
    default_validity = timedelta(days=policy.default_validity_days)

    if available_from is None and available_to is None:
        available_from, available_to = now, now + default_validity
    else:
        if available_from is None:
            available_from = now
        if available_to is None:
            available_to = available_from + default_validity

        if available_from >= available_to:
            raise ValidationError("availableFrom must be before availableTo")
        if available_to < now:
            raise ValidationError("availableTo cannot be in the past")

        duration = available_to - available_from
        min_duration = timedelta(hours=policy.min_validity_hours)
        max_duration = timedelta(days=policy.max_validity_days)
        if duration < min_duration or duration > max_duration:
            raise ValidationError(
                f"Availability window must last between {policy.min_validity_hours} hour(s) "
                f"and {policy.max_validity_days} day(s)"
            )

    if request.size > policy.max_file_size_bytes:
        raise PayloadTooLarge(f"File size exceeds the system limit of {policy.max_file_size_mb} MB")

    owner_email = identity.email if identity is not None else None
    return UploadPlan(
        is_public=is_public,
        available_from=available_from,
        available_to=available_to,
        shared_with=normalize_whitelist(raw_whitelist, owner_email),
        password=password,
    )


# -----------------------------
# Download
# -----------------------------

def authorize_download(
    file: File,
    identity: Optional[Identity],
    password: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Raises unless ``identity`` may stream ``file``. First failing check wins:
    availability status, then whitelist, then password. Owners bypass
    ``pending``, the whitelist and the password; nobody bypasses
    ``expired``.
    """
    now = as_utc(now) or utcnow()
    owner = is_owner(file, identity)

    status = resolve_status(file, now)
    if status == EXPIRED:
        raise Gone("File has expired", extra={"expiredAt": _iso(file.available_to)})
    if status == PENDING and not owner:
        available_from = as_utc(file.available_from)
        raise Locked(
            "File not yet available",
            extra={
                "availableFrom": _iso(available_from),
                "hoursUntilAvailable": round((available_from - now).total_seconds() / 3600, 2),
            },
        )

    whitelist = file.shared_with
    if whitelist and not owner:
        if identity is None or not identity.email:
            raise Unauthorized("This file requires authentication. Please provide a Bearer token")
        if normalize_email(identity.email) not in {normalize_email(e) for e in whitelist}:
            raise Forbidden("You are not allowed to download this file. Your email is not in the shared list")

    if file.has_password and not owner:
        candidate = (password or "").strip()
        if not candidate:
            raise Forbidden("This file is password-protected", extra={"reason": "password_required"})
        if not verify_password(candidate, file.password_hash):
            raise Forbidden("The file password is incorrect", extra={"reason": "incorrect_password"})


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


# -----------------------------
# Management
# -----------------------------

class ManagementAction(str, Enum):
    VIEW = "view"
    DELETE = "delete"
    STATS = "stats"
    HISTORY = "history"


def authorize_management(file: File, identity: Optional[Identity], action: ManagementAction) -> None:
    if identity is None:
        raise Unauthorized("Invalid or missing authentication token")

    if file.owner_id is None:
        if action == ManagementAction.DELETE:
            raise Forbidden("Anonymous uploads cannot be deleted")
        if action == ManagementAction.STATS:
            raise NotFound("Statistics not available (anonymous upload)")

    if not (is_owner(file, identity) or identity.is_admin):
        raise Forbidden(_DENIED_MESSAGES[action])


_DENIED_MESSAGES = {
    ManagementAction.VIEW: "You don't have permission to access this file",
    ManagementAction.DELETE: "You don't have permission to delete this file",
    ManagementAction.STATS: "You don't have permission to view statistics for this file",
    ManagementAction.HISTORY: "You don't have permission to view download history for this file",
}
