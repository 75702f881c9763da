"""
Blob store contract.

Backends are plain synchronous clients (filesystem, MinIO); callers on the
event loop go through ``run_in_threadpool``.
"""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional


class Container(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"

    @classmethod
    def for_visibility(cls, is_public: Optional[bool]) -> "Container":
        return cls.PUBLIC if is_public else cls.PRIVATE


class BlobStoreError(Exception):
    pass


class InvalidObject(BlobStoreError):
    pass


class InvalidLocation(BlobStoreError):
    pass


class BlobNotFound(BlobStoreError):
    pass


@dataclass
class BlobObject:
    name: str
    container: Container
    content_type: Optional[str]
    size: int
    stream: BinaryIO


@dataclass(frozen=True)
class Location:
    container: Container
    path: str


@dataclass
class DownloadResult:
    stream: BinaryIO
    content_type: Optional[str]
    size: int

    def close(self) -> None:
        close = getattr(self.stream, "close", None)
        if close:
            close()
        release = getattr(self.stream, "release_conn", None)
        if release:
            release()


def validate_object_name(name: str) -> str:
    if not name or not name.strip():
        raise InvalidObject("missing object name")
    clean = posixpath.normpath(name.replace("\\", "/")).lstrip("/")
    if clean in ("", ".") or clean.startswith(".."):
        raise InvalidObject(f"invalid object name {name!r}")
    return clean


def validate_object(obj: BlobObject) -> str:
    if obj is None or obj.stream is None:
        raise InvalidObject("missing data stream")
    if not isinstance(obj.container, Container):
        raise InvalidObject(f"invalid container {obj.container!r}")
    return validate_object_name(obj.name)


def validate_location(loc: Location) -> None:
    if loc is None:
        raise InvalidLocation("missing location")
    if not isinstance(loc.container, Container):
        raise InvalidLocation(f"invalid container {loc.container!r}")
    if not loc.path:
        raise InvalidLocation("missing path")


class BlobStore(ABC):
    @abstractmethod
    def upload(self, obj: BlobObject) -> Location:
        ...

    @abstractmethod
    def download(self, loc: Location) -> DownloadResult:
        """Raises BlobNotFound when nothing is stored at ``loc``."""

    @abstractmethod
    def delete(self, loc: Location) -> None:
        """Idempotent: deleting an absent object is not an error."""

    def healthcheck(self) -> None:
        pass
