from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class AnnotationRecord:
    revision: str
    author: str
    timestamp: datetime | None


@dataclass(frozen=True)
class BlameInput:
    """One file handed to a blame batch.

    ``line_count`` is the file's true line count when known; ``None`` skips
    the trailing empty line repair.
    """

    path: str
    line_count: int | None = None

    def request(self) -> FileAnnotationRequest:
        return FileAnnotationRequest(path=self.path.lstrip("/\\"))


@dataclass(frozen=True)
class FileAnnotationRequest:
    path: str


@dataclass(frozen=True)
class FileAnnotationResult:
    path: str
    lines: tuple[AnnotationRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Credentials:
    username: str = ""
    password: str = ""
    personal_access_token: str = ""
    collection_uri: str = ""

    def __post_init__(self) -> None:
        for name in ("username", "password", "personal_access_token", "collection_uri"):
            value = getattr(self, name)
            object.__setattr__(self, name, "" if value is None else str(value))
