"""Protocol generations spoken by the annotate tool.

Each generation of the tool differs only in a handful of wire details, so one
session drives all of them from a ``ProtocolVariant`` value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final

from tfvc_blame.exceptions import ConfigurationError

FILE_FAILURE_SENTINEL: Final[str] = "AnnotationFailedOnFile"
PROJECT_FAILURE_SENTINEL: Final[str] = "AnnotationFailedOnProject"


class FieldSeparator(Enum):
    TAB = "tab"
    WHITESPACE = "whitespace"


class TimestampFormat(Enum):
    EPOCH_MILLIS = "epoch-millis"
    CALENDAR_DATE = "calendar-date"


@dataclass(frozen=True)
class SentinelVocabulary:
    file_failure: str | None = None
    project_failure: str | None = None

    def is_file_failure(self, line: str) -> bool:
        return self.file_failure is not None and line == self.file_failure

    def is_project_failure(self, line: str) -> bool:
        return self.project_failure is not None and line == self.project_failure


@dataclass(frozen=True)
class ProtocolVariant:
    name: str
    separator: FieldSeparator = FieldSeparator.TAB
    timestamp_format: TimestampFormat = TimestampFormat.EPOCH_MILLIS
    sends_personal_access_token: bool = False
    sends_collection_uri: bool = False
    sentinels: SentinelVocabulary = SentinelVocabulary()
    not_versioned_prefixes: tuple[str, ...] = ("local", "unknow")


LEGACY_TEXT = ProtocolVariant(
    name="legacy-text",
    separator=FieldSeparator.WHITESPACE,
    timestamp_format=TimestampFormat.CALENDAR_DATE,
)
TFS = ProtocolVariant(name="tfs")
TFVC = ProtocolVariant(name="tfvc", sends_collection_uri=True)
TFVC_PAT = ProtocolVariant(
    name="tfvc-pat",
    sends_personal_access_token=True,
    sends_collection_uri=True,
    sentinels=SentinelVocabulary(
        file_failure=FILE_FAILURE_SENTINEL,
        project_failure=PROJECT_FAILURE_SENTINEL,
    ),
)

DEFAULT_VARIANT = TFVC_PAT

VARIANTS: Final[dict[str, ProtocolVariant]] = {
    variant.name: variant for variant in (LEGACY_TEXT, TFS, TFVC, TFVC_PAT)
}


def variant_named(name: str) -> ProtocolVariant:
    key = name.strip().lower()
    try:
        return VARIANTS[key]
    except KeyError:
        known = ", ".join(sorted(VARIANTS))
        raise ConfigurationError(
            f"unknown protocol variant {name!r} (expected one of: {known})"
        ) from None
