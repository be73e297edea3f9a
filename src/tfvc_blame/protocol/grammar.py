"""Grammar of the annotate tool's record and count lines.

Record line::

    record    := revision SEP author SEP timestamp [SEP trailing]
    SEP       := "\\t"             (tab protocols, exactly one tab)
               | " "+             (legacy text protocol, a run of spaces)
    timestamp := ["-"] DIGIT+     (epoch milliseconds)
               | MM "/" dd "/" yyyy

Each field is trimmed and must be non-empty. ``trailing`` is the annotated
source text some tool generations append; it is never interpreted.

Count line::

    count     := DIGIT+ [ " - " reason ]
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Final

from tfvc_blame.exceptions import MalformedRecord, NotVersionControlled
from tfvc_blame.models import AnnotationRecord
from tfvc_blame.protocol.variants import FieldSeparator, ProtocolVariant, TimestampFormat

EPOCH: Final[datetime] = datetime(1970, 1, 1, tzinfo=timezone.utc)
CALENDAR_DATE_PATTERN: Final[str] = "%m/%d/%Y"
NULL_TIMESTAMP: Final[str] = "-"
_RECORD_FIELDS = 3
_EPOCH_MILLIS_RE = re.compile(r"-?\d+")
_COUNT_RE = re.compile(r"(?P<count>\d+)(?:\s+-\s*(?P<reason>.*))?")

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordFields:
    revision: str
    author: str
    timestamp: str
    trailing: str = ""


@dataclass(frozen=True)
class CountLine:
    count: int
    reason: str = ""


class _FieldScanner:
    def __init__(self, line: str, separator: FieldSeparator) -> None:
        self._line = line
        self._separator = separator
        self._pos = 0

    def _is_separator(self, char: str) -> bool:
        if self._separator is FieldSeparator.TAB:
            return char == "\t"
        return char == " "

    def _skip_separator(self) -> bool:
        start = self._pos
        if self._separator is FieldSeparator.TAB:
            if self._pos < len(self._line) and self._line[self._pos] == "\t":
                self._pos += 1
        else:
            while self._pos < len(self._line) and self._line[self._pos] == " ":
                self._pos += 1
        return self._pos > start

    def _field(self) -> str:
        start = self._pos
        while self._pos < len(self._line) and not self._is_separator(self._line[self._pos]):
            self._pos += 1
        return self._line[start : self._pos]

    def scan(self) -> RecordFields | None:
        if self._separator is FieldSeparator.WHITESPACE:
            self._skip_separator()
        fields: list[str] = []
        for position in range(_RECORD_FIELDS):
            if position and not self._skip_separator():
                return None
            value = self._field().strip()
            if not value:
                return None
            fields.append(value)
        trailing = ""
        if self._skip_separator():
            trailing = self._line[self._pos :]
        revision, author, timestamp = fields
        return RecordFields(revision=revision, author=author, timestamp=timestamp, trailing=trailing)


def scan_record(line: str, separator: FieldSeparator) -> RecordFields | None:
    return _FieldScanner(line, separator).scan()


def parse_timestamp(
    text: str,
    timestamp_format: TimestampFormat,
    *,
    logger: logging.Logger | None = None,
) -> datetime | None:
    log = logger or _LOGGER
    if timestamp_format is TimestampFormat.EPOCH_MILLIS:
        if _EPOCH_MILLIS_RE.fullmatch(text):
            try:
                return EPOCH + timedelta(milliseconds=int(text, 10))
            except OverflowError:
                pass
        log.warning("skip unparseable timestamp %r (expected epoch milliseconds)", text)
        return None
    try:
        parsed = datetime.strptime(text, CALENDAR_DATE_PATTERN)
    except ValueError as exc:
        log.warning(
            "skip unparseable timestamp %r with pattern %s: %s",
            text,
            CALENDAR_DATE_PATTERN,
            exc,
        )
        return None
    return parsed.replace(tzinfo=timezone.utc)


def parse_record(
    line: str,
    variant: ProtocolVariant,
    *,
    path: str,
    index: int,
    logger: logging.Logger | None = None,
) -> AnnotationRecord:
    """Parse one record line; ``index`` is the 1-based record position."""
    if line.startswith(variant.not_versioned_prefixes):
        raise NotVersionControlled(line, path=path, index=index)
    fields = scan_record(line, variant.separator)
    if fields is None:
        raise MalformedRecord(line, path=path, index=index)
    return AnnotationRecord(
        revision=fields.revision,
        author=fields.author,
        timestamp=parse_timestamp(fields.timestamp, variant.timestamp_format, logger=logger),
    )


def parse_count(line: str) -> CountLine | None:
    match = _COUNT_RE.fullmatch(line.strip())
    if match is None:
        return None
    return CountLine(count=int(match.group("count"), 10), reason=(match.group("reason") or "").strip())


def format_timestamp(value: datetime | None, timestamp_format: TimestampFormat) -> str:
    if value is None:
        return NULL_TIMESTAMP
    if timestamp_format is TimestampFormat.CALENDAR_DATE:
        return value.strftime(CALENDAR_DATE_PATTERN)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - EPOCH
    return str(delta // timedelta(milliseconds=1))


def encode_record(record: AnnotationRecord, variant: ProtocolVariant) -> str:
    separator = "\t" if variant.separator is FieldSeparator.TAB else " "
    return separator.join(
        (
            record.revision,
            record.author,
            format_timestamp(record.timestamp, variant.timestamp_format),
        )
    )
