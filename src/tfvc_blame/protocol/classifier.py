"""Classification of the tool's per-file response and of driver failures.

Every function here is pure: the outcome depends only on its arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tfvc_blame.exceptions import BlameError, ProtocolDesync
from tfvc_blame.protocol.grammar import parse_count
from tfvc_blame.protocol.variants import ProtocolVariant


class ResponseKind(Enum):
    RECORD_COUNT = "record_count"
    FILE_FAILURE = "file_failure"
    PROJECT_FAILURE = "project_failure"
    END_OF_STREAM = "end_of_stream"


class Disposition(Enum):
    SKIP_FILE = "skip_file"
    ABORT_BATCH = "abort_batch"


@dataclass(frozen=True)
class CountResponse:
    kind: ResponseKind
    count: int = 0
    reason: str = ""


def classify_count_line(
    line: str | None,
    variant: ProtocolVariant,
    *,
    path: str,
) -> CountResponse:
    """Interpret the line that follows the echoed path."""
    if line is None:
        return CountResponse(ResponseKind.END_OF_STREAM)
    text = line.strip()
    if variant.sentinels.is_file_failure(text):
        return CountResponse(ResponseKind.FILE_FAILURE)
    if variant.sentinels.is_project_failure(text):
        return CountResponse(ResponseKind.PROJECT_FAILURE)
    parsed = parse_count(text)
    if parsed is None:
        raise ProtocolDesync(
            f"Expected a record count or a failure sentinel for {path}, got: {line!r}",
            actual=line,
        )
    return CountResponse(ResponseKind.RECORD_COUNT, count=parsed.count, reason=parsed.reason)


def is_project_failure(line: str | None, variant: ProtocolVariant) -> bool:
    return line is not None and variant.sentinels.is_project_failure(line.strip())


def check_echo(requested: str, echoed: str | None) -> None:
    if echoed != requested:
        raise ProtocolDesync(
            f"Expected the file paths to match: {requested} and {echoed}",
            expected=requested,
            actual=echoed,
        )


def disposition(error: BlameError) -> Disposition:
    if error.recoverable:
        return Disposition.SKIP_FILE
    return Disposition.ABORT_BATCH
