from __future__ import annotations

import logging
from typing import Callable, Sequence, TypeAlias

from tfvc_blame.models import AnnotationRecord, BlameInput, FileAnnotationResult

BlameOutput: TypeAlias = Callable[[str, tuple[AnnotationRecord, ...]], None]


def normalize_trailing_line(
    records: Sequence[AnnotationRecord],
    line_count: int | None,
) -> tuple[AnnotationRecord, ...]:
    """Repeat the last record when the tool skipped a trailing empty line.

    The annotate backend emits nothing for a file's final line when it is
    empty, so a result one short of the file's line count gets the nearest
    known authorship for that line. Results at any other length are returned
    unchanged.
    """
    result = tuple(records)
    if line_count is not None and result and len(result) == line_count - 1:
        return result + (result[-1],)
    return result


class ResultAssembler:
    """Normalizes per-file records and pushes them to the output sink.

    Delivered results are final; an aborted batch only stops further
    deliveries.
    """

    def __init__(
        self,
        sink: BlameOutput | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._sink = sink
        self._logger = logger or logging.getLogger(__name__)
        self._results: list[FileAnnotationResult] = []

    @property
    def results(self) -> list[FileAnnotationResult]:
        return list(self._results)

    def deliver(
        self,
        blame_input: BlameInput,
        records: Sequence[AnnotationRecord],
    ) -> FileAnnotationResult:
        lines = normalize_trailing_line(records, blame_input.line_count)
        if len(lines) != len(records):
            self._logger.debug(
                "repeated the last annotation of %s for its trailing empty line",
                blame_input.path,
            )
        result = FileAnnotationResult(path=blame_input.path, lines=lines)
        self._results.append(result)
        if self._sink is not None:
            self._sink(result.path, result.lines)
        return result
