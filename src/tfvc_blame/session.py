from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Final, Iterable

from tfvc_blame.assembler import ResultAssembler
from tfvc_blame.exceptions import (
    BlameError,
    FileLevelAnnotationFailure,
    ProjectLevelAnnotationFailure,
)
from tfvc_blame.models import AnnotationRecord, BlameInput, Credentials, FileAnnotationResult
from tfvc_blame.protocol.channel import LineChannel
from tfvc_blame.protocol.classifier import (
    Disposition,
    ResponseKind,
    check_echo,
    classify_count_line,
    disposition,
)
from tfvc_blame.protocol.grammar import parse_record
from tfvc_blame.protocol.handshake import HandshakeDriver
from tfvc_blame.protocol.variants import DEFAULT_VARIANT, ProtocolVariant


class SessionState(Enum):
    INIT = "init"
    HANDSHAKING = "handshaking"
    READY = "ready"
    REQUESTING = "requesting"
    AWAITING_COUNT = "awaiting_count"
    READING_RECORDS = "reading_records"
    DONE = "done"
    ABORTED = "aborted"


_TRANSITIONS: Final[dict[SessionState, frozenset[SessionState]]] = {
    SessionState.INIT: frozenset({SessionState.HANDSHAKING}),
    SessionState.HANDSHAKING: frozenset({SessionState.READY, SessionState.ABORTED}),
    SessionState.READY: frozenset(
        {SessionState.REQUESTING, SessionState.DONE, SessionState.ABORTED}
    ),
    SessionState.REQUESTING: frozenset(
        {SessionState.AWAITING_COUNT, SessionState.ABORTED}
    ),
    SessionState.AWAITING_COUNT: frozenset(
        {SessionState.READING_RECORDS, SessionState.READY, SessionState.ABORTED}
    ),
    SessionState.READING_RECORDS: frozenset({SessionState.READY, SessionState.ABORTED}),
    SessionState.DONE: frozenset(),
    SessionState.ABORTED: frozenset(),
}


class InvalidSessionTransition(RuntimeError):
    pass


class AnnotationSession:
    """Drives one batch of files through the annotate tool.

    The session borrows ``channel`` for the duration of :meth:`run` and is
    single use: once it reaches ``DONE`` or ``ABORTED`` it accepts no more
    work.
    """

    def __init__(
        self,
        channel: LineChannel,
        credentials: Credentials,
        assembler: ResultAssembler,
        *,
        variant: ProtocolVariant = DEFAULT_VARIANT,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._channel = channel
        self._credentials = credentials
        self._assembler = assembler
        self._variant = variant
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._state = SessionState.INIT

    @property
    def state(self) -> SessionState:
        return self._state

    def _transition(self, target: SessionState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidSessionTransition(
                f"cannot move annotation session from {self._state.value} to {target.value}"
            )
        self._state = target

    def _abort(self) -> None:
        if self._state not in (SessionState.DONE, SessionState.ABORTED):
            self._state = SessionState.ABORTED

    def handshake(self) -> None:
        self._transition(SessionState.HANDSHAKING)
        try:
            HandshakeDriver(
                self._channel,
                self._variant,
                logger=self._logger,
                sleep=self._sleep,
            ).run(self._credentials)
        except BaseException:
            self._abort()
            raise
        self._transition(SessionState.READY)

    def run(self, files: Iterable[BlameInput]) -> list[FileAnnotationResult]:
        """Handshake, then annotate ``files`` in order.

        A file-level failure skips that file only; any other failure aborts
        the rest of the batch and propagates.
        """
        self.handshake()
        try:
            for blame_input in files:
                try:
                    self.annotate_file(blame_input)
                except BlameError as exc:
                    if disposition(exc) is not Disposition.SKIP_FILE:
                        raise
                    self._logger.error("%s", exc)
                    self._transition(SessionState.READY)
                self._drain_errors()
        except BaseException:
            self._abort()
            raise
        self._transition(SessionState.DONE)
        return self._assembler.results

    def annotate_file(self, blame_input: BlameInput) -> FileAnnotationResult | None:
        request = blame_input.request()
        self._transition(SessionState.REQUESTING)
        self._logger.debug("annotating %s", request.path)
        self._channel.write_line(request.path)
        check_echo(request.path, self._channel.read_line())

        self._transition(SessionState.AWAITING_COUNT)
        response = classify_count_line(
            self._channel.read_line(), self._variant, path=request.path
        )
        if response.kind is ResponseKind.FILE_FAILURE:
            raise FileLevelAnnotationFailure(
                request.path, self._channel.read_error_line() or ""
            )
        if response.kind is ResponseKind.PROJECT_FAILURE:
            raise ProjectLevelAnnotationFailure(
                self._channel.read_error_line() or "", path=request.path
            )
        if response.kind is ResponseKind.END_OF_STREAM:
            raise ProjectLevelAnnotationFailure(
                "the annotate tool closed its output", path=request.path
            )
        self._logger.debug("%s has %d annotated lines", request.path, response.count)
        if response.count == 0:
            reason = self._channel.read_line()
            self._logger.info("%s", reason or response.reason or f"No annotation for {request.path}")
            self._transition(SessionState.READY)
            return None

        self._transition(SessionState.READING_RECORDS)
        records = self._read_records(request.path, response.count)
        result = self._assembler.deliver(blame_input, records)
        self._transition(SessionState.READY)
        return result

    def _read_records(self, path: str, count: int) -> list[AnnotationRecord]:
        records: list[AnnotationRecord] = []
        for index in range(1, count + 1):
            line = self._channel.read_line()
            if line is None:
                raise ProjectLevelAnnotationFailure(
                    f"the annotate tool closed its output after {index - 1} of {count} lines",
                    path=path,
                )
            records.append(
                parse_record(line, self._variant, path=path, index=index, logger=self._logger)
            )
        return records

    def _drain_errors(self) -> None:
        pending = self._channel.drain_errors().strip()
        if pending:
            self._logger.warning("annotate tool diagnostics: %s", pending)
