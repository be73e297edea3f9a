from __future__ import annotations

import logging
import subprocess
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Protocol, Sequence, runtime_checkable

from tfvc_blame.assembler import BlameOutput, ResultAssembler
from tfvc_blame.exceptions import AnnotationCancelled, BlameError, ConfigurationError
from tfvc_blame.models import BlameInput, Credentials, FileAnnotationResult
from tfvc_blame.process import AnnotateProcess, ProcessFactory
from tfvc_blame.protocol.variants import DEFAULT_VARIANT, ProtocolVariant
from tfvc_blame.session import AnnotationSession


class FailurePolicy(Enum):
    RAISE = "raise"
    LOG = "log"


def failure_policy_named(name: str) -> FailurePolicy:
    try:
        return FailurePolicy(name.strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"unknown failure policy {name!r} (expected 'raise' or 'log')"
        ) from None


@runtime_checkable
class BlameCommand(Protocol):
    def annotate(
        self,
        files: Iterable[BlameInput],
        output: BlameOutput | None = None,
    ) -> list[FileAnnotationResult]: ...


class TfvcBlameCommand:
    """Annotates files by driving the bundled annotate tool.

    Each call to :meth:`annotate` owns one child process for the whole batch.
    With ``FailurePolicy.LOG`` a batch-aborting failure is logged and the
    results delivered so far are returned; cancellation always propagates.
    """

    def __init__(
        self,
        executable: str | Path,
        credentials: Credentials | None = None,
        *,
        variant: ProtocolVariant = DEFAULT_VARIANT,
        failure_policy: FailurePolicy = FailurePolicy.RAISE,
        args: Sequence[str] = (),
        process_factory: ProcessFactory = subprocess.Popen,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._executable = executable
        self._credentials = credentials or Credentials()
        self._variant = variant
        self._failure_policy = failure_policy
        self._args = tuple(args)
        self._process_factory = process_factory
        self._logger = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._process: AnnotateProcess | None = None

    def cancel(self) -> None:
        process = self._process
        if process is not None:
            process.cancel()

    def annotate(
        self,
        files: Iterable[BlameInput],
        output: BlameOutput | None = None,
    ) -> list[FileAnnotationResult]:
        assembler = ResultAssembler(output, logger=self._logger)
        try:
            self._run(list(files), assembler)
        except AnnotationCancelled:
            raise
        except BlameError as exc:
            if self._failure_policy is FailurePolicy.RAISE:
                raise
            self._logger.error("Annotation aborted: %s", exc)
        return assembler.results

    def _run(self, files: list[BlameInput], assembler: ResultAssembler) -> None:
        process = AnnotateProcess(
            self._executable,
            args=self._args,
            process_factory=self._process_factory,
            logger=self._logger,
        )
        self._process = process
        try:
            with process:
                try:
                    self._drive(process, files, assembler)
                except AnnotationCancelled:
                    raise
                except BlameError as exc:
                    if process.cancelled:
                        raise AnnotationCancelled("Annotation was cancelled") from exc
                    raise
        finally:
            self._process = None

    def _drive(
        self,
        process: AnnotateProcess,
        files: list[BlameInput],
        assembler: ResultAssembler,
    ) -> None:
        # A cancel can land before the child was spawned.
        if process.cancelled:
            raise AnnotationCancelled("Annotation was cancelled")
        session = AnnotationSession(
            process.channel,
            self._credentials,
            assembler,
            variant=self._variant,
            logger=self._logger,
            sleep=self._sleep,
        )
        session.run(files)
        if process.cancelled:
            raise AnnotationCancelled("Annotation was cancelled")
        process.check_exit()
