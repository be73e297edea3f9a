from __future__ import annotations

import logging
import subprocess
from contextlib import suppress
from pathlib import Path
from typing import Callable, Sequence, TypeAlias

from tfvc_blame.exceptions import ProcessIOFailure, ProcessNonZeroExit
from tfvc_blame.protocol.channel import LineChannel

ProcessFactory: TypeAlias = Callable[..., subprocess.Popen]

_TERMINATE_TIMEOUT_SECONDS = 5.0


class AnnotateProcess:
    """Owns the annotate tool's child process and its three streams.

    Use as a context manager: leaving the block closes the streams and
    terminates the process on every exit path. :meth:`finish` is the normal
    way out; it closes stdin so the tool exits on its own, then reports the
    exit code.
    """

    def __init__(
        self,
        executable: str | Path,
        *,
        args: Sequence[str] = (),
        process_factory: ProcessFactory = subprocess.Popen,
        logger: logging.Logger | None = None,
        terminate_timeout: float = _TERMINATE_TIMEOUT_SECONDS,
    ) -> None:
        self._executable = str(executable)
        self._args = list(args)
        self._process_factory = process_factory
        self._logger = logger or logging.getLogger(__name__)
        self._terminate_timeout = terminate_timeout
        self._proc: subprocess.Popen | None = None
        self._channel: LineChannel | None = None
        self._cancelled = False

    @property
    def executable(self) -> str:
        return self._executable

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def channel(self) -> LineChannel:
        if self._channel is None:
            raise ProcessIOFailure("the annotate tool has not been started")
        return self._channel

    def start(self) -> LineChannel:
        self._logger.debug("Executing the annotate command: %s", self._executable)
        try:
            proc = self._process_factory(
                [self._executable, *self._args],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
            )
        except OSError as exc:
            raise ProcessIOFailure(
                f"Unable to start the annotate command {self._executable}: {exc}"
            ) from exc
        assert proc.stdin is not None
        assert proc.stdout is not None
        assert proc.stderr is not None
        self._proc = proc
        self._channel = LineChannel(proc.stdin, proc.stdout, proc.stderr)
        return self._channel

    def cancel(self) -> None:
        """Request termination from outside the batch; safe from any thread."""
        self._cancelled = True
        proc = self._proc
        if proc is not None and proc.poll() is None:
            self._logger.debug("cancelling the annotate command %s", self._executable)
            with suppress(OSError):
                proc.terminate()

    def finish(self) -> int:
        proc = self._require_process()
        with suppress(OSError, ValueError):
            proc.stdin.close()
        exit_code = proc.wait()
        self._logger.debug("annotate command exited with %s", exit_code)
        return exit_code

    def check_exit(self) -> None:
        exit_code = self.finish()
        if exit_code != 0:
            raise ProcessNonZeroExit(self._executable, exit_code)

    def close(self) -> None:
        proc = self._proc
        if proc is None:
            return
        if self._channel is not None:
            pending = self._channel.drain_errors().strip()
            if pending:
                self._logger.error("%s", pending)
        for stream in (proc.stdin, proc.stdout, proc.stderr):
            if stream is not None:
                with suppress(OSError, ValueError):
                    stream.close()
        if proc.poll() is None:
            with suppress(OSError):
                proc.terminate()
            try:
                proc.wait(timeout=self._terminate_timeout)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
        self._proc = None

    def _require_process(self) -> subprocess.Popen:
        if self._proc is None:
            raise ProcessIOFailure("the annotate tool has not been started")
        return self._proc

    def __enter__(self) -> AnnotateProcess:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
