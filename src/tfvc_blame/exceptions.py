"""Failure taxonomy for the annotate protocol driver."""

from __future__ import annotations


class BlameError(RuntimeError):
    """Base class for every failure raised while driving the annotate tool.

    ``recoverable`` tells the classifier whether the batch may continue with
    the next file or must stop requesting files.
    """

    recoverable = False


class ConfigurationError(ValueError):
    pass


class HandshakeTimeout(BlameError):
    pass


class ProtocolDesync(BlameError):
    def __init__(self, message: str, *, expected: str = "", actual: str | None = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class MalformedRecord(BlameError):
    def __init__(self, line: str, *, path: str, index: int):
        super().__init__(
            f'Invalid output from the annotate command: "{line}" on file: {path} at line {index}'
        )
        self.line = line
        self.path = path
        self.index = index


class NotVersionControlled(BlameError):
    def __init__(self, line: str, *, path: str, index: int):
        super().__init__(
            f"Unable to blame file {path}. No blame info at line {index}. "
            f"Is file committed?\n [{line}]"
        )
        self.line = line
        self.path = path
        self.index = index


class FileLevelAnnotationFailure(BlameError):
    recoverable = True

    def __init__(self, path: str, detail: str = ""):
        message = f"Unable to annotate {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.path = path
        self.detail = detail


class ProjectLevelAnnotationFailure(BlameError):
    def __init__(self, detail: str = "", *, path: str | None = None):
        message = "Annotation failed for the whole project"
        if path is not None:
            message = f"{message} while annotating {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.path = path
        self.detail = detail


class ProcessIOFailure(BlameError):
    pass


class ProcessNonZeroExit(BlameError):
    def __init__(self, executable: str, exit_code: int):
        super().__init__(
            f"The annotate command {executable} failed with exit code {exit_code}"
        )
        self.executable = executable
        self.exit_code = exit_code


class AnnotationCancelled(BlameError):
    pass
