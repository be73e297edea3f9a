"""Per-line authorship for TFVC files through the bundled annotate tool."""

from tfvc_blame.blame import BlameCommand, FailurePolicy, TfvcBlameCommand
from tfvc_blame.exceptions import BlameError
from tfvc_blame.models import AnnotationRecord, BlameInput, Credentials, FileAnnotationResult

__all__ = [
    "__version__",
    "AnnotationRecord",
    "BlameCommand",
    "BlameError",
    "BlameInput",
    "Credentials",
    "FailurePolicy",
    "FileAnnotationResult",
    "TfvcBlameCommand",
]

__version__ = "0.1.0"
