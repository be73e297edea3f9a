"""Line protocol spoken with the annotate tool."""

from tfvc_blame.protocol.channel import LineChannel, LineReader, LineWriter
from tfvc_blame.protocol.classifier import (
    CountResponse,
    Disposition,
    ResponseKind,
    classify_count_line,
    disposition,
)
from tfvc_blame.protocol.grammar import encode_record, parse_count, parse_record
from tfvc_blame.protocol.handshake import HandshakeDriver
from tfvc_blame.protocol.variants import (
    DEFAULT_VARIANT,
    FILE_FAILURE_SENTINEL,
    PROJECT_FAILURE_SENTINEL,
    VARIANTS,
    FieldSeparator,
    ProtocolVariant,
    SentinelVocabulary,
    TimestampFormat,
    variant_named,
)

__all__ = [
    "CountResponse",
    "DEFAULT_VARIANT",
    "Disposition",
    "FILE_FAILURE_SENTINEL",
    "FieldSeparator",
    "HandshakeDriver",
    "LineChannel",
    "LineReader",
    "LineWriter",
    "PROJECT_FAILURE_SENTINEL",
    "ProtocolVariant",
    "ResponseKind",
    "SentinelVocabulary",
    "TimestampFormat",
    "VARIANTS",
    "classify_count_line",
    "disposition",
    "encode_record",
    "parse_count",
    "parse_record",
    "variant_named",
]
