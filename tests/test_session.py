from __future__ import annotations

import io
import logging

import pytest

from tfvc_blame.assembler import ResultAssembler
from tfvc_blame.exceptions import (
    MalformedRecord,
    NotVersionControlled,
    ProjectLevelAnnotationFailure,
    ProtocolDesync,
)
from tfvc_blame.models import BlameInput, Credentials
from tfvc_blame.protocol.channel import LineChannel
from tfvc_blame.protocol.variants import LEGACY_TEXT, TFS, TFVC_PAT, ProtocolVariant
from tfvc_blame.session import AnnotationSession, InvalidSessionTransition, SessionState
from tests.fakes import HANDSHAKE, RecordingStream, tool_output

_OK_RECORDS = (
    "26274\tSND\\DinSoft_cp\t1430736199000",
    "26275\tSND\\DinSoft_cp\t1430736200000",
)


def _session(
    stdout: bytes,
    stderr: bytes = b"",
    *,
    variant: ProtocolVariant = TFVC_PAT,
    logger: logging.Logger | None = None,
):
    stdin = RecordingStream()
    delivered: list[tuple[str, tuple]] = []
    channel = LineChannel(stdin, io.BytesIO(stdout), io.BytesIO(stderr))
    session = AnnotationSession(
        channel,
        Credentials(collection_uri="https://tfs"),
        ResultAssembler(lambda path, lines: delivered.append((path, lines))),
        variant=variant,
        logger=logger,
        sleep=lambda _: None,
    )
    return session, stdin, delivered


def test_annotates_files_in_order() -> None:
    session, stdin, delivered = _session(
        tool_output(*HANDSHAKE, "ok.txt", 2, *_OK_RECORDS, "src/b.txt", 1, "7\tjane\t0")
    )
    results = session.run([BlameInput("ok.txt", line_count=2), BlameInput("/src/b.txt", line_count=1)])
    assert [path for path, _ in delivered] == ["ok.txt", "/src/b.txt"]
    assert [result.path for result in results] == ["ok.txt", "/src/b.txt"]
    assert [record.revision for record in results[0].lines] == ["26274", "26275"]
    assert session.state is SessionState.DONE
    assert stdin.getvalue().decode("utf-8").endswith("ok.txt\r\nsrc/b.txt\r\n")


def test_trailing_empty_line_is_repaired() -> None:
    session, _, delivered = _session(tool_output(*HANDSHAKE, "ok.txt", 2, *_OK_RECORDS))
    session.run([BlameInput("ok.txt", line_count=3)])
    (_, lines), = delivered
    assert [record.revision for record in lines] == ["26274", "26275", "26275"]


def test_file_level_failure_skips_only_that_file(caplog) -> None:
    caplog.set_level(logging.DEBUG)
    session, _, delivered = _session(
        tool_output(
            *HANDSHAKE,
            "missing.txt",
            "AnnotationFailedOnFile",
            "ok.txt",
            2,
            *_OK_RECORDS,
        ),
        b"does not exist: missing.txt\n",
    )
    session.run([BlameInput("missing.txt"), BlameInput("ok.txt", line_count=2)])
    assert [path for path, _ in delivered] == ["ok.txt"]
    errors = [record for record in caplog.records if record.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert "Unable to annotate missing.txt" in errors[0].getMessage()
    assert "does not exist" in errors[0].getMessage()
    assert session.state is SessionState.DONE


def test_zero_records_is_not_an_error(caplog) -> None:
    caplog.set_level(logging.INFO)
    session, _, delivered = _session(
        tool_output(
            *HANDSHAKE,
            "ko_0_lines.txt",
            0,
            "Unable to TFS annotate the following file which is not yet checked-in",
        ),
        variant=TFVC_PAT,
    )
    assert session.run([BlameInput("ko_0_lines.txt")]) == []
    assert delivered == []
    assert any("not yet checked-in" in message for message in caplog.messages)
    assert session.state is SessionState.DONE


def test_legacy_zero_count_with_inline_reason() -> None:
    session, _, delivered = _session(
        tool_output(
            "Enter your credentials",
            "Enter the paths to annotate",
            "Foo.dll",
            "0 - is a binary one: Foo.dll",
            "Unable to TFS annotate the following file which is a binary one: Foo.dll",
            "ok.txt",
            2,
            *_OK_RECORDS,
        ),
        variant=TFS,
    )
    session.run([BlameInput("Foo.dll"), BlameInput("ok.txt")])
    assert [path for path, _ in delivered] == ["ok.txt"]


def test_echo_mismatch_aborts_the_batch() -> None:
    session, stdin, delivered = _session(tool_output(*HANDSHAKE, "other.txt", 2, *_OK_RECORDS))
    with pytest.raises(ProtocolDesync) as exc:
        session.run([BlameInput("ok.txt"), BlameInput("next.txt")])
    assert "ok.txt and other.txt" in str(exc.value)
    assert delivered == []
    assert session.state is SessionState.ABORTED
    assert "next.txt" not in stdin.getvalue().decode("utf-8")


def test_malformed_record_aborts_the_batch() -> None:
    session, _, delivered = _session(
        tool_output(*HANDSHAKE, "invalid_output.txt", 1, "hello world!", "ok.txt", 2, *_OK_RECORDS)
    )
    with pytest.raises(MalformedRecord) as exc:
        session.run([BlameInput("invalid_output.txt"), BlameInput("ok.txt")])
    assert "invalid_output.txt" in str(exc.value)
    assert "at line 1" in str(exc.value)
    assert delivered == []
    assert session.state is SessionState.ABORTED


def test_project_failure_mid_batch_keeps_earlier_results() -> None:
    session, stdin, delivered = _session(
        tool_output(*HANDSHAKE, "ok.txt", 2, *_OK_RECORDS, "b.txt", "AnnotationFailedOnProject"),
        b"TF30063: You are not authorized\n",
    )
    with pytest.raises(ProjectLevelAnnotationFailure) as exc:
        session.run([BlameInput("ok.txt"), BlameInput("b.txt"), BlameInput("c.txt")])
    assert "TF30063" in str(exc.value)
    assert [path for path, _ in delivered] == ["ok.txt"]
    assert "c.txt" not in stdin.getvalue().decode("utf-8")
    assert session.state is SessionState.ABORTED


def test_end_of_stream_is_a_project_failure() -> None:
    session, _, _ = _session(tool_output(*HANDSHAKE, "ok.txt"))
    with pytest.raises(ProjectLevelAnnotationFailure):
        session.run([BlameInput("ok.txt")])
    assert session.state is SessionState.ABORTED


def test_truncated_records_are_a_project_failure() -> None:
    session, _, delivered = _session(tool_output(*HANDSHAKE, "ok.txt", 3, *_OK_RECORDS))
    with pytest.raises(ProjectLevelAnnotationFailure) as exc:
        session.run([BlameInput("ok.txt")])
    assert "2 of 3" in str(exc.value)
    assert delivered == []


def test_uncommitted_legacy_line_aborts() -> None:
    session, _, _ = _session(
        tool_output("Enter your credentials", "Enter the paths to annotate", "Foo.cs", 1, "local Foo.cs"),
        variant=LEGACY_TEXT,
    )
    with pytest.raises(NotVersionControlled):
        session.run([BlameInput("Foo.cs")])


def test_handshake_failure_requests_no_file() -> None:
    session, stdin, delivered = _session(
        tool_output("Enter your credentials", "collection", "AnnotationFailedOnProject"),
        b"unreachable\n",
    )
    with pytest.raises(ProjectLevelAnnotationFailure):
        session.run([BlameInput("ok.txt")])
    assert delivered == []
    assert "ok.txt" not in stdin.getvalue().decode("utf-8")
    assert session.state is SessionState.ABORTED


def test_stderr_is_drained_after_each_file(caplog) -> None:
    caplog.set_level(logging.WARNING)
    session, _, _ = _session(
        tool_output(*HANDSHAKE, "ok.txt", 2, *_OK_RECORDS),
        b"slow server response\n",
    )
    session.run([BlameInput("ok.txt")])
    assert any("slow server response" in message for message in caplog.messages)


def test_session_is_single_use() -> None:
    session, _, _ = _session(tool_output(*HANDSHAKE))
    session.run([])
    with pytest.raises(InvalidSessionTransition):
        session.run([])
