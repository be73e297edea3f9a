from __future__ import annotations

import subprocess
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from tfvc_blame.blame import TfvcBlameCommand
from tfvc_blame.exceptions import AnnotationCancelled, ProcessNonZeroExit, ProjectLevelAnnotationFailure
from tfvc_blame.models import BlameInput, Credentials
from tests.env_helpers import env_scope

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses select() on pipes")


def _command(fake_tool_path: Path, collection_uri: str = "https://tfs") -> TfvcBlameCommand:
    return TfvcBlameCommand(
        sys.executable,
        Credentials(username="builder", collection_uri=collection_uri),
        args=[str(fake_tool_path)],
    )


def test_real_process_batch(tmp_path: Path, fake_tool_path: Path) -> None:
    (tmp_path / "ok.txt").write_text("first\nsecond\n", encoding="utf-8")
    (tmp_path / "data.zero").write_text("binary", encoding="utf-8")
    delivered: list[str] = []
    with env_scope({"FAKE_TOOL_ROOT": str(tmp_path), "FAKE_TOOL_EXIT_CODE": None}):
        results = _command(fake_tool_path).annotate(
            [
                BlameInput("missing.txt"),
                BlameInput("data.zero"),
                BlameInput("ok.txt", line_count=3),
            ],
            lambda path, _lines: delivered.append(path),
        )
    assert delivered == ["ok.txt"]
    (result,) = results
    assert [record.revision for record in result.lines] == ["100", "101", "101"]
    assert result.lines[0].author == "dev@example.com"
    assert result.lines[0].timestamp == datetime(2015, 5, 4, 10, 43, 19, tzinfo=timezone.utc)


def test_real_process_project_failure(tmp_path: Path, fake_tool_path: Path) -> None:
    with env_scope({"FAKE_TOOL_ROOT": str(tmp_path), "FAKE_TOOL_EXIT_CODE": None}):
        with pytest.raises(ProjectLevelAnnotationFailure) as exc:
            _command(fake_tool_path, collection_uri="broken").annotate([BlameInput("ok.txt")])
    assert "collection is unreachable" in str(exc.value)


def test_real_process_nonzero_exit(tmp_path: Path, fake_tool_path: Path) -> None:
    (tmp_path / "ok.txt").write_text("only\n", encoding="utf-8")
    with env_scope({"FAKE_TOOL_ROOT": str(tmp_path), "FAKE_TOOL_EXIT_CODE": "3"}):
        with pytest.raises(ProcessNonZeroExit) as exc:
            _command(fake_tool_path).annotate([BlameInput("ok.txt", line_count=2)])
    assert exc.value.exit_code == 3


def test_real_process_cancel_from_another_thread(tmp_path: Path, fake_tool_path: Path) -> None:
    started: list[subprocess.Popen] = []

    def _spawn(args, **kwargs) -> subprocess.Popen:
        proc = subprocess.Popen(args, **kwargs)
        started.append(proc)
        return proc

    command = TfvcBlameCommand(
        sys.executable,
        Credentials(username="builder", collection_uri="https://tfs"),
        args=[str(fake_tool_path)],
        process_factory=_spawn,
    )
    timer = threading.Timer(1.0, command.cancel)
    with env_scope({"FAKE_TOOL_ROOT": str(tmp_path), "FAKE_TOOL_EXIT_CODE": None}):
        timer.start()
        try:
            with pytest.raises(AnnotationCancelled):
                command.annotate([BlameInput("hang.txt")])
        finally:
            timer.cancel()
    (proc,) = started
    assert proc.poll() is not None
    assert proc.stdin.closed
    assert proc.stdout.closed
    assert proc.stderr.closed
