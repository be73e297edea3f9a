from __future__ import annotations

import os
import select
from typing import BinaryIO, Final

from tfvc_blame.exceptions import ProcessIOFailure

LINE_TERMINATOR: Final[str] = "\r\n"
ENCODING: Final[str] = "utf-8"
_CHUNK_SIZE = 4096


class LineReader:
    """Newline-delimited reads over a byte stream.

    The reader keeps its own buffer so it can sit on an unbuffered pipe; a
    bare ``\\n`` and ``\\r\\n`` both terminate a line.
    """

    def __init__(self, stream: BinaryIO, *, name: str = "stdout") -> None:
        self._stream = stream
        self._name = name
        self._buffer = bytearray()
        self._eof = False

    @property
    def name(self) -> str:
        return self._name

    def _read_chunk(self) -> bytes:
        read = getattr(self._stream, "read1", None) or self._stream.read
        try:
            chunk = read(_CHUNK_SIZE)
        except (OSError, ValueError) as exc:
            raise ProcessIOFailure(f"unable to read from the annotate tool {self._name}") from exc
        return chunk or b""

    def read_line(self) -> str | None:
        """Block until a full line is available; ``None`` at end of stream."""
        while True:
            newline = self._buffer.find(b"\n")
            if newline >= 0:
                raw = bytes(self._buffer[:newline])
                del self._buffer[: newline + 1]
                return _decode(raw.rstrip(b"\r"))
            if self._eof:
                break
            chunk = self._read_chunk()
            if not chunk:
                self._eof = True
                continue
            self._buffer.extend(chunk)
        if self._buffer:
            raw = bytes(self._buffer)
            self._buffer.clear()
            return _decode(raw.rstrip(b"\r"))
        return None

    def drain_available(self) -> str:
        """Return whatever can be read without blocking."""
        chunks = [bytes(self._buffer)]
        self._buffer.clear()
        if not self._eof:
            chunks.extend(self._read_ready_chunks())
        return _decode(b"".join(chunks))

    def _read_ready_chunks(self) -> list[bytes]:
        try:
            fd = self._stream.fileno()
        except (OSError, ValueError):
            fd = None
        if fd is None:
            # In-memory streams never block.
            try:
                data = self._stream.read()
            except (OSError, ValueError):
                return []
            self._eof = True
            return [data] if data else []
        chunks: list[bytes] = []
        try:
            while select.select([fd], [], [], 0)[0]:
                chunk = os.read(fd, _CHUNK_SIZE)
                if not chunk:
                    self._eof = True
                    break
                chunks.append(chunk)
        except (OSError, ValueError):
            pass
        return chunks


class LineWriter:
    def __init__(self, stream: BinaryIO, *, name: str = "stdin") -> None:
        self._stream = stream
        self._name = name

    def write_line(self, text: str) -> None:
        self.write_lines([text])

    def write_lines(self, lines: list[str]) -> None:
        """Write each line CRLF-terminated, then flush once."""
        payload = "".join(f"{line}{LINE_TERMINATOR}" for line in lines).encode(ENCODING)
        try:
            view = memoryview(payload)
            while view:
                written = self._stream.write(view)
                if not written:
                    raise OSError("short write")
                view = view[written:]
            self._stream.flush()
        except (OSError, ValueError) as exc:
            raise ProcessIOFailure(f"unable to write to the annotate tool {self._name}") from exc


class LineChannel:
    """The three standard streams of the annotate tool as line channels."""

    def __init__(self, stdin: BinaryIO, stdout: BinaryIO, stderr: BinaryIO) -> None:
        self.writer = LineWriter(stdin)
        self.reader = LineReader(stdout, name="stdout")
        self.errors = LineReader(stderr, name="stderr")

    def write_line(self, text: str) -> None:
        self.writer.write_line(text)

    def write_lines(self, lines: list[str]) -> None:
        self.writer.write_lines(lines)

    def read_line(self) -> str | None:
        return self.reader.read_line()

    def read_error_line(self) -> str | None:
        return self.errors.read_line()

    def drain_errors(self) -> str:
        return self.errors.drain_available()


def _decode(raw: bytes) -> str:
    return raw.decode(ENCODING, errors="replace")
