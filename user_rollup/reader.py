"""Offset-tracking reader: streams decoded records from a byte offset.

The log is opened in binary mode so offsets are exact byte positions, never
text-mode cookies. Each yielded LogPosition carries the absolute offset just
past the line's newline, which is what a checkpoint stores and what a resumed
run seeks to. A final line without a newline is left unread: the writer may
still be appending to it.
"""

import logging
import os
from typing import Callable, Iterator

from user_rollup.decoder import decode_line
from user_rollup.errors import DecodeError
from user_rollup.models import LogPosition

logger = logging.getLogger(__name__)


def _log_decode_error(err: DecodeError) -> None:
    logger.warning("Skipping malformed record at line %d: %s", err.line_number, err.reason)


def log_size(path: str) -> int:
    return os.stat(path).st_size


class OffsetReader:
    def __init__(self, path: str, start_offset: int = 0, start_line: int = 0,
                 on_error: Callable[[DecodeError], None] | None = None):
        self._path = path
        self._start_offset = start_offset
        self._start_line = start_line
        self._on_error = on_error or _log_decode_error
        self._file = None
        self._consumed = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def closed(self) -> bool:
        return self._file is None

    def open(self) -> "OffsetReader":
        """Open the log and seek to the start offset. OSError propagates."""
        if self._file is None:
            self._file = open(self._path, "rb")
            try:
                self._file.seek(self._start_offset)
            except Exception:
                self._file.close()
                self._file = None
                raise
            logger.debug("Opened %s at offset %d", self._path, self._start_offset)
        return self

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "OffsetReader":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[LogPosition]:
        if self._consumed:
            raise RuntimeError("OffsetReader can only be iterated once")
        self._consumed = True
        if self._file is None:
            self.open()

        offset = self._start_offset
        line_number = self._start_line
        try:
            for raw in self._file:
                if not raw.endswith(b"\n"):
                    # Partial line still being appended; the next run reads it whole.
                    logger.debug("Stopping before unterminated line at offset %d", offset)
                    break
                offset += len(raw)
                line_number += 1
                try:
                    record = decode_line(raw, line_number)
                except DecodeError as err:
                    err.offset = offset
                    self._on_error(err)
                    yield LogPosition(record=None, offset=offset, line_number=line_number)
                    continue
                yield LogPosition(record=record, offset=offset, line_number=line_number)
        finally:
            self.close()
