"""Incremental UTF-8 decoding and newline framing for agent output streams."""

from __future__ import annotations

import codecs
import logging

from agentwire.constants import MAX_LINE_BUFFER_BYTES

logger = logging.getLogger(__name__)


class LineFramer:
    """Turn arbitrarily-chunked bytes into complete text lines.

    Holds an incremental decoder so a multi-byte character split across two
    ``feed`` calls decodes correctly.  Lines end at ``\\n`` or ``\\r\\n``;
    blank lines are skipped.

    The unterminated fragment is capped at *max_bytes* (UTF-8 encoded), not
    counting a trailing ``\\r`` that may be the first half of ``\\r\\n``.
    When a fragment grows past the cap it is discarded, along with the rest
    of that line, and framing resumes after the next newline.  Losing one
    oversized line is preferred to unbounded memory growth.
    """

    def __init__(self, max_bytes: int = MAX_LINE_BUFFER_BYTES, name: str = "stdout") -> None:
        self._max_bytes = max_bytes
        self._name = name
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._buffer_bytes = 0
        self._discarding = False
        self._dropped_bytes = 0

    @property
    def buffered_bytes(self) -> int:
        """Encoded size of the retained, not-yet-terminated fragment."""
        return self._buffer_bytes

    @property
    def dropped_bytes(self) -> int:
        """Total bytes discarded by the ceiling so far."""
        return self._dropped_bytes

    def feed(self, data: bytes) -> list[str]:
        """Decode *data* and return every line it completes."""
        return self._frame(self._decoder.decode(data))

    def finish(self) -> list[str]:
        """Flush decoder state and return remaining lines, including the tail.

        A final line without a trailing newline is still returned.  The
        framer is reset afterwards and can be reused.
        """
        lines = self._frame(self._decoder.decode(b"", final=True))
        tail = "" if self._discarding else self._buffer
        if self._discarding:
            self._dropped_bytes += self._buffer_bytes
        self._buffer = ""
        self._buffer_bytes = 0
        self._discarding = False
        self._decoder.reset()
        if tail.endswith("\r"):
            tail = tail[:-1]
        if tail.strip():
            lines.append(tail)
        return lines

    def _frame(self, text: str) -> list[str]:
        if not text:
            return []

        if self._discarding:
            newline = text.find("\n")
            if newline == -1:
                self._dropped_bytes += len(text.encode("utf-8"))
                return []
            self._dropped_bytes += len(text[:newline].encode("utf-8"))
            text = text[newline + 1 :]
            self._discarding = False

        if "\n" not in text:
            self._buffer += text
            self._buffer_bytes += len(text.encode("utf-8"))
            self._enforce_ceiling()
            return []

        parts = (self._buffer + text).split("\n")
        tail = parts.pop()
        self._buffer = tail
        self._buffer_bytes = len(tail.encode("utf-8"))

        lines: list[str] = []
        for part in parts:
            if part.endswith("\r"):
                part = part[:-1]
            if not part.strip():
                continue
            size = len(part.encode("utf-8"))
            if size > self._max_bytes:
                logger.warning(
                    "%s: line of %d bytes exceeds %d byte ceiling, dropping",
                    self._name,
                    size,
                    self._max_bytes,
                )
                self._dropped_bytes += size
                continue
            lines.append(part)

        self._enforce_ceiling()
        return lines

    def _enforce_ceiling(self) -> None:
        # A trailing \r may still turn out to be half of a CRLF terminator.
        limit = self._max_bytes + 1 if self._buffer.endswith("\r") else self._max_bytes
        if self._buffer_bytes <= limit:
            return
        logger.warning(
            "%s: unframed buffer exceeded %d bytes, dropping %d bytes",
            self._name,
            self._max_bytes,
            self._buffer_bytes,
        )
        self._dropped_bytes += self._buffer_bytes
        self._buffer = ""
        self._buffer_bytes = 0
        self._discarding = True
