"""Output recorder — append-only JSONL writer for delivered stream outputs."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import IO

from pydantic import TypeAdapter

from agentwire.engine.handlers import HandlerSet
from agentwire.engine.outputs import StreamOutput

_OUTPUT_ADAPTER: TypeAdapter[StreamOutput] = TypeAdapter(StreamOutput)


class OutputRecorder:
    """Records every output of a session to an append-only JSONL file.

    Thread-safe: all writes are serialized through a ``threading.Lock``.
    Crash-safe: the file is flushed after every output.
    """

    def __init__(self, records_dir: Path | None = None) -> None:
        self._lock = threading.Lock()
        self._seq = 0
        self._closed = False
        self._run_id = uuid.uuid4().hex[:12]

        if records_dir is None:
            records_dir = Path("recordings")
        records_dir.mkdir(parents=True, exist_ok=True)

        date_str = datetime.now(tz=UTC).strftime("%Y-%m-%d")
        self._path = records_dir / f"{date_str}_{self._run_id}.jsonl"
        self._fh: IO[str] | None = self._path.open("a", encoding="utf-8")

    @property
    def run_id(self) -> str:
        """Unique run identifier (12-char hex)."""
        return self._run_id

    @property
    def path(self) -> Path:
        return self._path

    @property
    def output_count(self) -> int:
        return self._seq

    def attach(self, handlers: HandlerSet) -> HandlerSet:
        """Record every output *handlers* delivers; closes after ``done``."""
        return handlers.add_listener(self._on_output)

    def _on_output(self, output: StreamOutput) -> None:
        self.record(output)
        if output.type == "done":
            self.close()

    def record(self, output: StreamOutput) -> None:
        """Stamp ``ts`` and ``seq`` on *output* and append it.

        Silently drops outputs after the recorder has been closed.
        """
        with self._lock:
            if self._closed or self._fh is None:
                return
            output.seq = self._seq
            output.ts = _iso_now()
            self._seq += 1
            self._fh.write(output.model_dump_json() + "\n")
            self._fh.flush()

    def close(self) -> None:
        """Close the file handle.  Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._fh is not None and not self._fh.closed:
                self._fh.close()


def read_recording(path: Path) -> Iterator[StreamOutput]:
    """Yield the outputs stored in a recording, skipping blank lines."""
    with path.open(encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if line:
                yield _OUTPUT_ADAPTER.validate_json(line)


def _iso_now() -> str:
    """Return the current UTC time as ISO 8601 with milliseconds."""
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
