"""Tests for incremental UTF-8 decoding and line framing."""

from __future__ import annotations

import logging

import pytest

from agentwire.engine.framing import LineFramer

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #

_SAMPLE = (
    '{"type":"content_block_delta","delta":{"text":"héllo 世界 🎉"}}\r\n'
    "\n"
    '{"type":"result","ok":true}\n'
    "plain line\r\n"
    "tail without newline"
).encode("utf-8")


def _frame_in_chunks(data: bytes, sizes: list[int], max_bytes: int = 1024) -> list[str]:
    framer = LineFramer(max_bytes=max_bytes)
    lines: list[str] = []
    pos = 0
    for size in sizes:
        lines.extend(framer.feed(data[pos : pos + size]))
        pos += size
    lines.extend(framer.feed(data[pos:]))
    lines.extend(framer.finish())
    return lines


def _one_shot(data: bytes, max_bytes: int = 1024) -> list[str]:
    framer = LineFramer(max_bytes=max_bytes)
    return framer.feed(data) + framer.finish()


# ------------------------------------------------------------------ #
# Chunk-split equivalence
# ------------------------------------------------------------------ #


class TestChunkSplitting:
    def test_one_shot_lines(self) -> None:
        assert _one_shot(_SAMPLE) == [
            '{"type":"content_block_delta","delta":{"text":"héllo 世界 🎉"}}',
            '{"type":"result","ok":true}',
            "plain line",
            "tail without newline",
        ]

    def test_every_two_way_split_matches_one_shot(self) -> None:
        expected = _one_shot(_SAMPLE)
        for cut in range(len(_SAMPLE) + 1):
            assert _frame_in_chunks(_SAMPLE, [cut]) == expected, f"split at {cut}"

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 64])
    def test_fixed_size_chunks_match_one_shot(self, size: int) -> None:
        expected = _one_shot(_SAMPLE)
        sizes = [size] * (len(_SAMPLE) // size)
        assert _frame_in_chunks(_SAMPLE, sizes) == expected

    def test_split_inside_multibyte_character(self) -> None:
        data = "a🎉b\n".encode()
        framer = LineFramer()
        # The emoji is 4 bytes starting at offset 1.
        assert framer.feed(data[:2]) == []
        assert framer.feed(data[2:4]) == []
        assert framer.feed(data[4:]) == ["a🎉b"]

    def test_split_between_cr_and_lf(self) -> None:
        framer = LineFramer()
        assert framer.feed(b"first\r") == []
        assert framer.feed(b"\nsecond\r\n") == ["first", "second"]

    def test_invalid_utf8_is_replaced(self) -> None:
        framer = LineFramer()
        assert framer.feed(b"bad \xff byte\n") == ["bad � byte"]


class TestFinish:
    def test_tail_is_flushed(self) -> None:
        framer = LineFramer()
        assert framer.feed(b'{"a":1}\nlo') == ['{"a":1}']
        assert framer.finish() == ["lo"]

    def test_trailing_cr_stripped_from_tail(self) -> None:
        framer = LineFramer()
        framer.feed(b"tail\r")
        assert framer.finish() == ["tail"]

    def test_whitespace_tail_dropped(self) -> None:
        framer = LineFramer()
        framer.feed(b"   ")
        assert framer.finish() == []

    def test_incomplete_multibyte_tail_decodes_as_replacement(self) -> None:
        framer = LineFramer()
        framer.feed("x🎉".encode()[:3])
        assert framer.finish() == ["x�"]

    def test_framer_reusable_after_finish(self) -> None:
        framer = LineFramer()
        framer.feed(b"one")
        framer.finish()
        assert framer.feed(b"two\n") == ["two"]


# ------------------------------------------------------------------ #
# Buffer ceiling
# ------------------------------------------------------------------ #


class TestCeiling:
    def test_buffer_never_exceeds_ceiling(self, caplog: pytest.LogCaptureFixture) -> None:
        framer = LineFramer(max_bytes=64)
        with caplog.at_level(logging.WARNING):
            for _ in range(100):
                assert framer.feed(b"x" * 10) == []
                assert framer.buffered_bytes <= 64
        assert framer.dropped_bytes > 0
        assert "exceeded 64 bytes" in caplog.text

    def test_framing_resumes_after_next_newline(self) -> None:
        framer = LineFramer(max_bytes=16)
        assert framer.feed(b"y" * 40) == []
        assert framer.feed(b"still the same line\n") == []
        assert framer.feed(b'{"ok":true}\n') == ['{"ok":true}']

    def test_resume_within_same_chunk(self) -> None:
        framer = LineFramer(max_bytes=16)
        framer.feed(b"z" * 40)
        assert framer.feed(b"zzz\nnext\n") == ["next"]

    def test_oversize_complete_line_dropped(self) -> None:
        framer = LineFramer(max_bytes=16)
        assert framer.feed(b"short\n" + b"w" * 20 + b"\nafter\n") == ["short", "after"]
        assert framer.dropped_bytes == 20

    def test_crlf_split_at_exact_ceiling(self) -> None:
        data = b"abcde\r\nX\n"
        assert _one_shot(data, max_bytes=5) == ["abcde", "X"]
        assert _frame_in_chunks(data, [6], max_bytes=5) == ["abcde", "X"]

    def test_cr_allowance_is_one_byte(self) -> None:
        data = b"abcdef\r\nX\n"
        assert _one_shot(data, max_bytes=5) == ["X"]
        assert _frame_in_chunks(data, [7], max_bytes=5) == ["X"]

    def test_discarded_tail_not_flushed(self) -> None:
        framer = LineFramer(max_bytes=8)
        framer.feed(b"0123456789abcdef")
        assert framer.finish() == []

    def test_default_ceiling_is_ten_mib(self) -> None:
        framer = LineFramer()
        framer.feed(b"q" * (10 * 1024 * 1024))
        assert framer.buffered_bytes == 10 * 1024 * 1024
        assert framer.dropped_bytes == 0
        framer.feed(b"q")
        assert framer.buffered_bytes == 0
        assert framer.dropped_bytes == 10 * 1024 * 1024 + 1
