"""Shared helper functions for stderr handling."""

from __future__ import annotations

from agentwire.constants import STDERR_NOISE_MARKERS


def filter_stderr_noise(stderr_text: str) -> str:
    """Drop blank lines and known-benign startup lines from stderr."""
    lines = [
        line
        for line in stderr_text.split("\n")
        if line.strip() and not any(marker in line for marker in STDERR_NOISE_MARKERS)
    ]
    return "\n".join(lines).strip()


def format_stderr_preview(stderr_text: str, max_lines: int = 5) -> str:
    """Extract and format the last N non-empty lines from stderr output."""
    lines = [line for line in stderr_text.split("\n") if line.strip()]
    last = lines[-max_lines:] if len(lines) > max_lines else lines
    return "\n  ".join(last)
