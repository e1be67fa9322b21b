"""Write-once session id resolution from structured and textual signals."""

from __future__ import annotations

import logging
import re
from typing import Literal

logger = logging.getLogger(__name__)

#: Textual session id patterns, tried in order.  Best effort only.
_SESSION_PATTERNS = (
    re.compile(r"Session:\s*([a-f0-9][a-f0-9-]{3,})\b", re.IGNORECASE),
    re.compile(r"session[_\s]*id\b[:=\s]*([a-f0-9][a-f0-9-]{3,})\b", re.IGNORECASE),
    re.compile(r"Resuming session\s+([a-f0-9][a-f0-9-]{3,})\b", re.IGNORECASE),
)

SessionSource = Literal["structured", "text"]


def extract_session_id(text: str) -> str | None:
    """Return the first session id found in free-form *text*, if any."""
    for pattern in _SESSION_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


class SessionResolver:
    """Holds the agent's session id once it is known.

    The structured ``session_id`` field is authoritative: the first one
    seen resolves the id and later values are ignored.  Ids found by the
    textual patterns in stderr or non-JSON stdout are only candidates.
    The first candidate is kept until ``settle`` runs at the end of the
    invocation, and it resolves only if no structured id arrived by then.

    *fallback* is the id the invocation resumed from; it is reported by
    ``best_known`` until something resolves but never counts as resolved.
    """

    def __init__(self, fallback: str | None = None) -> None:
        self._fallback = fallback
        self._value: str | None = None
        self._source: SessionSource | None = None
        self._candidate: str | None = None

    @property
    def resolved(self) -> str | None:
        return self._value

    @property
    def source(self) -> SessionSource | None:
        return self._source

    @property
    def candidate(self) -> str | None:
        """Pending textual match, if any."""
        return self._candidate

    @property
    def best_known(self) -> str | None:
        """Resolved id, else the pending candidate, else the resume id."""
        for value in (self._value, self._candidate, self._fallback):
            if value is not None:
                return value
        return None

    def offer(self, value: str) -> bool:
        """Record a structured *value* if no id has been resolved yet.

        Returns True only for the call that resolved the id.
        """
        if self._value is not None or not value:
            return False
        self._value = value
        self._source = "structured"
        logger.info("resolved session id %s (structured)", value)
        return True

    def scan(self, text: str) -> str | None:
        """Return the id found in *text*, keeping the first as a candidate."""
        found = extract_session_id(text)
        if found is not None and self._value is None and self._candidate is None:
            logger.debug("session id candidate %s from text", found)
            self._candidate = found
        return found

    def settle(self) -> str | None:
        """Promote the candidate when nothing structured arrived.

        Returns the id it resolved, or None when there was nothing to do.
        """
        if self._value is not None or self._candidate is None:
            return None
        self._value = self._candidate
        self._source = "text"
        logger.info("resolved session id %s (text)", self._value)
        return self._value
