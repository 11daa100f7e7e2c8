"""
Collector for user-visible, non-fatal failures.

Bulk operations such as publishing a collection must not abort on the first
bad object. They record what went wrong here and carry on; the host decides
how to present the collected messages.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

__all__ = ["Message", "MessageCollector", "SEVERITY_WARNING", "SEVERITY_ERROR"]

logger = logging.getLogger(__name__)

SEVERITY_WARNING = "warning"
SEVERITY_ERROR = "error"


@dataclass(frozen=True)
class Message:
    """One recorded message."""
    text: str
    severity: str = SEVERITY_ERROR
    code: int = 0


class MessageCollector:
    """Accumulates messages and mirrors each one to the log."""

    def __init__(self) -> None:
        self._messages: List[Message] = []

    def append(self, text: str, severity: str = SEVERITY_ERROR, code: int = 0) -> None:
        if severity not in (SEVERITY_WARNING, SEVERITY_ERROR):
            raise ValueError(f"Unknown severity: {severity}")
        self._messages.append(Message(text=text, severity=severity, code=code))
        if severity == SEVERITY_ERROR:
            logger.error(f"{text} ({code})")
        else:
            logger.warning(f"{text} ({code})")

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def has_errors(self) -> bool:
        return any(m.severity == SEVERITY_ERROR for m in self._messages)

    def flush(self) -> List[Message]:
        """Return all messages and forget them."""
        messages, self._messages = self._messages, []
        return messages

    def __len__(self) -> int:
        return len(self._messages)
