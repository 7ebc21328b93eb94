"""Non-fatal diagnostic events surfaced to the presentation layer.

The builder and resolver recover from most failures locally. Each recovery
is reported here so a front end can show a non-blocking indicator, and so
tests can assert on what was skipped without scraping log output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from .io import utc_now

LOGGER = logging.getLogger(__name__)

__all__ = ["DiagnosticEvent", "DiagnosticsRecorder", "DiagnosticListener"]


@dataclass(frozen=True)
class DiagnosticEvent:
    """One recovered problem or advisory notice.

    Attributes:
        kind: Short machine-readable category (``topic_rejected``,
            ``tier_unavailable``, ``refresh_recommended``, ...).
        message: Human-readable summary.
        fields: Extra context such as the tier or document name.
        timestamp: When the event was recorded (UTC).
    """

    kind: str
    message: str
    fields: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "fields": dict(self.fields),
            "timestamp": self.timestamp.isoformat(),
        }


DiagnosticListener = Callable[[DiagnosticEvent], None]


class DiagnosticsRecorder:
    """Collect diagnostic events and fan them out to listeners."""

    def __init__(self, listeners: Optional[List[DiagnosticListener]] = None) -> None:
        self._events: List[DiagnosticEvent] = []
        self._listeners: List[DiagnosticListener] = list(listeners or [])

    def subscribe(self, listener: DiagnosticListener) -> None:
        self._listeners.append(listener)

    def emit(self, kind: str, message: str, **fields: Any) -> DiagnosticEvent:
        event = DiagnosticEvent(kind=kind, message=message, fields=fields)
        self._events.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pragma: no cover
                LOGGER.exception(
                    "diagnostic listener failed", extra={"stage": "diagnostics"}
                )
        return event

    @property
    def events(self) -> List[DiagnosticEvent]:
        return list(self._events)

    def of_kind(self, kind: str) -> List[DiagnosticEvent]:
        return [event for event in self._events if event.kind == kind]

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)
