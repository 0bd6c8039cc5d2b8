"""Structured telemetry for plugin invocations and network operations.

Two event families are emitted:

* ``plugin.invoke`` -- one per delegate exec, carrying the command, network,
  plugin type, interface, outcome and latency.
* ``network.<operation>`` -- one per facade ``setup``/``remove``/``check``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

PLUGIN_INVOKE = "plugin.invoke"
NETWORK_EVENT_PREFIX = "network."


def network_event_name(operation: str) -> str:
    return f"{NETWORK_EVENT_PREFIX}{operation}"


@dataclass
class TelemetryEvent:
    name: str
    attributes: dict[str, Any] = field(default_factory=dict)
    timestamp_ms: float = field(default_factory=lambda: time.time() * 1000)

    @property
    def ok(self) -> bool:
        return bool(self.attributes.get("ok", True))


@runtime_checkable
class TelemetrySink(Protocol):
    def emit(self, event: TelemetryEvent) -> None:
        """Record one event. Must not raise."""
        raise NotImplementedError


class NoOpTelemetrySink:
    """Default sink; drops every event."""

    def emit(self, event: TelemetryEvent) -> None:
        _ = event


class InMemoryTelemetrySink:
    """Keeps events in a list, for tests and ad-hoc inspection."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[TelemetryEvent] = []

    @property
    def events(self) -> list[TelemetryEvent]:
        with self._lock:
            return list(self._events)

    def emit(self, event: TelemetryEvent) -> None:
        with self._lock:
            self._events.append(event)

    def named(self, name: str) -> list[TelemetryEvent]:
        return [e for e in self.events if e.name == name]

    def failures(self) -> list[TelemetryEvent]:
        return [e for e in self.events if not e.ok]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class LoggerTelemetrySink:
    """Writes each event as a log record.

    Successful events go out at ``level``; events whose ``ok`` attribute is
    false go out at WARNING.  The raw attributes ride along in ``extra`` for
    structured handlers.
    """

    def __init__(
        self,
        logger_name: str = "cni_protocol.telemetry",
        level: int = logging.DEBUG,
    ) -> None:
        self.logger = logging.getLogger(logger_name)
        self.level = level

    def emit(self, event: TelemetryEvent) -> None:
        level = self.level if event.ok else logging.WARNING
        if not self.logger.isEnabledFor(level):
            return
        summary = " ".join(
            f"{key}={value}" for key, value in sorted(event.attributes.items())
        )
        self.logger.log(
            level,
            "%s %s",
            event.name,
            summary,
            extra={
                "event_name": event.name,
                "event_timestamp_ms": event.timestamp_ms,
                "event_attributes": event.attributes,
            },
        )
