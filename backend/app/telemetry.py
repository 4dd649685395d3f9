from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import structlog

TELEMETRY_LOGGER_NAME = "tubelist.telemetry"
REDACTED = "[redacted]"
# Attribute keys containing any of these fragments are replaced by REDACTED.
_SENSITIVE_KEY_FRAGMENTS: tuple[str, ...] = (
    "api_key",
    "authorization",
    "cookie",
    "description",
    "payload",
    "query",
    "secret",
    "token",
)
_MAX_STRING_LENGTH = 160

TelemetryValue = bool | int | float | str | None


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    """Writes each event as one `telemetry` record on the telemetry logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(TELEMETRY_LOGGER_NAME)

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **dict(attributes))


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if self.enabled:
            self.sink.emit(event_name=event_name, attributes=_scrub(attributes))


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if enabled and sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())
    return TelemetryClient.disabled()


def _scrub(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    scrubbed: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if any(fragment in key for fragment in _SENSITIVE_KEY_FRAGMENTS):
            scrubbed[key] = REDACTED
        else:
            scrubbed[key] = _scrub_value(raw_value)
    return scrubbed


def _scrub_value(value: Any) -> TelemetryValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        compact = " ".join(value.split())
        if len(compact) > _MAX_STRING_LENGTH:
            return f"{compact[:_MAX_STRING_LENGTH]}..."
        return compact
    # Channel/video ID collections are reported by size only.
    if isinstance(value, list | tuple | set | frozenset):
        return len(value)
    return type(value).__name__
