"""
Structured JSONL events for credential bindings.

Each stage of a bind emits one event so a build log can show exactly which
artifacts were created and removed, without ever recording secret values.

Event types:
- BIND: a binding completed (or failed), with duration
- MATERIALIZE: key or passphrase file written
- RESOLVE: ssh executable located (Windows scripts only)
- SYNTHESIZE: wrapper or askpass script written
- RELEASE: transient directory deleted
- ERROR: a stage failed
"""
from __future__ import annotations

import json
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import IO, Any, Iterator


class EventType(str, Enum):
    """Binding event types."""
    BIND = "BIND"
    MATERIALIZE = "MATERIALIZE"
    RESOLVE = "RESOLVE"
    SYNTHESIZE = "SYNTHESIZE"
    RELEASE = "RELEASE"
    ERROR = "ERROR"


@dataclass
class Event:
    """A single binding event: type, Unix timestamp in ms, and data."""
    event_type: str
    timestamp: float = field(default_factory=lambda: time.time() * 1000)
    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        valid_types = {e.value for e in EventType}
        assert self.event_type in valid_types, \
            f"Invalid event_type '{self.event_type}'. Must be one of: {valid_types}"
        assert self.timestamp > 0, \
            f"Timestamp must be positive, got {self.timestamp}"

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        data = json.loads(json_str)
        return cls(
            event_type=data["event_type"],
            timestamp=data["timestamp"],
            data=data.get("data", {}),
        )


class EventCollector:
    """Collects events in memory, mainly for tests."""

    def __init__(self) -> None:
        self._events: list[Event] = []

    def emit(self, event: Event) -> None:
        assert isinstance(event, Event), f"Expected Event, got {type(event)}"
        self._events.append(event)

    @property
    def events(self) -> list[Event]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def get_by_type(self, event_type: str | EventType) -> list[Event]:
        if isinstance(event_type, EventType):
            event_type = event_type.value
        return [e for e in self._events if e.event_type == event_type]


class JSONLEventWriter:
    """Appends events to a JSONL file, one JSON object per line."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._file: IO[str] | None = None

    def open(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self._path, "a", encoding="utf-8")

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def emit(self, event: Event) -> None:
        assert self._file is not None, "Writer not opened. Call open() first."
        self._file.write(event.to_json() + "\n")
        self._file.flush()

    def __enter__(self) -> "JSONLEventWriter":
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class EventEmitter:
    """
    Dispatches binding events to an in-memory collector and/or a JSONL file.

    An emitter with no sinks is valid and simply drops events, so bindings
    can always emit without checking whether anyone is listening.
    """

    def __init__(
        self,
        collector: EventCollector | None = None,
        jsonl_path: Path | str | None = None,
    ) -> None:
        self._collector = collector
        self._jsonl_writer: JSONLEventWriter | None = None

        if jsonl_path:
            self._jsonl_writer = JSONLEventWriter(jsonl_path)
            self._jsonl_writer.open()

    def emit(self, event_type: str | EventType, **data: Any) -> Event:
        """
        Create and emit an event.

        Args:
            event_type: The type of event
            **data: Event-specific data (must not contain secrets)

        Returns:
            The created event
        """
        if isinstance(event_type, EventType):
            event_type = event_type.value

        event = Event(event_type=event_type, data=data)

        if self._collector:
            self._collector.emit(event)
        if self._jsonl_writer:
            self._jsonl_writer.emit(event)

        return event

    def emit_error(self, error: Exception, **data: Any) -> Event:
        """Emit an ERROR event describing a failed stage."""
        to_dict = getattr(error, "to_dict", None)
        if callable(to_dict):
            details = to_dict()
        else:
            details = {"error_type": type(error).__name__, "message": str(error)}
        return self.emit(EventType.ERROR, **details, **data)

    def close(self) -> None:
        if self._jsonl_writer:
            self._jsonl_writer.close()

    def __enter__(self) -> "EventEmitter":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @contextmanager
    def timed_event(
        self,
        event_type: str | EventType,
        **initial_data: Any,
    ) -> Iterator[dict[str, Any]]:
        """
        Context manager for timing an operation.

        Emits the event on exit with duration_ms added to data. If the body
        raises, "status" is set to "failed" unless the body already set it.

        Usage:
            with emitter.timed_event(EventType.BIND, credential_id=cid) as data:
                env = do_bind()
                data["variables"] = sorted(env.values)
        """
        start_ms = time.time() * 1000
        event_data = dict(initial_data)

        try:
            yield event_data
        except BaseException:
            event_data.setdefault("status", "failed")
            raise
        finally:
            event_data.setdefault("status", "ok")
            event_data["duration_ms"] = (time.time() * 1000) - start_ms
            self.emit(event_type, **event_data)


def read_jsonl_events(path: Path | str) -> list[Event]:
    """Read all events from a JSONL file."""
    path = Path(path)
    assert path.exists(), f"JSONL file not found: {path}"

    events = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                events.append(Event.from_json(line))

    return events
