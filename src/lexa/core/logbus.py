"""Fan-out log channel.

Bridges the stdlib ``logging`` tree under ``lexa`` to any number of
subscribers (log viewers, the HTTP ``/logs`` buffer, tests). Structured
detail travels in ``extra={"details": {...}}`` on the log call.
"""

import json
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

AI_PLAN = 21
SEARCH = 22

logging.addLevelName(AI_PLAN, "AI_PLAN")
logging.addLevelName(SEARCH, "SEARCH")


@dataclass
class LogEvent:
    """One structured event delivered to subscribers."""
    level: str
    message: str
    logger: str
    details: Optional[dict] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level,
            "logger": self.logger,
            "message": self.message,
            "details": self.details,
        }


Listener = Callable[[LogEvent], None]


def _serialize_error(value: Any) -> Any:
    if isinstance(value, BaseException):
        return {"name": type(value).__name__, "message": str(value)}
    return str(value)


def serialize_details(details: Any) -> Optional[dict]:
    """Make details JSON-safe, turning exceptions into {name, message}."""
    if details is None:
        return None
    if not isinstance(details, dict):
        details = {"value": details}
    return json.loads(json.dumps(details, default=_serialize_error))


class LogChannel:
    """Subscribable fan-out of log events."""

    def __init__(self):
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, event: LogEvent):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                # A broken viewer must not take the conversation down with it.
                logging.getLogger(__name__).debug(f"Log listener failed: {e}")


class ChannelHandler(logging.Handler):
    """logging.Handler that republishes records on a LogChannel."""

    def __init__(self, channel: LogChannel, level: int = logging.DEBUG):
        super().__init__(level)
        self.channel = channel

    def emit(self, record: logging.LogRecord):
        try:
            event = LogEvent(
                level=record.levelname,
                message=record.getMessage(),
                logger=record.name,
                details=serialize_details(getattr(record, "details", None)),
            )
        except Exception:
            self.handleError(record)
            return
        self.channel.publish(event)


class LogBuffer:
    """Bounded most-recent-first view of the channel, for the /logs endpoint."""

    def __init__(self, channel: LogChannel, max_events: int = 500):
        self._events: deque[LogEvent] = deque(maxlen=max_events)
        self.unsubscribe = channel.subscribe(self._events.append)

    def recent(self, limit: int = 100) -> list[LogEvent]:
        events = list(self._events)
        return events[-limit:] if limit > 0 else []

    def clear(self):
        self._events.clear()


log_channel = LogChannel()
_handler: Optional[ChannelHandler] = None


def install_log_channel(channel: LogChannel = log_channel) -> ChannelHandler:
    """Attach the channel handler to the ``lexa`` logger (idempotent)."""
    global _handler
    root = logging.getLogger("lexa")
    if _handler is None or _handler.channel is not channel:
        if _handler is not None:
            root.removeHandler(_handler)
        _handler = ChannelHandler(channel)
        root.addHandler(_handler)
    if root.level == logging.NOTSET or root.level > logging.DEBUG:
        root.setLevel(logging.DEBUG)
    return _handler


class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        details = getattr(record, "details", None)
        if details is not None:
            payload["details"] = serialize_details(details)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "INFO", format: str = "text"):
    """Configure console logging and install the log channel."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    if format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    handler.setLevel(log_level)
    logging.root.handlers = [handler]
    logging.root.setLevel(log_level)

    install_log_channel()
