"""Structured logging: console plus a JSON-lines event file."""

import contextvars
import json
import logging
import os
import sys
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from tracebook.core.config import config


def _format_duration(seconds: float) -> str:
    if seconds < 0:
        return "0s"
    if seconds >= 60:
        m = int(seconds // 60)
        s = seconds % 60
        if s < 0.05:
            return f"{m}m"
        return f"{m}m {s:.0f}s" if s >= 1 else f"{m}m {s:.1f}s"
    if seconds >= 0.05:
        return f"{seconds:.1f}s"
    if seconds > 0:
        return "<0.1s"
    return "0s"


def _short_reason(reason: str | None, max_len: int = 80) -> str:
    """One-line short reason for console (failed fetch)."""
    if not reason or not reason.strip():
        return ""
    s = reason.strip().replace("\n", " ").strip()
    return s[:max_len] + "..." if len(s) > max_len else s


# Set inside each fetch-pass task; asyncio copies the context per task.
_log_pass_id: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "log_pass_id", default=None
)


def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    try:
        return sys.stdout.isatty()
    except Exception:
        return False


def _c(role: str) -> str:
    if not _use_color():
        return ""
    # 38;5;N = foreground 256-color
    codes = {
        "dim": "\033[38;5;239m",
        "map": "\033[38;5;81m",  # cyan for collection names
        "ok": "\033[38;5;78m",
        "fail": "\033[38;5;203m",
        "duration": "\033[38;5;221m",
    }
    return codes.get(role, "")


def _reset() -> str:
    if not _use_color():
        return ""
    return "\033[0m"


@dataclass
class LogEvent:
    event_type: str
    timestamp: str
    data: dict[str, Any]

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class TracebookLogger:
    def __init__(self):
        self.log_file = config.logs_dir / "search.log"
        self._file_lock = threading.Lock()
        self._log_file_handle = None
        self._setup_console_logger()

    def _setup_console_logger(self):
        self.console = logging.getLogger("tracebook")
        self.console.setLevel(logging.DEBUG)
        self._console_formatter = logging.Formatter(
            "%(asctime)s │ %(message)s", datefmt="%H:%M:%S"
        )
        if not self.console.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.INFO)
            handler.setFormatter(self._console_formatter)
            self.console.addHandler(handler)

    def _file(self):
        if self._log_file_handle is None:
            config.logs_dir.mkdir(parents=True, exist_ok=True)
            self._log_file_handle = open(self.log_file, "a", encoding="utf-8")
        return self._log_file_handle

    def log_event(self, event: LogEvent) -> None:
        if not config.event_log_enabled:
            return
        try:
            with self._file_lock:
                handle = self._file()
                handle.write(event.to_json() + "\n")
                handle.flush()
        except OSError as e:
            # The event file is best-effort; console logging carries on.
            self.console.debug("Event log unavailable: %s", e)

    def _timestamp(self) -> str:
        return datetime.now().isoformat()

    def _prefix(self) -> str:
        pass_id = _log_pass_id.get()
        if pass_id is None:
            return ""
        return f"{_c('dim')}[pass {pass_id}]{_reset()} "

    def set_pass(self, pass_id: int | None) -> None:
        _log_pass_id.set(pass_id)

    def fetch_plan(self, pass_id: int, collection_ids: list[str], search_focused: bool):
        event = LogEvent(
            event_type="FETCH_PLAN",
            timestamp=self._timestamp(),
            data={
                "pass": pass_id,
                "collections": collection_ids,
                "search_focused": search_focused,
            },
        )
        self.log_event(event)
        self.console.info(
            f"{self._prefix()}Fetch plan: {len(collection_ids)} collection(s) "
            f"{collection_ids}{' (search focused)' if search_focused else ''}"
        )

    def fetch_result(
        self,
        collection_id: str,
        name: str,
        place_count: int,
        success: bool,
        *,
        duration_seconds: float,
        error_reason: str | None = None,
    ) -> None:
        data: dict[str, Any] = {
            "collection": collection_id,
            "name": name,
            "places": place_count,
            "success": success,
            "duration_seconds": round(duration_seconds, 3),
        }
        if not success and error_reason:
            data["error_reason"] = error_reason[:500]
        self.log_event(
            LogEvent(event_type="FETCH_RESULT", timestamp=self._timestamp(), data=data)
        )
        dur = f"{_c('duration')}{_format_duration(duration_seconds)}{_reset()}"
        label = f"{_c('map')}{name}{_reset()} ({collection_id})"
        if success:
            self.console.info(
                f"{self._prefix()}{_c('ok')}✓{_reset()} {label}  {place_count} places  {dur}"
            )
        else:
            self.console.warning(
                f"{self._prefix()}{_c('fail')}✗{_reset()} {label}  "
                f"failed: {_short_reason(error_reason)}  {dur}"
            )

    def fetch_pass_done(self, pass_id: int, report: dict[str, Any]) -> None:
        self.log_event(
            LogEvent(
                event_type="FETCH_PASS_DONE",
                timestamp=self._timestamp(),
                data={"pass": pass_id, **report},
            )
        )
        self.console.debug(f"{self._prefix()}Fetch pass done: {report}")

    def selection(self, state: str, place_id: str, collection_id: str, **extra: Any) -> None:
        """Record a pending-selection transition (PENDING, RESOLVED, ABANDONED)."""
        event = LogEvent(
            event_type=f"SELECTION_{state.upper()}",
            timestamp=self._timestamp(),
            data={"place": place_id, "collection": collection_id, **extra},
        )
        self.log_event(event)
        self.console.info(
            f"Selection {state.lower()}: place={place_id} map={collection_id}"
            + (f" {extra}" if extra else "")
        )

    def error(self, message: str, *args, exception: Exception | None = None, **kwargs):
        event = LogEvent(
            event_type="ERROR",
            timestamp=self._timestamp(),
            data={
                "message": message,
                "exception": str(exception) if exception else None,
            },
        )
        self.log_event(event)

        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        if exception and "exc_info" not in log_kwargs:
            log_kwargs["exc_info"] = exception

        self.console.error(f"{self._prefix()}Error: {message}", *args, **log_kwargs)

    def info(self, message: str, *args, **kwargs):
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.info(f"{self._prefix()}{message}", *args, **log_kwargs)

    def warning(self, message: str, *args, **kwargs):
        event = LogEvent(
            event_type="WARNING",
            timestamp=self._timestamp(),
            data={"message": message[:500]},
        )
        self.log_event(event)

        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.warning(f"{self._prefix()}{message}", *args, **log_kwargs)

    def debug(self, message: str, *args, **kwargs):
        event = LogEvent(
            event_type="DEBUG", timestamp=self._timestamp(), data={"message": message}
        )
        self.log_event(event)

        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.debug(f"{self._prefix()}{message}", *args, **log_kwargs)

    def close(self) -> None:
        with self._file_lock:
            if self._log_file_handle is not None:
                self._log_file_handle.close()
                self._log_file_handle = None


logger = TracebookLogger()
