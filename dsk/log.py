# (C) 2026 Rodrigo Rodrigues da Silva <rodrigo@flowlexi.com>
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import functools, inspect, json, logging, sys, threading, time
from datetime import datetime, timezone
from pathlib import Path
from typing import IO

# ops stream target: None (off), a std stream name, or an open file
_target: str | IO[str] | None = None
_lock = threading.Lock()

_STD_STREAMS = ("stdout", "stderr")


def _release() -> None:
    # caller holds _lock
    global _target
    handle, _target = _target, None
    if handle is not None and not isinstance(handle, str):
        handle.flush()
        handle.close()


def configure(dest: str | Path | None) -> None:
    """
    Route ops lines to ``dest``: None/'null' turns the stream off, 'stdout'
    and 'stderr' write to the process streams, anything else is a file
    opened for append. The CLI prints results on stdout, so 'stderr' keeps
    ops lines out of its output.
    """
    global _target
    name = str(dest).strip() if dest is not None else ""
    with _lock:
        _release()
        if name.lower() in ("", "null", "none"):
            return
        if name in _STD_STREAMS:
            _target = name
        else:
            _target = open(name, "a", encoding="utf-8", buffering=1)


def emit(**fields) -> None:
    """Write one JSON line; None-valued fields are left out."""
    if _target is None:
        return
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    record = {"ts": now.replace("+00:00", "Z")}
    record.update((k, v) for k, v in fields.items() if v is not None)
    line = json.dumps(record, separators=(",", ":"), default=str) + "\n"
    with _lock:
        if _target is None:
            return
        out = getattr(sys, _target) if isinstance(_target, str) else _target
        out.write(line)


def close() -> None:
    """Stop the ops stream, flushing and closing its file if any."""
    with _lock:
        _release()


# --------------- dev stream (stderr) ---------------

class _ColorFormatter(logging.Formatter):
    """
    Paints level name and message by severity (custom levels take the color
    of the nearest standard level below them); ``dsk.*`` logger names are
    bold. Only the rendered line is colored, never the record itself.
    """
    SEVERITY = (
        (logging.CRITICAL, "35"),
        (logging.ERROR, "31"),
        (logging.WARNING, "33"),
        (logging.INFO, "32"),
        (logging.DEBUG, "36"),
    )

    def __init__(self, fmt: str, datefmt: str, use_color: bool = True):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    @staticmethod
    def _paint(text: str, sgr: str) -> str:
        return f"\033[{sgr}m{text}\033[0m"

    def _sgr_for(self, levelno: int) -> str:
        return next((sgr for lvl, sgr in self.SEVERITY if levelno >= lvl), "0")

    def formatMessage(self, record: logging.LogRecord) -> str:
        if not self.use_color:
            return super().formatMessage(record)
        sgr = self._sgr_for(record.levelno)
        shown = logging.makeLogRecord(record.__dict__)
        shown.levelname = self._paint(record.levelname, sgr)
        shown.message = self._paint(record.message, sgr)
        if record.name.split(".", 1)[0] == "dsk":
            shown.name = self._paint(record.name, "1")
        return super().formatMessage(shown)


LOG = logging.getLogger("dsk")
LOG.addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Returns the library logger, or a child of it (``dsk.<name>``)."""
    return LOG.getChild(name) if name else LOG


def setup_logging(level: str | int | None = None) -> logging.Logger:
    """
    Attach a stderr handler to the ``dsk`` logger. Libraries should not touch
    logging on import, so this is only called by the CLI or by applications
    that want the colored dev output. Level comes from ``log.level`` when not
    given; ``httpx``/``httpcore`` are kept one level quieter.
    """
    if level is None:
        from dsk.config import get_cfg
        level = get_cfg().get("log.level", "INFO")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    for h in list(LOG.handlers):
        if not isinstance(h, logging.NullHandler):
            LOG.removeHandler(h)

    use_color = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_ColorFormatter(
        "%(asctime)s %(levelname)-5s %(name)s: %(message)s",
        "%H:%M:%S",
        use_color=use_color,
    ))
    LOG.addHandler(handler)
    LOG.setLevel(level)

    quiet = min(logging.CRITICAL, level + 10)
    for ns in ("httpx", "httpcore"):
        logging.getLogger(ns).setLevel(quiet)
    return LOG


# --------------- ops stream ---------------

def ops_event(op: str, *, doc_id: str | None = None):
    """
    Decorator for endpoint coroutines: times the call and emits one ops line
    with the normalized outcome (``status``, ``ok``) of the returned response.

    Parameters
    ----------
    op:
        Operation name emitted in the ``op`` field (e.g. ``"search"``).
    doc_id:
        Name of the argument holding the document id, emitted as ``doc_id``.
        ``None`` for operations that are not addressed by id.
    """
    def decorator(fn):
        sig = inspect.signature(fn)

        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            _id = None
            if doc_id:
                try:
                    _id = sig.bind_partial(*args, **kwargs).arguments.get(doc_id)
                except TypeError:
                    pass  # fn raises the real TypeError below
            _t0 = time.perf_counter()
            result = None
            try:
                result = await fn(*args, **kwargs)
                return result
            finally:
                emit(
                    op=op,
                    doc_id=_id,
                    status=getattr(result, "status", None),
                    ok=getattr(result, "ok", False),
                    latency_ms=round((time.perf_counter() - _t0) * 1000, 2),
                )
        return wrapper
    return decorator
