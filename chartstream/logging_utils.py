"""chartstream.logging_utils – project-wide logging helpers.

1.  A custom **TRACE** level (numeric value 5) used for per-event chatter
    (every tick folded into a bucket, every snapshot handed to a sink).
2.  :func:`configure_logging` installs three handlers on the root logger:
    • Console – :class:`rich.logging.RichHandler`.
    • Timestamped human-readable file ``logs/chartstream-YYYYMMDD-HHMMSS.log``.
    • :class:`JsonLinesHandler` writing structured records to the matching
      ``.jsonl`` file.
3.  :func:`trace` decorator logging function entry/exit at TRACE level.

Every record carries a *code_path* attribute; callers may also pass a
``session`` extra so lines from concurrent chart sessions can be told apart.
"""

from __future__ import annotations

import functools
import json
import logging
import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Tuple, TypeVar

from rich.logging import RichHandler

__all__ = [
    "TRACE_LEVEL",
    "JsonLinesHandler",
    "configure_logging",
    "trace",
]

TRACE_LEVEL = 5

LOG_PREFIX = "chartstream"
LOG_ENV_VAR = "CHARTSTREAM_LOG_LEVEL"

if logging.getLevelName(TRACE_LEVEL) != "TRACE":
    logging.addLevelName(TRACE_LEVEL, "TRACE")


def _trace(self: logging.Logger, msg: str, *args: Any, **kwargs: Any) -> None:
    """`Logger.trace(msg, *args, **kwargs)` convenience method."""

    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, msg, args, **kwargs)  # type: ignore[attr-defined]


if not hasattr(logging.Logger, "trace"):
    logging.Logger.trace = _trace  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Filters / handlers
# ---------------------------------------------------------------------------


class _EnsureCodePathFilter(logging.Filter):
    """Guarantee that *record.code_path* exists."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 – logging callback
        if not hasattr(record, "code_path"):
            record.code_path = f"{record.module}.{record.funcName}"  # type: ignore[attr-defined]
        return True


class JsonLinesHandler(logging.Handler):
    """Write one JSON object per line."""

    def __init__(self, file_path: Path) -> None:
        super().__init__(level=logging.NOTSET)
        self._fp = open(file_path, "a", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401 – logging callback
        try:
            log_obj: Dict[str, Any] = {
                "ts_epoch": record.created,
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "code_path": getattr(record, "code_path", record.pathname),
            }
            session = getattr(record, "session", None)
            if session is not None:
                log_obj["session"] = session
            if record.exc_info:
                exc_type, exc_value, tb = record.exc_info
                log_obj["exc_type"] = exc_type.__name__ if exc_type else None
                log_obj["exc_msg"] = str(exc_value) if exc_value else None
                log_obj["exc_trace"] = "".join(
                    traceback.format_exception(exc_type, exc_value, tb)
                ).rstrip()

            self._fp.write(json.dumps(log_obj, separators=(",", ":"), ensure_ascii=False) + "\n")
            self._fp.flush()
        except Exception:  # noqa: BLE001 – must not propagate
            self.handleError(record)

    def close(self) -> None:  # noqa: D401 – logging callback
        try:
            self._fp.close()
        finally:
            super().close()


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


def _make_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


def _purge_old_logs(log_dir: Path, keep: int = 10) -> None:
    """Keep only the latest *keep* pairs of .log + .jsonl files."""

    files = sorted(
        log_dir.glob(f"{LOG_PREFIX}-*.log"), key=lambda p: p.stat().st_mtime, reverse=True
    )
    for stale in files[keep:]:
        stale.unlink(missing_ok=True)
        stale.with_suffix(".jsonl").unlink(missing_ok=True)


def _update_symlink(link: Path, target: Path) -> None:
    try:
        if link.exists() or link.is_symlink():
            link.unlink()
        link.symlink_to(target.name)
    except OSError:
        # Filesystems without symlink support get no *latest* alias.
        pass


def _root_level(debug: bool) -> int:
    env_level = os.getenv(LOG_ENV_VAR, "").upper()
    if env_level == "TRACE":
        return TRACE_LEVEL
    if env_level and isinstance(logging.getLevelName(env_level), int):
        return logging.getLevelName(env_level)
    return logging.DEBUG if debug else logging.INFO


def configure_logging(
    *,
    debug: bool = False,
    debug_module: str | None = None,
    log_dir: Path | str = "logs",
) -> Tuple[Path, Path]:
    """Set up project-wide logging.

    Returns
    -------
    tuple(Path, Path)
        Paths to the newly created ``.log`` and ``.jsonl`` files.
    """

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    ts = _make_timestamp()
    log_path = log_dir / f"{LOG_PREFIX}-{ts}.log"
    json_path = log_dir / f"{LOG_PREFIX}-{ts}.jsonl"

    _purge_old_logs(log_dir)

    root_level = _root_level(debug)

    console_handler = RichHandler(
        level=root_level,
        rich_tracebacks=False,
        omit_repeated_times=False,
    )

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d - %(message)s"
        )
    )

    json_handler = JsonLinesHandler(json_path)

    _update_symlink(log_dir / "latest.log", log_path)
    _update_symlink(log_dir / "latest.jsonl", json_path)

    root_logger = logging.getLogger()
    for h in list(root_logger.handlers):
        h.close()
    root_logger.handlers.clear()
    root_logger.setLevel(root_level)

    for h in (console_handler, file_handler, json_handler):
        h.addFilter(_EnsureCodePathFilter())
        root_logger.addHandler(h)

    if debug_module:
        logging.getLogger(debug_module).setLevel(TRACE_LEVEL)

    return log_path, json_path


# ---------------------------------------------------------------------------
# @trace decorator
# ---------------------------------------------------------------------------


F = TypeVar("F", bound=Callable[..., Any])


def trace(func: F) -> F:
    """Decorator that logs function entry / exit at *TRACE* level."""

    logger = logging.getLogger(func.__module__)
    code_path = f"{func.__module__}.{func.__qualname__}"

    @functools.wraps(func)
    def _wrapper(*args: Any, **kwargs: Any) -> Any:
        logger.log(TRACE_LEVEL, f"→ {func.__qualname__}()", extra={"code_path": code_path})
        try:
            return func(*args, **kwargs)
        finally:
            logger.log(TRACE_LEVEL, f"← {func.__qualname__}()", extra={"code_path": code_path})

    return _wrapper  # type: ignore[return-value]
