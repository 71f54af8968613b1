"""
Structured logging for the review service.

structlog renders every event (colored console in debug, JSON otherwise)
to stderr and to one log file per process run under settings.log_dir.
Context is carried in contextvars at two levels:

- request: request_id and user_id, bound by the HTTP middleware
- review: session_id, user_id and review_type, bound by the workflow
  service for the duration of one operation
"""

import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

import structlog
from structlog.typing import Processor

from gtd_review.core.config import Settings, settings as default_settings

RUN_LOG_PREFIX = "review_"


def run_log_files(log_dir: Path) -> List[Path]:
    """Run log files in log_dir, newest first."""
    return sorted(
        log_dir.glob(f"{RUN_LOG_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )


def _open_run_log(log_dir: Path, runs_to_keep: int) -> Path:
    """Prune old run logs and return the path for this run's log."""
    log_dir.mkdir(parents=True, exist_ok=True)
    for stale in run_log_files(log_dir)[runs_to_keep - 1 :]:
        stale.unlink(missing_ok=True)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return log_dir / f"{RUN_LOG_PREFIX}{stamp}_{os.getpid()}.log"


def configure_logging(config: Optional[Settings] = None) -> Path:
    """
    Configure structlog and the stdlib root logger.

    Safe to call again (tests, reloads): existing root handlers are
    replaced, never duplicated.

    Args:
        config: Settings providing log_dir, log_runs_to_keep, log_level
            and debug (defaults to the global settings)

    Returns:
        Path of the log file opened for this run
    """
    config = config or default_settings
    level = logging.getLevelName(config.log_level)
    log_file = _open_run_log(config.log_dir, config.log_runs_to_keep)

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.ExtraAdder(),
    ]
    if config.debug:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    root.setLevel(level)

    for handler in (logging.StreamHandler(), logging.FileHandler(log_file, mode="w")):
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return log_file


def bind_request(request_id: str, user_id: Optional[str] = None) -> None:
    """Bind request-scoped context; pair with clear_request()."""
    fields = {"request_id": request_id}
    if user_id:
        fields["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**fields)


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def review_context(
    session_id: Optional[str] = None,
    user_id: Optional[str] = None,
    review_type: Optional[str] = None,
) -> Iterator[None]:
    """
    Tag every event logged inside the block with the review it concerns.

    Only the given fields are bound, and they are restored on exit so an
    outer request context survives.

    Example:
        with review_context(session_id=session.id):
            log.info("review_step_completed", step_id=step_id)
    """
    fields = {
        key: value
        for key, value in (
            ("session_id", session_id),
            ("user_id", user_id),
            ("review_type", review_type),
        )
        if value is not None
    }
    with structlog.contextvars.bound_contextvars(**fields):
        yield
