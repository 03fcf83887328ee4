# src/config/logging_config.py

"""Per-run logging for pagewatch.

Every CLI invocation writes a ``logs/run_YYYYmmdd_HHMMSS.log`` file that
captures all ``pagewatch.*`` records at DEBUG, so a page check that went
wrong in an unattended ``check-all`` can be replayed step by step:
fetch, extraction, diff, analysis, alert and store.

The console only shows what an operator needs to act on (WARNING+ by
default, INFO+ with ``--verbose`` or ``PAGEWATCH_LOG_LEVEL``). Scheduled
runs would otherwise fill ``logs/`` with one file per invocation, so only
the newest :attr:`Settings.LOG_RETENTION` run logs are kept.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

# Reusable format strings --------------------------------------------------

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_RUN_LOG_GLOB = "run_*.log"


def _resolve_level(level: int | str | None) -> int:
    """Map a level name or number to a logging level (WARNING if unknown)."""
    if level is None:
        level = Settings.CONSOLE_LOG_LEVEL
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.WARNING


def prune_run_logs(logs_dir: Path, keep: int) -> int:
    """Delete all but the *keep* newest run logs in *logs_dir*.

    Run log names sort chronologically. Returns the number removed.
    """
    if keep < 1:
        raise ValueError("keep must be >= 1")
    run_logs = sorted(logs_dir.glob(_RUN_LOG_GLOB), reverse=True)
    stale = run_logs[keep:]
    for path in stale:
        path.unlink(missing_ok=True)
    return len(stale)


def setup_logging(
    logs_dir: Path | None = None,
    console_level: int | str | None = None,
) -> Path:
    """Attach the run log and console handlers to the ``pagewatch`` logger.

    Args:
        logs_dir: Directory for run logs. Defaults to
            :attr:`Settings.LOGS_DIR`.
        console_level: Threshold for stderr output. Defaults to
            :attr:`Settings.CONSOLE_LOG_LEVEL`.

    Returns:
        The :class:`~pathlib.Path` to the log file created for this run.
    """
    target_dir: Path = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = target_dir / f"run_{timestamp}.log"

    root_logger = logging.getLogger("pagewatch")
    root_logger.setLevel(logging.DEBUG)

    # Repeated calls (tests, embedding) keep the first run's handlers
    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(_resolve_level(console_level))
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    removed = prune_run_logs(target_dir, Settings.LOG_RETENTION)
    root_logger.info("Logging initialised, log file: %s", log_file)
    if removed:
        root_logger.debug("Removed %d old run log(s)", removed)

    return log_file
