"""
Run reporting: the ordered event log of one provisioning run and the
count of non-fatal failures that decides the final summary.

Console output goes through the Nord-styled helpers in ``lemp_setup.ui``;
the run log file is written through the ``lemp_setup`` logger.
"""

import datetime
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from rich.logging import RichHandler

from lemp_setup.ui import (
    console,
    print_error,
    print_message,
    print_section,
    print_step,
    print_success,
    print_warning,
)

LOGGER_NAME = "lemp_setup"
LOG_HEADER = "=== LEMP STACK INSTALL LOG ============"
LOG_FOOTER = "=== FINISHED =========================="


class Severity(Enum):
    OK = "ok"
    INFO = "info"
    ADVISORY = "advisory"
    ERROR = "error"


@dataclass(frozen=True)
class ReportEvent:
    timestamp: datetime.datetime
    severity: Severity
    message: str


def setup_logger(log_file: Union[str, Path], verbose: bool = False) -> logging.Logger:
    """
    Set up the run logger. The log file is truncated and starts with a
    header and an RFC 3339 timestamp.
    """
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    started = datetime.datetime.now().astimezone().isoformat(sep=" ", timespec="seconds")
    log_file.write_text(f"{LOG_HEADER}\n{started}\n")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # Remove any existing handlers
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()

    if verbose:
        console_handler = RichHandler(console=console, rich_tracebacks=True)
        console_handler.setLevel(logging.DEBUG)
        logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file, mode="a")
    file_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    try:
        os.chmod(str(log_file), 0o600)
    except OSError as e:
        logger.warning(f"Could not set permissions on log file {log_file}: {e}")

    return logger


def close_logger(logger: logging.Logger, log_file: Union[str, Path]) -> None:
    """Detach file handlers and append the terminal marker line."""
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()
    with open(log_file, "a") as f:
        f.write(f"{LOG_FOOTER}\n")


class RunReport:
    """
    Append-only record of everything reported during a run.

    ``error_count`` only ever grows and always equals the number of
    ERROR events.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self._events: List[ReportEvent] = []
        self._error_count = 0

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def events(self) -> Tuple[ReportEvent, ...]:
        return tuple(self._events)

    def _record(self, severity: Severity, message: str) -> None:
        self._events.append(
            ReportEvent(datetime.datetime.now().astimezone(), severity, message)
        )

    def section(self, title: str) -> None:
        print_section(title)
        self.logger.info(f"--- {title} ---")

    def step(self, message: str) -> None:
        print_step(message)
        self.logger.info(message)
        self._record(Severity.INFO, message)

    def info(self, message: str) -> None:
        print_message(message)
        self.logger.info(message)
        self._record(Severity.INFO, message)

    def ok(self, message: str) -> None:
        print_success(message)
        self.logger.info(message)
        self._record(Severity.OK, message)

    def advisory(self, message: str) -> None:
        """A warning that does not require manual follow-up."""
        print_warning(message)
        self.logger.warning(message)
        self._record(Severity.ADVISORY, message)

    def error(self, message: str) -> None:
        """A non-fatal failure; counted towards the final status."""
        print_error(message)
        self.logger.error(message)
        self._record(Severity.ERROR, message)
        self._error_count += 1

    def messages(self, severity: Severity) -> List[str]:
        return [e.message for e in self._events if e.severity is severity]
