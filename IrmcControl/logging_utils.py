# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Logging for host reconciliation runs.

All loggers created by setup_logging() write one file per module into a
single run directory. Each logger also carries an ErrorCollectorHandler: a
reconciler that runs a locked operation inside collect_errors() gets back
every ERROR line logged on its thread during that operation, and attaches
them to the error it raises.

Usage:
    >>> set_log_directory("/tmp/irmc_logs")
    >>> logger = setup_logging("host_reconciler", console_output=True)
    >>> with collect_errors() as logged_errors:
    ...     reconciler.reconcile_boot_order(["C", "A", "B"])
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List

from rich.console import Console
from rich.logging import RichHandler

# urllib3 retries are noisy at INFO
logging.getLogger("urllib3").setLevel(logging.WARNING)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class _RunLogState:
    """Log directory of the current run plus the per-thread error collectors."""

    def __init__(self):
        self.lock = threading.Lock()
        self.custom_dir = None
        self.run_dir = None
        self.collectors = threading.local()

    def active_collectors(self) -> List[List[str]]:
        if not hasattr(self.collectors, "stack"):
            self.collectors.stack = []
        return self.collectors.stack


_state = _RunLogState()


class ErrorCollectorHandler(logging.Handler):
    """Copies ERROR messages into every collect_errors() block open on the emitting thread."""

    def __init__(self):
        super().__init__(level=logging.ERROR)

    def emit(self, record):
        active = _state.active_collectors()
        if not active:
            return
        message = record.getMessage()
        for collected in active:
            collected.append(message)


@contextmanager
def collect_errors() -> Iterator[List[str]]:
    """
    Collect ERROR messages logged on this thread while the block runs.

    Blocks may nest; an outer block also receives the messages of inner ones.

    Yields:
        List[str]: Messages collected so far, filled in as they are logged
    """
    collected: List[str] = []
    active = _state.active_collectors()
    active.append(collected)
    try:
        yield collected
    finally:
        active.remove(collected)


def attach_error_collector(logger: logging.Logger) -> logging.Logger:
    """Add an ErrorCollectorHandler to logger unless it already has one."""
    with _state.lock:
        if not any(isinstance(handler, ErrorCollectorHandler) for handler in logger.handlers):
            logger.addHandler(ErrorCollectorHandler())
    return logger


def set_log_directory(log_dir_path: str) -> None:
    """
    Use log_dir_path as the run directory instead of a timestamped one.
    Call before the first logger is set up.
    """
    with _state.lock:
        _state.custom_dir = Path(log_dir_path)
        _state.run_dir = None


def get_log_directory() -> Path:
    """
    Return the run directory, creating it on first use.

    Defaults to logs/logs_<YYYYmmdd_HHMMSS> when no directory was set.
    """
    with _state.lock:
        if _state.run_dir is None:
            if _state.custom_dir is not None:
                _state.run_dir = _state.custom_dir
            else:
                _state.run_dir = Path("logs") / f"logs_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
            _state.run_dir.mkdir(parents=True, exist_ok=True)
        return _state.run_dir


def _console_handler() -> RichHandler:
    handler = RichHandler(
        console=Console(width=200),
        rich_tracebacks=True,
        show_path=False,
        omit_repeated_times=False,
        log_time_format="[%X]",
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))
    return handler


def setup_logging(module_name: str, console_output: bool = False) -> logging.Logger:
    """
    Create the logger for module_name, writing to <run dir>/<module_name>.log.

    Handlers are attached once per logger name, so reconcilers of several
    controllers in one process share the file.

    Args:
        module_name (str): Logger and log file name (e.g. 'host_reconciler')
        console_output (bool): Also log to the console through rich

    Returns:
        logging.Logger: Configured logger
    """
    log_file = get_log_directory() / f"{module_name}.log"
    logger = logging.getLogger(module_name)

    with _state.lock:
        if not any(isinstance(handler, logging.FileHandler) for handler in logger.handlers):
            logger.setLevel(logging.INFO)
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.INFO)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)
            if console_output:
                logger.addHandler(_console_handler())
            logger.propagate = False

    return attach_error_collector(logger)
