# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Logging interface for storepkgtool.

This module provides a configurable logging interface that library modules
can use for output without depending on the CLI. The logger can be configured
globally or passed explicitly (usually through a BuildContext).

The logger supports four output levels:
- Step: Always printed (for progress indicators)
- Warning: Always printed, to stderr (conditions downgraded from errors)
- Verbose: Only printed when verbose mode is enabled
- Debug: Only printed when debug mode is enabled (implies verbose)

Example:
    Configure global logger:
        ```python
        from storepkgtool.logging import get_logger, set_global_logger

        logger = get_logger(verbose=True, debug=False)
        set_global_logger(logger)
        ```

    Use in library code:
        ```python
        from storepkgtool.logging import get_global_logger

        logger = get_global_logger()
        logger.step(1, 4, "Reading packages...")
        logger.verbose("MEDIA", "Staged Assets/en-us/shot.png")
        logger.warning("PACKAGE", "Could not determine target platform")
        ```

Note:
    The default logger is silent, so library functions won't print anything
    unless explicitly configured. The CLI configures the global logger when
    commands are executed.
"""

from __future__ import annotations

import sys
from typing import Protocol, TextIO


class Logger(Protocol):
    """Protocol for logger implementations."""

    def step(self, step: int, total: int, message: str) -> None:
        """Print a step indicator.

        Args:
            step: Current step number (1-based).
            total: Total number of steps.
            message: Step description.
        """
        ...

    def verbose(self, prefix: str, message: str) -> None:
        """Print a verbose log message.

        Args:
            prefix: Message prefix (e.g., "MEDIA", "PDP").
            message: Log message.
        """
        ...

    def debug(self, prefix: str, message: str) -> None:
        """Print a debug log message.

        Args:
            prefix: Message prefix (e.g., "PACKAGE", "API").
            message: Log message.
        """
        ...

    def warning(self, prefix: str, message: str) -> None:
        """Print a warning message.

        Args:
            prefix: Message prefix (e.g., "RETENTION").
            message: Log message.
        """
        ...


class DefaultLogger:
    """Console logger used by the CLI.

    Steps and verbose/debug lines go to ``out``; warnings go to ``err``
    (stderr by default).
    """

    def __init__(
        self,
        verbose: bool = False,
        debug: bool = False,
        *,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self._verbose = verbose or debug
        self._debug = debug
        self._out = out
        self._err = err

    def _write(self, stream: TextIO | None, line: str) -> None:
        print(line, file=stream if stream is not None else sys.stdout)

    def step(self, step: int, total: int, message: str) -> None:
        self._write(self._out, f"[{step}/{total}] {message}")

    def verbose(self, prefix: str, message: str) -> None:
        if self._verbose:
            self._write(self._out, f"[{prefix}] {message}")

    def debug(self, prefix: str, message: str) -> None:
        if self._debug:
            self._write(self._out, f"[{prefix}] {message}")

    def warning(self, prefix: str, message: str) -> None:
        self._write(self._err or sys.stderr, f"[WARNING] [{prefix}] {message}")


class SilentLogger:
    """Logger that discards everything (library default, tests)."""

    def step(self, step: int, total: int, message: str) -> None:
        pass

    def verbose(self, prefix: str, message: str) -> None:
        pass

    def debug(self, prefix: str, message: str) -> None:
        pass

    def warning(self, prefix: str, message: str) -> None:
        pass


_global_logger: Logger = SilentLogger()


def get_logger(verbose: bool = False, debug: bool = False) -> Logger:
    """Return a console logger for the given CLI flags."""
    return DefaultLogger(verbose=verbose, debug=debug)


def get_global_logger() -> Logger:
    """Return the process-wide logger (silent until the CLI installs one)."""
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Install the process-wide logger.

    Code that has a BuildContext should log through ``context.logger``
    instead; the global logger is for callers without one.
    """
    global _global_logger
    _global_logger = logger
