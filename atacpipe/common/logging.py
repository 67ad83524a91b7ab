#
# Copyright (c) 2023 Mikkel Schubert <MikkelSch@gmail.com>
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
#
"""Logging to the terminal and to per-run log files in the logs/ folder.

Log records may carry a 'status' via `extra`, which is printed in brackets
ahead of the message; the pipeline uses this for task progress ('3/17').
"""

from __future__ import annotations

import copy
import itertools
import logging
import os
import sys
import time
from io import TextIOWrapper
from typing import Iterator

import coloredlogs
from humanfriendly.terminal import ansi_wrap, terminal_supports_colors

from atacpipe.common.argparse import ArgumentParser

_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(status)s%(message)s"
_FILE_FORMAT = "%(asctime)s %(name)s %(levelname)s %(status)s%(message)s"


class Status:
    """Value for the 'status' field of a log record."""

    def __init__(self, color: str | None = None) -> None:
        self.color = color

    def __str__(self) -> str:
        raise NotImplementedError


class BasicFormatter(coloredlogs.ColoredFormatter):
    """Prefixes every line of a (multi-line) message with timestamp, level and
    status, so that tool output quoted in errors lines up in the log."""

    def format(self, record: logging.LogRecord) -> str:
        record = copy.copy(record)
        record.status = self._format_status(getattr(record, "status", None))

        message = record.getMessage()
        if "\n" not in message:
            return super().format(record)

        record.args = ()
        lines: list[str] = []
        for line in message.split("\n"):
            record.msg = line
            lines.append(super().format(record))

        return "\n".join(lines)

    def _format_status(self, status: object) -> str:
        return "" if status is None else f"[{status}] "


class ColoredStatusFormatter(BasicFormatter):
    def _format_status(self, status: object) -> str:
        if isinstance(status, Status) and status.color:
            return f"[{ansi_wrap(str(status), color=status.color)}] "

        return super()._format_status(status)


def initialize_console_logging(
    log_level: str = "info",
    log_color: str = "never",
) -> None:
    """Logs to STDERR at 'log_level', reusing an existing STDERR handler."""
    root = logging.getLogger()
    root.setLevel(coloredlogs.level_to_number(log_level))

    handler = next(
        (
            it
            for it in root.handlers
            if isinstance(it, logging.StreamHandler) and it.stream is sys.stderr
        ),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler()
        root.addHandler(handler)

    formatter = ColoredStatusFormatter if _use_colors(log_color) else BasicFormatter
    handler.setFormatter(formatter(fmt=_CONSOLE_FORMAT))


def initialize_file_logging(
    *,
    log_level: str = "info",
    log_file: str | None = None,
    auto_log_file: str | None = "atacpipe",
) -> None:
    """Logs to 'log_file' at 'log_level' if set. Otherwise errors are written to
    a file named '{auto_log_file}.{timestamp}_{nn}.log', which is only created if
    an error is actually logged. Console logging is set up separately."""
    handler: logging.FileHandler
    if log_file:
        logging.getLogger(__name__).info("Writing %s log to %r", log_level, log_file)
        handler = logging.FileHandler(log_file)
        handler.setLevel(coloredlogs.level_to_number(log_level))
    elif auto_log_file:
        timestamp = time.strftime("%Y%m%d_%H%M%S")
        handler = LazyLogfile(f"{auto_log_file}.{timestamp}_%02i.log", logging.ERROR)
        handler.setLevel(logging.ERROR)
    else:
        return

    handler.setFormatter(BasicFormatter(_FILE_FORMAT))
    logging.getLogger().addHandler(handler)


def add_argument_group(parser: ArgumentParser) -> None:
    """Adds --log-file, --log-level and --log-color options to 'parser'."""
    group = parser.add_argument_group("Logging")
    group.add_argument(
        "--log-file",
        default=None,
        help="Write log-messages to this file. By default only errors are logged "
        "to file, in an automatically named log file in the logs/ folder",
    )
    group.add_argument(
        "--log-level",
        default="info",
        choices=("debug", "info", "warning", "error"),
        type=str.lower,
        help="Minimum level of messages written to the terminal and to --log-file",
    )
    group.add_argument(
        "--log-color",
        default="auto",
        choices=("auto", "always", "never"),
        type=str.lower,
        help="Use colors when logging to STDERR; 'auto' enables colors when "
        "writing to a terminal that supports them, unless NO_COLOR is set",
    )


def get_logfiles() -> Iterator[str]:
    """Yields the names of log files that have been opened."""
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.FileHandler) and handler.stream:
            yield handler.baseFilename


class LazyLogfile(logging.FileHandler):
    """File handler that opens its file on the first record. The file name is
    generated from 'template' using the lowest counter that does not overwrite
    an existing log."""

    def __init__(self, template: str, log_level: int) -> None:
        super().__init__(template, delay=True)
        self._template = self.baseFilename
        self._log_level = log_level

    def emit(self, record: logging.LogRecord) -> None:
        # Skip the message logged from _open below
        if record.name != __name__:
            super().emit(record)

    def _open(self) -> TextIOWrapper:
        for counter in itertools.count(start=1):
            filename = self._template % (counter,)
            os.makedirs(os.path.dirname(filename), exist_ok=True)

            try:
                stream = open(filename, "x")  # noqa: SIM115
            except FileExistsError:
                continue

            level = logging.getLevelName(self._log_level).lower()
            logging.getLogger(__name__).info("Saving %s logs to %r", level, filename)

            self.baseFilename = filename
            return stream

        raise AssertionError("unreachable")


def _use_colors(log_color: str) -> bool:
    if log_color in ("always", "never"):
        return log_color == "always"
    elif log_color != "auto":
        raise ValueError(log_color)

    return (
        "NO_COLOR" not in os.environ
        and sys.stderr.isatty()
        and terminal_supports_colors()
    )
