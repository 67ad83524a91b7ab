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
"""Bookkeeping of external processes started by the pipeline.

Every RegisteredPopen is tracked until it has been waited on, so that the
aligner, sorters and so on can be terminated when atacpipe itself is
interrupted. Processes are tracked per PID, since forked children must not
terminate processes belonging to their parent.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shlex
import time
from collections import defaultdict
from subprocess import Popen, TimeoutExpired
from typing import IO, TYPE_CHECKING, Iterable, Sequence

_RUNNING: defaultdict[int, list[Popen[bytes]]] = defaultdict(list)

PopenBase = Popen[bytes] if TYPE_CHECKING else Popen


def quote_args(args: object) -> str:
    """Formats a command, a single argument, or a path as a shell command-line."""
    if isinstance(args, (str, bytes, os.PathLike)) or not isinstance(args, Iterable):
        args = [args]

    return " ".join(shlex.quote(_to_str(value)) for value in args)


def _to_str(value: object) -> str:
    if isinstance(value, os.PathLike):
        value = os.fspath(value)

    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")

    return str(value)


class RegisteredPopen(PopenBase):
    """Popen tracked in `running_processes` until wait() returns."""

    def __init__(
        self,
        args: Sequence[str],
        *,
        stdin: None | int | IO[bytes] = None,
        stdout: None | int | IO[bytes] = None,
        stderr: None | int | IO[bytes] = None,
        start_new_session: bool = False,
    ) -> None:
        super().__init__(
            args=args,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            close_fds=True,
            start_new_session=start_new_session,
        )

        logging.getLogger(__name__).debug("[%s] started %s", os.getpid(), self)
        _RUNNING[os.getpid()].append(self)

    def wait(self, timeout: float | None = None) -> int:
        return_code = super().wait(timeout)

        running = _RUNNING[os.getpid()]
        # Already gone if terminate_processes waited on it
        with contextlib.suppress(ValueError):
            running.remove(self)
            logging.getLogger(__name__).debug("[%s] done %s", os.getpid(), self)

        return return_code


def running_processes() -> list[Popen[bytes]]:
    return list(_RUNNING[os.getpid()])


def terminate_processes(
    processes: Iterable[Popen[bytes]],
    timeout: float | None = None,
) -> None:
    """Sends SIGTERM to each process and waits for all of them to exit, for at
    most 'timeout' seconds in total."""
    log = logging.getLogger(__name__)
    processes = tuple(processes)
    for proc in processes:
        command = quote_args(proc.args)
        if len(command) > 80:
            command = command[:77] + "..."

        log.warning("Terminating process %s: %s", proc.pid, command)
        with contextlib.suppress(OSError):
            proc.terminate()

    deadline = None if timeout is None else time.monotonic() + timeout
    for proc in processes:
        remaining = None
        if deadline is not None:
            remaining = max(0.0, deadline - time.monotonic())

        with contextlib.suppress(TimeoutExpired):
            proc.wait(timeout=remaining)


def terminate_all_processes(timeout: float | None = None) -> None:
    """Terminates every process started by this process; used by the pipeline's
    signal handlers and on exit."""
    terminate_processes(running_processes(), timeout=timeout)
