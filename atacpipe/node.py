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
from __future__ import annotations

import contextlib
import errno
import fnmatch
import itertools
import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Iterable, Iterator

import atacpipe
from atacpipe.common import fileutils
from atacpipe.common.command import AtomicCmd, CmdError, SequentialCmds
from atacpipe.common.fileutils import PathTypes
from atacpipe.common.procs import quote_args
from atacpipe.common.utilities import safe_coerce_to_frozenset
from atacpipe.common.versions import Requirement

# Creation order; tasks are listed and run in the order they were built
_TASK_IDS = itertools.count()


class NodeError(RuntimeError):
    """A task failed; 'path' is the scratch folder kept for inspection, if any."""

    def __init__(self, *args: object, path: str | None = None) -> None:
        super().__init__(*args)
        self.path = path


class NodeMissingFilesError(NodeError):
    pass


class CmdNodeError(NodeError):
    pass


class NodeUnhandledError(NodeError):
    """Wraps unexpected exceptions raised by a task; see __cause__."""


class Node:
    """One step of the pipeline, such as sorting a BAM or calling peaks.

    A task declares the files it reads and the files it writes. Inputs must
    exist before the task is started, and every output must exist once it
    has finished. Work happens in a fresh scratch folder below 'temp_root',
    which is deleted on success and kept along with a 'pipe.errors' report
    on failure.
    """

    __description: str | None
    input_files: frozenset[str]
    output_files: frozenset[str]
    intermediate_output_files: set[str]
    executables: frozenset[str]
    requirements: frozenset[Requirement]

    threads: int
    dependencies: frozenset[Node]

    def __init__(
        self,
        description: str | None = None,
        threads: int = 1,
        input_files: Iterable[str] = (),
        output_files: Iterable[str] = (),
        executables: Iterable[str] = (),
        requirements: Iterable[Requirement] = (),
        dependencies: Iterable[Node] = (),
    ) -> None:
        if description is not None and not isinstance(description, str):
            raise TypeError(description)

        self.__description = description
        self.input_files = _filenames(input_files)
        self.output_files = _filenames(output_files)
        self.intermediate_output_files = set()
        self.executables = _filenames(executables)
        self.requirements = _typed_set(requirements, Requirement)
        self.dependencies = _typed_set(dependencies, Node)
        self.threads = _thread_count(threads)

        self.id = next(_TASK_IDS)

    def run(self, temp_root: PathTypes) -> None:
        """Runs _setup, _run and _teardown in a new scratch folder in 'temp_root'.

        Exceptions other than NodeError are re-raised as NodeUnhandledError."""
        temp = None
        try:
            temp = fileutils.create_temp_dir(temp_root)

            self._setup(temp)
            self._run(temp)
            self._teardown(temp)
            self._remove_temp_dir(temp)
        except NodeMissingFilesError:
            # Nothing was run, so there is nothing to inspect
            if temp is not None:
                with contextlib.suppress(OSError):
                    os.rmdir(temp)
            raise
        except NodeError as error:
            self._write_error_log(temp, error)
            details = "\n  ".join(str(error).split("\n"))
            raise NodeError(
                f"Error while running {self}:\n  {details}", path=temp
            ) from None
        except Exception as error:  # noqa: BLE001
            self._write_error_log(temp, error)
            raise NodeUnhandledError(
                f"Error while running {self}", path=temp
            ) from error

    def mark_intermediate_files(self, glob: str = "*") -> None:
        """Flags outputs matching 'glob' for deletion once every task that reads
        them has completed, e.g. the unsorted BAM once it has been sorted."""
        self.intermediate_output_files.update(fnmatch.filter(self.output_files, glob))

    def _setup(self, _temp: PathTypes) -> None:
        executables = [
            sys.executable if name == "%(PYTHON)s" else name
            for name in self.executables
        ]

        missing = fileutils.missing_executables(executables)
        if missing:
            raise NodeError(f"Executable(s) not found: {missing}")

        missing = fileutils.missing_files(self.input_files)
        if missing:
            raise NodeMissingFilesError(self._describe_missing("input", missing))

    def _run(self, _temp: PathTypes) -> None:
        pass

    def _teardown(self, _temp: PathTypes) -> None:
        missing = fileutils.missing_files(self.output_files)
        if missing:
            raise NodeError(self._describe_missing("output", missing))

    def _describe_missing(self, kind: str, filenames: Iterable[str]) -> str:
        files = "\n\t         ".join(filenames)
        return (
            f"Missing {kind} files for command:\n"
            f"\t- Command: {self}\n\t- Files: {files}"
        )

    def _remove_temp_dir(self, temp: PathTypes) -> None:
        temp = fileutils.fspath(temp)
        log = logging.getLogger(__name__)
        for filename in _walk_files(temp):
            log.warning(
                "Unexpected file in temporary directory: %r",
                os.path.join(temp, filename),
            )

        try:
            shutil.rmtree(temp)
        except OSError as error:
            if error.errno != errno.EBUSY:
                raise

            log.warning("Could not remove temporary directory: %r", error)

    def _write_error_log(self, temp: str | None, error: Exception) -> None:
        if not (temp and os.path.isdir(temp)):
            return

        fields = [
            ("atacpipe", f"v{atacpipe.__version__}"),
            ("Command", quote_args(sys.argv)),
            ("CWD", repr(os.getcwd())),
            ("PATH", repr(os.environ.get("PATH", ""))),
            ("Task", str(self)),
            ("Threads", str(self.threads)),
            ("Input files", self.input_files),
            ("Output files", self.output_files),
            ("Executables", self.executables),
        ]

        lines: list[str] = []
        for key, value in fields:
            if not isinstance(value, str):
                value = ("\n" + " " * 19).join(sorted(value))
            lines.append(f"{key:<16} = {value}")
        lines.append(f"\nErrors =\n{error}\n")

        try:
            with open(os.path.join(temp, "pipe.errors"), "w") as handle:
                handle.write("\n".join(lines))
        except OSError as oserror:
            sys.stderr.write(f"ERROR: Could not write failure log: {oserror}\n")

    def __str__(self) -> str:
        return self.__description or repr(self)


class CommandNode(Node):
    """A task that runs an AtomicCmd or SequentialCmds. The files of the command
    double as the files of the task."""

    _command: AtomicCmd | SequentialCmds

    def __init__(
        self,
        command: AtomicCmd | SequentialCmds,
        description: str | None = None,
        threads: int = 1,
        dependencies: Iterable[Node] = (),
    ) -> None:
        super().__init__(
            description=description,
            threads=threads,
            input_files=command.input_files,
            output_files=command.output_files,
            executables=command.executables,
            requirements=command.requirements,
            dependencies=dependencies,
        )

        self._command = command

    @property
    def command(self) -> AtomicCmd | SequentialCmds:
        return self._command

    def _run(self, temp: PathTypes) -> None:
        try:
            self._command.run(temp)
        except CmdError as error:
            raise CmdNodeError(f"{self._command}\n\n{error}") from error

        if any(self._command.join()):
            raise CmdNodeError(str(self._command))

    def _teardown(self, temp: PathTypes) -> None:
        missing = self._command.expected_temp_files - set(_walk_files(temp))
        if missing:
            files = "\n\t    - ".join(sorted(map(repr, missing)))
            raise CmdNodeError(
                "Error running task, required files were not created:\n"
                f"Temporary directory: {fileutils.fspath(temp)!r}\n"
                f"\tRequired files missing from temporary directory:\n\t    - {files}"
            )

        try:
            self._command.commit()
        except CmdError as error:
            raise CmdNodeError(str(error)) from error

        super()._teardown(temp)


def _filenames(files: Iterable[str]) -> frozenset[str]:
    return frozenset(fileutils.validate_filenames(files))


def _typed_set(values: Iterable, cls: type) -> frozenset:
    values = safe_coerce_to_frozenset(values)
    for value in values:
        if not isinstance(value, cls):
            raise TypeError(value)

    return values


def _thread_count(threads: object) -> int:
    if not isinstance(threads, int):
        raise TypeError(f"'threads' must be a positive integer, not {threads!r}")
    elif threads < 1:
        raise ValueError(f"'threads' must be a positive integer, not {threads}")

    return threads


def _walk_files(root: PathTypes) -> Iterator[str]:
    """Yields paths of files below 'root', relative to 'root'."""
    root = fileutils.fspath(root)
    for dirpath, _, filenames in os.walk(root):
        for filename in filenames:
            yield str(Path(dirpath, filename).relative_to(root))
