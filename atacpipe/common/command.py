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

import collections
import contextlib
import os
import shlex
import signal
import subprocess
import sys
from pathlib import Path
from typing import IO, Dict, Iterable, List, Tuple, Union

from atacpipe.common import fileutils
from atacpipe.common.procs import RegisteredPopen
from atacpipe.common.utilities import safe_coerce_to_tuple
from atacpipe.common.versions import Requirement


class CmdError(RuntimeError):
    """Raised when a command is malformed or misused."""


class _AtomicFile:
    """A path appearing on, or implied by, a command-line."""

    def __init__(self, path: fileutils.PathTypes) -> None:
        self.path = fileutils.fspath(path)
        if isinstance(self.path, bytes):
            raise TypeError(f"invalid path {path!r}")

    def basename(self) -> str:
        return os.path.basename(self.path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r})"


class Executable(_AtomicFile):
    pass


class _IOFile(_AtomicFile):
    def __init__(self, path: fileutils.PathTypes, *, temporary: bool = False) -> None:
        super().__init__(path)
        # Temporary files live directly in the per-command scratch folder
        if temporary and os.path.dirname(self.path):
            raise ValueError(f"directory component in temporary path {self.path!r}")

        self.temporary = bool(temporary)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r}, {self.temporary})"


class InputFile(_IOFile):
    pass


class OutputFile(_IOFile):
    pass


class TempInputFile(InputFile):
    def __init__(self, path: fileutils.PathTypes) -> None:
        super().__init__(os.path.basename(path), temporary=True)


class TempOutputFile(OutputFile):
    def __init__(self, path: fileutils.PathTypes) -> None:
        super().__init__(os.path.basename(path), temporary=True)


IOFileTypes = Union[InputFile, OutputFile, TempInputFile, TempOutputFile]
AtomicFileTypes = Union[Executable, IOFileTypes]
ArgsType = Union[str, int, float, AtomicFileTypes]

# stdin/stdout/stderr after wrapping; integers mean DEVNULL
WrappedPipeType = Union[int, IOFileTypes]
PipeType = Union[None, str, Path, WrappedPipeType]

OptionValueType = Union[str, float, IOFileTypes, None]
OptionsType = Dict[
    str,
    Union[OptionValueType, List[OptionValueType], Tuple[OptionValueType, ...]],
]

# Return codes, signal names for killed processes, or None if never started
JoinType = List[Union[str, None, int]]


class AtomicCmd:
    """A single external program invocation whose output files appear all at once.

    The program writes every OutputFile into a scratch folder; only once it has
    exited successfully does commit() move those files to where the next stage
    of the pipeline expects them. A failed aligner or sorter therefore never
    leaves a truncated BAM behind for the filtering stage to pick up.

    Arguments wrapped in InputFile/OutputFile are tracked, so that the pipeline
    can verify that inputs exist before starting and that promised outputs were
    written. TempInputFile/TempOutputFile name files that only exist in the
    scratch folder, e.g. a named pipe between two commands of one task.
    """

    DEVNULL = subprocess.DEVNULL

    def __init__(
        self,
        command: Iterable[ArgsType | Path],
        *,
        stdin: int | str | Path | InputFile | None = None,
        stdout: int | str | Path | OutputFile | None = None,
        stderr: int | str | Path | OutputFile | None = None,
        extra_files: Iterable[AtomicFileTypes] = (),
        requirements: Iterable[Requirement] = (),
    ) -> None:
        """
        Example:
            AtomicCmd(["samtools", "sort", "-o", OutputFile("sample_srt.bam"),
                       InputFile("sample.bam")])

        stdin defaults to DEVNULL, while stdout and stderr default to files in the
        scratch folder that are discarded on commit. extra_files lists files that
        are used or written by the program without appearing as arguments, such
        as the .bai next to a BAM or the Bowtie2 index files.
        """
        self._command: list[str | AtomicFileTypes] = []
        self._proc: subprocess.Popen[bytes] | None = None
        self._temp: str | None = None
        self._running = False
        self._terminated = False

        self._executables: set[str] = set()
        self._inputs: set[IOFileTypes] = set()
        self._outputs: dict[str, IOFileTypes] = {}
        self._requirements = set(requirements)
        for value in self._requirements:
            if not isinstance(value, Requirement):
                raise TypeError(value)

        self.append(*safe_coerce_to_tuple(command))
        if not (self._command and self._command[0]):
            raise ValueError("Empty command in AtomicCmd constructor")

        executable = self._command[0]
        if isinstance(executable, str):
            self._command[0] = Executable(executable)
            self._executables.add(executable)
        elif not isinstance(executable, Executable):
            raise TypeError(f"exe must be str or Executable, not {executable}")

        self._stdin = self._wrap_pipe(InputFile, stdin)
        self._stdout = self._wrap_pipe(OutputFile, stdout, "stdout")
        self._stderr = self._wrap_pipe(OutputFile, stderr, "stderr")

        self.add_extra_files(extra_files)
        for pipe in (self._stdin, self._stdout, self._stderr):
            if not isinstance(pipe, int):
                self._track(pipe)

    def append(self, *args: ArgsType | Path) -> None:
        """Adds arguments to the end of the command-line."""
        self._check_not_started()
        for value in args:
            if value == "%(PYTHON)s":
                value = Executable(value)

            if isinstance(value, _AtomicFile):
                self._track(value)
                self._command.append(value)
            else:
                self._command.append(str(value))

    def add_extra_files(self, files: Iterable[AtomicFileTypes]) -> None:
        self._check_not_started()
        for value in files:
            if not isinstance(value, _AtomicFile):
                raise TypeError(value)

            self._track(value)

    def append_options(self, options: OptionsType) -> None:
        """Appends '-key value' pairs for every key starting with a dash. A value
        of None appends just the key, and a list or tuple repeats the key once
        for every value."""
        if not isinstance(options, dict):
            raise TypeError(f"options must be dict, not {options!r}")

        for key, values in options.items():
            if not isinstance(key, str):
                raise TypeError(f"keys must be strings, not {key!r}")
            elif not key.startswith("-"):
                continue
            elif values is None:
                self.append(key)
                continue
            elif not isinstance(values, (list, tuple)):
                values = (values,)

            for value in values:
                if not isinstance(value, (int, str, float, _AtomicFile)):
                    raise TypeError(value)

                self.append(key, value)

    def merge_options(
        self,
        *,
        user_options: OptionsType | None = None,
        fixed_options: OptionsType | None = None,
        blacklisted_options: Iterable[str] = (),
    ) -> None:
        """Appends the options the pipeline depends on, followed by options taken
        from the user. User options may neither replace a fixed option nor be one
        of the blacklisted options."""
        user_options = user_options or {}
        fixed_options = fixed_options or {}
        if not isinstance(fixed_options, dict):
            raise TypeError(f"options must be dict, not {fixed_options!r}")
        elif not isinstance(user_options, dict):
            raise TypeError(f"user_options must be dict, not {user_options!r}")

        errors = [
            f"{key} cannot be overridden"
            for key in sorted(user_options.keys() & fixed_options.keys())
        ]
        errors.extend(
            f"{key} is not supported"
            for key in sorted(user_options.keys() & set(blacklisted_options))
        )

        if errors:
            command = " ".join(self.to_call("%(TEMP_DIR)s"))
            raise CmdError(
                f"invalid command-line options for {command!r}: " + "\n".join(errors)
            )

        self.append_options(fixed_options)
        self.append_options(user_options)

    @property
    def executables(self) -> set[str]:
        return set(self._executables)

    @property
    def requirements(self) -> set[Requirement]:
        return set(self._requirements)

    @property
    def input_files(self) -> set[str]:
        return {it.path for it in self._inputs if not it.temporary}

    @property
    def output_files(self) -> set[str]:
        return {it.path for it in self._outputs.values() if not it.temporary}

    @property
    def expected_temp_files(self) -> set[str]:
        """Names of files that must be in the scratch folder after a run."""
        return {name for name, it in self._outputs.items() if not it.temporary}

    @property
    def optional_temp_files(self) -> set[str]:
        return {name for name, it in self._outputs.items() if it.temporary}

    @property
    def temp_dir(self) -> str | None:
        return self._temp

    @property
    def stdin(self) -> WrappedPipeType:
        return self._stdin

    @property
    def stdout(self) -> WrappedPipeType:
        return self._stdout

    @property
    def stderr(self) -> WrappedPipeType:
        return self._stderr

    @property
    def terminated(self) -> bool:
        return self._terminated

    def run(self, temp: fileutils.PathTypes) -> None:
        """Starts the program with 'temp' as its scratch folder; returns without
        waiting for the program to finish."""
        if self._running:
            raise CmdError("Calling 'run' on already running command.")

        self._temp = temp = fileutils.fspath(temp)
        self._running = True
        try:
            with contextlib.ExitStack() as handles:
                self._proc = RegisteredPopen(
                    self.to_call(temp),
                    stdin=self._open_pipe(handles, temp, self._stdin, "rb"),
                    stdout=self._open_pipe(handles, temp, self._stdout, "wb"),
                    stderr=self._open_pipe(handles, temp, self._stderr, "wb"),
                    # Own process group, so that children can be killed with it
                    start_new_session=True,
                )
        except (OSError, ValueError) as error:
            self._running = False
            raise CmdError(
                f"Error running commands:\n  Call = {self._command!r}\n"
                f"  Error = {error!r}"
            ) from error

    def ready(self) -> bool:
        """True once the program has exited."""
        return self._proc is not None and self._proc.poll() is not None

    def join(self) -> JoinType:
        """Blocks until the program exits and returns a one-item list holding its
        exit code, or the name of the signal that killed it."""
        if self._proc is None:
            return [None]

        return_code = self._proc.wait()
        self._running = False
        if return_code >= 0:
            return [return_code]

        return [signal.Signals(-return_code).name]

    def terminate(self) -> None:
        """Sends SIGTERM to the process group of a still running program."""
        if self._proc is None or self._proc.poll() is not None:
            return

        with contextlib.suppress(OSError):
            os.killpg(self._proc.pid, signal.SIGTERM)
            self._terminated = True

    def commit(self) -> None:
        """Moves output files from the scratch folder to their destinations and
        removes temporary files. Output that was already moved is removed again
        if any move fails."""
        if not self.ready():
            raise CmdError("Attempting to commit before command has completed")
        elif self._running:
            raise CmdError("Called 'commit' before calling 'join'")
        elif self._temp is None:
            raise AssertionError("self._temp should not be None")

        missing = sorted(self.expected_temp_files - set(os.listdir(self._temp)))
        if missing:
            raise CmdError("Expected files not created: {}".format(", ".join(missing)))

        moved: list[str] = []
        try:
            for name, output in self._outputs.items():
                source = os.path.join(self._temp, name)
                if output.temporary:
                    fileutils.try_remove(source)
                else:
                    fileutils.move_file(source, output.path)
                    moved.append(output.path)
        except Exception:
            for filename in moved:
                fileutils.try_remove(filename)
            raise

        self._proc = None
        self._temp = None

    def to_call(self, temp: fileutils.PathTypes) -> list[str]:
        """Returns the command-line with paths resolved against scratch folder."""
        return [self._to_path(temp, value) for value in self._command]

    def _to_path(self, temp: fileutils.PathTypes, value: str | AtomicFileTypes) -> str:
        if isinstance(value, str):
            return value.replace("%(TEMP_DIR)s", str(temp))
        elif isinstance(value, Executable):
            return sys.executable if value.path == "%(PYTHON)s" else value.path
        elif isinstance(value, OutputFile):
            return fileutils.reroot_path(temp, value.path)
        elif value.temporary:
            return os.path.join(temp, value.path)

        return value.path

    def _track(self, value: _AtomicFile) -> None:
        if isinstance(value, Executable):
            self._executables.add(value.path)
        elif isinstance(value, InputFile):
            self._inputs.add(value)
        elif isinstance(value, OutputFile):
            # Outputs share one scratch folder and so must have unique names
            name = value.basename()
            if self._outputs.setdefault(name, value) is not value:
                raise CmdError(f"multiple output files with name {name!r}")
        else:
            raise TypeError(value)

    def _check_not_started(self) -> None:
        if self._proc is not None:
            raise CmdError("cannot modify already started command")

    def _wrap_pipe(
        self,
        filetype: type[InputFile | OutputFile],
        pipe: PipeType,
        out_name: str | None = None,
    ) -> WrappedPipeType:
        if pipe is None:
            if out_name is None:
                return self.DEVNULL

            executable = os.path.basename(self._to_path("", self._command[0]))
            return filetype(f"pipe_{executable}_{id(self)}.{out_name}", temporary=True)
        elif isinstance(pipe, int) and pipe == self.DEVNULL:
            return pipe
        elif isinstance(pipe, (str, Path)):
            return filetype(pipe)
        elif isinstance(pipe, _AtomicFile):
            if not isinstance(pipe, filetype):
                raise ValueError(f"expected {filetype.__name__}, but got {pipe}")

            return pipe

        raise ValueError(pipe)

    def _open_pipe(
        self,
        handles: contextlib.ExitStack,
        temp: str,
        pipe: WrappedPipeType,
        mode: str,
    ) -> int | IO[bytes]:
        if isinstance(pipe, int):
            return pipe

        handle = open(self._to_path(temp, pipe), mode)  # noqa: SIM115
        return handles.enter_context(handle)

    def __str__(self) -> str:
        return pformat(self)


class SequentialCmds:
    """Commands run one after another within a single task, like the lines of a
    shell script with 'set -e': a command is started only if every command
    before it exited with zero."""

    def __init__(self, commands: Iterable[AtomicCmd]) -> None:
        self._commands: tuple[AtomicCmd, ...] = safe_coerce_to_tuple(commands)
        if not self._commands:
            raise CmdError("Empty list passed to command set")
        elif not all(isinstance(cmd, AtomicCmd) for cmd in self._commands):
            raise CmdError("SequentialCmds must only contain AtomicCmds")
        elif len(self._commands) != len(set(self._commands)):
            raise ValueError("Same command included multiple times in SequentialCmds")

        names = collections.Counter(
            name
            for cmd in self._commands
            for name in cmd.expected_temp_files | cmd.optional_temp_files
        )
        clobbered = sorted(name for name, count in names.items() if count > 1)
        if clobbered:
            raise CmdError(
                "Commands clobber each others' files: {}".format(", ".join(clobbered))
            )

    @property
    def commands(self) -> tuple[AtomicCmd, ...]:
        return self._commands

    def run(self, temp: fileutils.PathTypes) -> None:
        for cmd in self._commands:
            cmd.run(temp)
            if cmd.join() != [0]:
                break

    def join(self) -> JoinType:
        return [code for cmd in self._commands for code in cmd.join()]

    def commit(self) -> None:
        done: list[AtomicCmd] = []
        try:
            for cmd in self._commands:
                cmd.commit()
                done.append(cmd)
        except Exception:
            # The failing command cleans up after itself
            for cmd in done:
                for filename in cmd.output_files:
                    fileutils.try_remove(filename)
            raise

    def terminate(self) -> None:
        for cmd in self._commands:
            cmd.terminate()

    def _union(self, attr: str) -> set:
        return set().union(*(getattr(cmd, attr) for cmd in self._commands))

    @property
    def input_files(self) -> set[str]:
        return self._union("input_files")

    @property
    def output_files(self) -> set[str]:
        return self._union("output_files")

    @property
    def executables(self) -> set[str]:
        return self._union("executables")

    @property
    def requirements(self) -> set[Requirement]:
        return self._union("requirements")

    @property
    def expected_temp_files(self) -> set[str]:
        return self._union("expected_temp_files")

    @property
    def optional_temp_files(self) -> set[str]:
        return self._union("optional_temp_files")

    def __str__(self) -> str:
        return pformat(self)


CommandTypes = Union[AtomicCmd, SequentialCmds]


def pformat(command: CommandTypes) -> str:
    """Describes a command, or the commands of a task, for error reports."""
    if isinstance(command, AtomicCmd):
        return "\n".join(_describe(command))
    elif not isinstance(command, SequentialCmds):
        raise TypeError(command)

    lines = ["Sequential processes:"]
    for idx, subcmd in enumerate(command.commands, start=1):
        if idx > 1:
            lines.append("")
        lines.append(f"  Process {idx}:")
        lines.extend("    " + line for line in _describe(subcmd))

    return "\n".join(lines)


def _describe(command: AtomicCmd) -> Iterable[str]:
    temp = command.temp_dir or "${TEMP_DIR}"

    label = "Command = "
    for line in _wrap_call(command.to_call(temp)):
        yield label + line
        label = " " * len(label)

    status = _status(command)
    if status is not None:
        yield f"Status  = {status}"

    def _pipe(pipe: WrappedPipeType) -> str:
        if isinstance(pipe, int):
            return "/dev/null"
        return shlex.quote(command._to_path(temp, pipe))  # noqa: SLF001

    if not isinstance(command.stdin, int):
        yield f"STDIN   = {_pipe(command.stdin)}"
    yield f"STDOUT  = {_pipe(command.stdout)}"
    yield f"STDERR  = {_pipe(command.stderr)}"


def _status(command: AtomicCmd) -> str | None:
    if command.ready():
        (return_code,) = command.join()
        if command.terminated:
            return "Automatically terminated by atacpipe"
        elif isinstance(return_code, str):
            return f"Terminated with signal {return_code}"

        return f"Exited with return-code {return_code}"
    elif command._proc is not None:  # noqa: SLF001
        return "Running"

    return None


def _wrap_call(call: list[str], width: int = 80) -> list[str]:
    """Splits a shell-quoted call into continuation lines of at most 'width'
    characters, where arguments permit."""
    lines: list[list[str]] = [[]]
    length = 0
    for arg in map(shlex.quote, call):
        if lines[-1] and length + len(arg) + 1 > width:
            lines.append([])
            length = 0

        lines[-1].append(arg)
        length += len(arg) + 1

    text = " \\\n    ".join(" ".join(line) for line in lines)
    return text.split("\n")
