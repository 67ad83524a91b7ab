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

import logging
import os
import signal
import sys
import time
from collections import defaultdict
from shlex import quote
from typing import Iterable, NoReturn

import atacpipe.common.logging
from atacpipe.common.argparse import ArgumentGroup, ArgumentParser
from atacpipe.common.fileutils import missing_executables, missing_files, try_remove
from atacpipe.common.procs import terminate_all_processes
from atacpipe.common.text import format_timespan, padded_table
from atacpipe.common.utilities import safe_coerce_to_tuple
from atacpipe.common.versions import Requirement, RequirementError
from atacpipe.node import Node, NodeError


class Pypeline:
    """Runs a set of tasks one at a time in dependency order.

    Before any task is run, every executable and version requirement is checked,
    as are input files not created by any task. The pipeline stops at the first
    task that fails. Intermediate files are deleted once every task that uses
    them has completed, unless 'keep_intermediate' is set.
    """

    def __init__(
        self,
        nodes: Iterable[Node],
        temp_root: str = "/tmp",
        keep_intermediate: bool = False,
        pending_files: Iterable[str] = (),
    ) -> None:
        self._nodes = safe_coerce_to_tuple(nodes)
        for node in self._nodes:
            if not isinstance(node, Node):
                raise TypeError(f"Node object expected, received {node!r}")

        self._logger = logging.getLogger(__name__)
        self._temp_root = temp_root
        self._keep_intermediate = keep_intermediate
        # Input files created outside the pipeline after the requirement checks
        self._pending_files = frozenset(pending_files)
        self._requirements_met = False

    @property
    def tasks(self) -> tuple[Node, ...]:
        """All tasks, including dependencies, in the order in which they are run."""
        return _collect_tasks(self._nodes)

    def check_requirements(self) -> bool:
        """Checks that every executable used by the pipeline can be found, and that
        every version requirement is met. Nothing is written to disk. Once met, the
        requirements are not checked again."""
        if self._requirements_met:
            return True

        tasks = self.tasks

        executables: set[str] = set()
        requirements: set[Requirement] = set()
        for task in tasks:
            executables.update(task.executables)
            requirements.update(task.requirements)

        executables = {
            sys.executable if value == "%(PYTHON)s" else value for value in executables
        }

        self._logger.info("Checking %i required executables", len(executables))
        missing = missing_executables(sorted(executables))
        if missing:
            for executable in missing:
                self._logger.error("Required executable not found: %s", executable)
            return False

        any_errors = False
        for requirement in sorted(requirements, key=lambda it: it.name):
            try:
                if requirement.check():
                    self._logger.debug(
                        "Found %s %s", requirement.name, requirement.version_str()
                    )
                    continue

                self._logger.error(
                    "Version requirement not met for %s: found %s, require %s",
                    requirement.name,
                    requirement.version_str(),
                    requirement.specifiers,
                )
            except RequirementError as error:
                self._logger.error(error)

            any_errors = True

        self._requirements_met = not any_errors
        return self._requirements_met

    def check_input_files(self, *, dry_run: bool = False) -> bool:
        """Checks that input files not created by any task exist."""
        tasks = self.tasks
        output_files: set[str] = set()
        input_files: set[str] = set()
        for task in tasks:
            output_files.update(task.output_files)
            input_files.update(task.input_files)

        required_files = input_files - output_files
        if dry_run:
            required_files -= self._pending_files

        missing = missing_files(sorted(required_files))
        for filename in missing:
            self._logger.error(
                "Required input file does not exist: %s", quote(filename)
            )

        return not missing

    def run(self, *, dry_run: bool = False) -> int:
        try:
            tasks = self.tasks
        except NodeError as error:
            self._logger.error(error)
            return 1

        if not (self.check_requirements() and self.check_input_files(dry_run=dry_run)):
            return 1

        if dry_run:
            for idx, task in enumerate(tasks, start=1):
                self._logger.info("Task %i of %i: %s", idx, len(tasks), task)

            self._logger.info("Dry run completed successfully")
            return 0

        signal.signal(signal.SIGINT, self._sigterm_handler)
        signal.signal(signal.SIGHUP, self._sigterm_handler)
        signal.signal(signal.SIGTERM, self._sigterm_handler)

        try:
            return self._run(tasks)
        finally:
            terminate_all_processes()

            for filename in atacpipe.common.logging.get_logfiles():
                self._logger.info("Log-file written to %r", filename)

    def _run(self, tasks: tuple[Node, ...]) -> int:
        # Number of tasks not yet run that read each file
        consumers: dict[str, int] = defaultdict(int)
        for task in tasks:
            for filename in task.input_files:
                consumers[filename] += 1

        intermediate_files: set[str] = set()
        failed_task: Node | None = None
        for idx, task in enumerate(tasks):
            status = _Progress(idx + 1, len(tasks))
            self._logger.info("Started %s", task, extra={"status": status})

            start_time = time.time()
            try:
                task.run(self._temp_root)
            except NodeError as error:
                self._handle_task_error(task, error)
                failed_task = task
                break

            runtime = format_timespan(time.time() - start_time)
            self._logger.info(
                "Finished %s in %s", task, runtime, extra={"status": status}
            )

            intermediate_files.update(task.intermediate_output_files)
            for filename in task.input_files:
                consumers[filename] -= 1

            if not self._keep_intermediate:
                self._clean_intermediate_files(intermediate_files, consumers)

        self._summarize_pipeline(tasks, failed_task)

        return 0 if failed_task is None else 1

    def _clean_intermediate_files(
        self,
        intermediate_files: set[str],
        consumers: dict[str, int],
    ) -> None:
        for filepath in sorted(intermediate_files):
            if consumers[filepath] <= 0:
                self._logger.debug("Removing no longer needed file %s", quote(filepath))
                if not try_remove(filepath):
                    self._logger.error("Failed to remove temp file %s", quote(filepath))

                intermediate_files.remove(filepath)

    def _handle_task_error(self, task: Node, error: NodeError) -> None:
        message = str(error).split("\n")

        if error.__cause__ is not None and not isinstance(error.__cause__, NodeError):
            message.append(f"Unhandled exception: {error.__cause__!r}")

        if error.path:
            message.append("For more information about this error, see")
            message.append("  " + quote(os.path.join(error.path, "pipe.errors")))

        self._logger.error("\n".join(message))
        self._logger.error("Pipeline stopped at task %s", task)

    def _summarize_pipeline(
        self,
        tasks: tuple[Node, ...],
        failed_task: Node | None,
    ) -> None:
        if failed_task is None:
            self._logger.info("Pipeline completed successfully")
            return

        completed = tasks.index(failed_task)
        rows = [
            ("Number of tasks:", len(tasks)),
            ("Number of done tasks:", completed),
            ("Number of failed tasks:", 1),
            ("Number of tasks not run:", len(tasks) - completed - 1),
        ]

        for message in padded_table(rows):
            self._logger.info(message)

        self._logger.warning("Errors were detected in pipeline")

    def _sigterm_handler(self, signum: int, _frame: object) -> NoReturn:
        self._logger.warning("Terminating due to signal %i", signum)

        signal.signal(signal.SIGINT, signal.SIG_DFL)
        signal.signal(signal.SIGHUP, signal.SIG_DFL)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)

        terminate_all_processes()

        sys.exit(-signum)


def add_argument_group(parser: ArgumentParser) -> ArgumentGroup:
    group = parser.add_argument_group("Pipeline")
    group.add_argument(
        "--dry-run",
        default=False,
        action="store_true",
        help="Build pipeline and check prerequisites, but do not execute any tasks",
    )
    group.add_argument(
        "--temp-root",
        default=None,
        metavar="DIR",
        help="Location for temporary files; defaults to a hidden folder in the "
        "current working directory",
    )
    group.add_argument(
        "--keep-intermediate",
        default=False,
        action="store_true",
        help="Keep intermediate files, such as the SAM and unfiltered BAM files, "
        "instead of deleting them once they are no longer needed",
    )

    return group


def _collect_tasks(nodes: Iterable[Node]) -> tuple[Node, ...]:
    """Returns nodes and their dependencies, each task following its dependencies;
    independent tasks are ordered by creation. Raises NodeError if multiple tasks
    create the same file."""
    ordered: list[Node] = []
    visited: set[Node] = set()

    def _visit(node: Node) -> None:
        if node not in visited:
            visited.add(node)
            for dependency in sorted(node.dependencies, key=lambda it: it.id):
                _visit(dependency)
            ordered.append(node)

    for node in sorted(nodes, key=lambda it: it.id):
        _visit(node)

    creators: dict[str, Node] = {}
    for node in ordered:
        for filename in node.output_files:
            other = creators.setdefault(filename, node)
            if other is not node:
                raise NodeError(
                    f"Multiple tasks create the file {filename!r}:\n"
                    f"  - {other}\n  - {node}"
                )

    return tuple(ordered)


class _Progress(atacpipe.common.logging.Status):
    def __init__(self, nth: int, total: int) -> None:
        super().__init__("cyan")
        self._nth = nth
        self._total = total

    def __str__(self) -> str:
        return f"{self._nth}/{self._total}"
