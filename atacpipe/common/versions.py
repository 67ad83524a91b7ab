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

import re
import subprocess
import sys
from shlex import quote
from typing import Any, Iterable

from packaging.specifiers import SpecifierSet

# Printed by the JVM when running a Picard JAR built for a newer Java
_JRE_TOO_OLD = "UnsupportedClassVersionError"


class RequirementError(Exception):
    """Raised if the version of an executable could not be determined."""


class Requirement:
    """Minimum (or maximum) version of an external program.

    'call' is run once and 'regexp' is matched against its combined STDOUT and
    STDERR. The groups of the match are joined with dots to form the version,
    with trailing unmatched groups dropped, and the result is then tested
    against 'specifiers'. For example, to require SAMTools v1.10 or later:

        Requirement(call="samtools",
                    regexp=r"Version: (\\d+\\.\\d+)(?:\\.(\\d+))?",
                    specifiers=">=1.10")

    Requirements compare equal if they run the same call with the same checks,
    so that tools shared by several tasks are only checked once.
    """

    def __init__(
        self,
        call: str | Iterable[str],
        regexp: str | None = None,
        specifiers: str | None = None,
        name: str | None = None,
    ) -> None:
        if specifiers and not regexp:
            raise RequirementError("specifiers require a regexp str")

        self._call = (call,) if isinstance(call, str) else tuple(call)
        self.name = str(name or self._call[0])
        self.regexp = re.compile(regexp) if regexp else None
        self.specifiers = SpecifierSet(specifiers or "")
        self._result: str | RequirementError | None = None

    @property
    def call(self) -> tuple[str, ...]:
        executable, *args = self._call
        if executable == "%(PYTHON)s":
            executable = sys.executable

        return (executable, *args)

    @property
    def executable(self) -> str:
        return self.call[0]

    def version(self, force: bool = False) -> str:
        """Returns the version string, or '' if there is no regexp. The program
        is only run on the first call, unless 'force' is set."""
        if force or self._result is None:
            self._result = self._run()

        if isinstance(self._result, RequirementError):
            raise self._result

        return self._result

    def version_str(self, force: bool = False) -> str:
        version = self.version(force)

        return f"v{version}" if version else "N/A"

    def check(self, force: bool = False) -> bool:
        """True if the version satisfies the specifiers, if any."""
        version = self.version(force)

        return not self.specifiers or version in self.specifiers

    def _run(self) -> str | RequirementError:
        try:
            proc = subprocess.run(
                self.call,
                check=False,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as error:
            return self._error(f"Exception was raised: {error!r}", cause=error)

        output = proc.stdout
        if _JRE_TOO_OLD in output:
            return self._error(
                "The installed Java Runtime Environment is too old for this",
                "program; please upgrade Java or use an older release.",
            )
        elif self.regexp is None:
            return ""

        match = self.regexp.search(output)
        if match is None:
            return self._error(
                "The program may be broken or an unsupported version.",
                "",
                f"Requirements:   {self.specifiers}",
                f"Search string:  {self.regexp!r}",
                "",
                "{0} Command output {0}".format("-" * 22),
                output,
            )

        groups = list(match.groups())
        while groups and groups[-1] is None:
            groups.pop()

        return ".".join(group.strip(".") for group in groups)

    def _error(self, *lines: str, cause: Exception | None = None) -> RequirementError:
        command = " ".join(map(quote, self.call))
        message = "\n".join(
            ["Version could not be determined for:", f"Command  = {command}", ""]
            + list(lines)
        )

        error = RequirementError(message)
        error.__cause__ = cause

        return error

    def _key(self) -> tuple[Any, ...]:
        return (self._call, self.name, self.regexp, str(self.specifiers))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Requirement):
            return NotImplemented

        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return f"Requirement({self.name!r}, {self.specifiers!s})"
