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
"""Commands that run the helper tools shipped with atacpipe.

Helpers are started with the interpreter running the pipeline, as
'python -m atacpipe :tool', rather than via whatever 'atacpipe' is on PATH.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from atacpipe.common.command import ArgsType, AtomicCmd, OutputFile
from atacpipe.common.versions import Requirement

PYTHON_VERSION = Requirement(
    ["%(PYTHON)s", "--version"],
    regexp=r"Python (\d+\.\d+\.\d+)",
    specifiers=">=3.9",
    name="Python",
)


def command(args: Iterable[ArgsType]) -> tuple[ArgsType, ...]:
    """Prefixes the arguments of a helper tool with the interpreter call."""
    return ("%(PYTHON)s", "-m", "atacpipe", *args)


def new(
    args: Iterable[ArgsType],
    *,
    stdout: int | str | Path | OutputFile | None = None,
) -> AtomicCmd:
    """Returns an AtomicCmd for a helper tool, e.g. [":shift_tn5", "pe", path]."""
    return AtomicCmd(command(args), stdout=stdout, requirements=[PYTHON_VERSION])
