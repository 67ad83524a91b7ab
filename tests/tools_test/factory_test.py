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

import subprocess
import sys

import pytest

from atacpipe.common.command import InputFile, OutputFile
from atacpipe.main import _TOOLS
from atacpipe.tools import factory


def test_factory__command() -> None:
    assert factory.command([":shift_tn5", "se"]) == (
        "%(PYTHON)s",
        "-m",
        "atacpipe",
        ":shift_tn5",
        "se",
    )


def test_factory__new() -> None:
    cmd = factory.new(
        [":shift_tn5", "pe", InputFile("/out/a.bedpe")],
        stdout=OutputFile("/out/a_shift.bed"),
    )

    assert cmd.to_call("/temp") == [
        sys.executable,
        "-m",
        "atacpipe",
        ":shift_tn5",
        "pe",
        "/out/a.bedpe",
    ]
    assert cmd.input_files == {"/out/a.bedpe"}
    assert cmd.output_files == {"/out/a_shift.bed"}
    assert factory.PYTHON_VERSION in cmd.requirements


# Simple test that all helper tools can be executed
@pytest.mark.parametrize("tool", sorted(_TOOLS))
def test_factory__tool_usage(tool: str) -> None:
    call = factory.new([tool, "--help"]).to_call("/temp")

    proc = subprocess.run(
        call,
        capture_output=True,
        stdin=subprocess.DEVNULL,
        encoding="utf-8",
        check=False,
    )

    assert proc.returncode == 0, proc.stderr
    assert proc.stdout.startswith(f"usage: atacpipe {tool}")
