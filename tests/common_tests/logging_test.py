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
from pathlib import Path

import pytest

from atacpipe.common.argparse import ArgumentParser
from atacpipe.common.logging import LazyLogfile, add_argument_group


def _record(message: str, name: str = "atacpipe.test") -> logging.LogRecord:
    return logging.LogRecord(name, logging.ERROR, __file__, 1, message, None, None)


def test_lazy_logfile__created_on_first_record(tmp_path: Path) -> None:
    handler = LazyLogfile(str(tmp_path / "logs" / "atacpipe_%02i.log"), logging.ERROR)

    try:
        assert not (tmp_path / "logs").exists()

        handler.emit(_record("something failed"))
        handler.flush()
    finally:
        handler.close()

    assert [it.name for it in (tmp_path / "logs").iterdir()] == ["atacpipe_01.log"]
    assert (tmp_path / "logs" / "atacpipe_01.log").read_text() == "something failed\n"


def test_lazy_logfile__existing_logs_are_not_overwritten(tmp_path: Path) -> None:
    (tmp_path / "atacpipe_01.log").write_text("old\n")
    handler = LazyLogfile(str(tmp_path / "atacpipe_%02i.log"), logging.ERROR)

    try:
        handler.emit(_record("new"))
    finally:
        handler.close()

    assert (tmp_path / "atacpipe_01.log").read_text() == "old\n"
    assert (tmp_path / "atacpipe_02.log").read_text() == "new\n"


@pytest.mark.parametrize("level", ["DEBUG", "Info", "warning"])
def test_add_argument_group__log_level(level: str) -> None:
    parser = ArgumentParser(prog="atacpipe")
    add_argument_group(parser)

    args = parser.parse_args(["--log-level", level])

    assert args.log_level == level.lower()
    assert args.log_color == "auto"
    assert args.log_file is None
