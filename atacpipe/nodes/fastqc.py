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
"""
FastQC - A quality control analysis tool for high throughput sequencing data

https://github.com/s-andrews/FastQC
"""

from __future__ import annotations

import os
import re
from typing import Iterable

from atacpipe.common.command import AtomicCmd, InputFile, OptionsType, OutputFile
from atacpipe.common.fileutils import describe_files
from atacpipe.common.utilities import safe_coerce_to_tuple
from atacpipe.common.versions import Requirement
from atacpipe.node import CommandNode, Node

FASTQC_VERSION = Requirement(
    name="FastQC",
    call=["fastqc", "--version"],
    regexp=r"FastQC v(\d+\.\d+\.\d+)",
)

# File extensions stripped by FastQC when naming reports
_FASTQC_EXCLUDED_EXTENSIONS = re.compile(
    r"(\.gz|\.bz2|\.txt|\.fastq|\.fq|\.csfastq|\.sam|\.bam)+$"
)


def report_prefix(filename: str) -> str:
    """Returns the basename used by FastQC for reports on the given file."""
    return _FASTQC_EXCLUDED_EXTENSIONS.sub("", os.path.basename(filename))


class FastQCNode(CommandNode):
    def __init__(
        self,
        *,
        in_files: Iterable[str],
        out_folder: str,
        threads: int = 1,
        options: OptionsType | None = None,
        dependencies: Iterable[Node] = (),
    ) -> None:
        if options is None:
            options = {}

        in_files = safe_coerce_to_tuple(in_files)

        out_files: list[OutputFile] = []
        for in_file in in_files:
            out_prefix = os.path.join(out_folder, report_prefix(in_file))
            out_files.append(OutputFile(out_prefix + "_fastqc.html"))
            out_files.append(OutputFile(out_prefix + "_fastqc.zip"))

        command = AtomicCmd(
            ["fastqc"],
            extra_files=out_files,
            requirements=[FASTQC_VERSION],
        )

        command.merge_options(
            user_options=options,
            fixed_options={
                "--format": "fastq",
                "--threads": threads,
                "--outdir": "%(TEMP_DIR)s",
                "--dir": "%(TEMP_DIR)s",
            },
        )

        command.append(*(InputFile(in_file) for in_file in in_files))

        CommandNode.__init__(
            self,
            command=command,
            description=f"running FastQC on {describe_files(in_files)}",
            threads=threads,
            dependencies=dependencies,
        )
