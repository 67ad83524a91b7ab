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
deepTools - Tools for exploring deep sequencing data

https://github.com/deeptools/deepTools
"""

from __future__ import annotations

from typing import Iterable

from atacpipe.common.command import AtomicCmd, InputFile, OptionsType, OutputFile
from atacpipe.common.versions import Requirement
from atacpipe.node import CommandNode, Node

# Version required for --normalizeUsing
BAMCOVERAGE_VERSION = Requirement(
    call=("bamCoverage", "--version"),
    regexp=r"bamCoverage (\d+\.\d+)(?:\.(\d+))?",
    specifiers=">=3.0.0",
)


class BAMCoverageNode(CommandNode):
    """Writes a BigWig coverage track for an indexed BAM file."""

    def __init__(
        self,
        *,
        in_bam: str,
        out_bigwig: str,
        bin_size: int = 10,
        normalization: str = "CPM",
        threads: int = 1,
        options: OptionsType | None = None,
        dependencies: Iterable[Node] = (),
    ) -> None:
        if options is None:
            options = {}

        command = AtomicCmd(
            ["bamCoverage"],
            extra_files=[InputFile(in_bam + ".bai")],
            requirements=[BAMCOVERAGE_VERSION],
        )

        command.merge_options(
            user_options=options,
            fixed_options={
                "--binSize": bin_size,
                "--numberOfProcessors": threads,
                "--normalizeUsing": normalization,
                "--bam": InputFile(in_bam),
                "--outFileName": OutputFile(out_bigwig),
            },
            blacklisted_options=["--outFileFormat"],
        )

        CommandNode.__init__(
            self,
            command=command,
            description=f"building {normalization} normalized coverage track for "
            f"{in_bam!r}",
            threads=threads,
            dependencies=dependencies,
        )
