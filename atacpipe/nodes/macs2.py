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
MACS2 - Model-based Analysis of ChIP-Seq

https://github.com/macs3-project/MACS
"""

from __future__ import annotations

import os
from typing import Iterable, Literal

from atacpipe.common.command import AtomicCmd, InputFile, OptionsType, OutputFile
from atacpipe.common.versions import Requirement
from atacpipe.node import CommandNode, Node

MACS2_VERSION = Requirement(
    call=("macs2", "--version"),
    regexp=r"macs2 (\d+\.\d+)(?:\.(\d+))?",
    specifiers=">=2.1.1",
)

# Files written by 'callpeak --broad', relative to '{outdir}/{name}'
BROAD_PEAK_FILES = ("_peaks.broadPeak", "_peaks.gappedPeak", "_peaks.xls")


class MACS2BroadPeaksNode(CommandNode):
    """Calls broad peaks, keeping all duplicates; output files are named after
    'name' and written to 'out_folder'."""

    def __init__(
        self,
        *,
        in_file: str,
        in_format: Literal["BED", "BEDPE"],
        genome_size: str,
        name: str,
        out_folder: str,
        options: OptionsType | None = None,
        dependencies: Iterable[Node] = (),
    ) -> None:
        if options is None:
            options = {}

        if in_format not in ("BED", "BEDPE"):
            raise ValueError(in_format)

        self.out_prefix = os.path.join(out_folder, name)
        self.out_broad_peaks = self.out_prefix + "_peaks.broadPeak"

        command = AtomicCmd(
            ["macs2", "callpeak"],
            extra_files=[
                OutputFile(self.out_prefix + postfix) for postfix in BROAD_PEAK_FILES
            ],
            requirements=[MACS2_VERSION],
        )

        command.merge_options(
            user_options=options,
            fixed_options={
                "-t": InputFile(in_file),
                "-f": in_format,
                "-g": genome_size,
                "-n": name,
                "--outdir": "%(TEMP_DIR)s",
                "--keep-dup": "all",
                "--broad": None,
            },
            blacklisted_options=["-c", "--control", "--call-summits"],
        )

        CommandNode.__init__(
            self,
            command=command,
            description=f"calling broad peaks for {in_file!r} using MACS2",
            dependencies=dependencies,
        )
