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
Cutadapt - Finds and removes adapter sequences, primers, and poly-A tails

https://github.com/marcelm/cutadapt
"""

from __future__ import annotations

from typing import Iterable

from atacpipe.common.command import AtomicCmd, InputFile, OptionsType, OutputFile
from atacpipe.common.fileutils import describe_files
from atacpipe.common.versions import Requirement
from atacpipe.node import CommandNode, Node, NodeError

# Version required for multi-threading (-j)
CUTADAPT_VERSION = Requirement(
    call=("cutadapt", "--version"),
    regexp=r"(\d+\.\d+)(?:\.(\d+))?",
    specifiers=">=1.15",
)

# Nextera/Tn5 adapter and its reverse complement
NEXTERA_ADAPTER_3P = "CTGTCTCTTATACACATCT"
NEXTERA_ADAPTER_5P = "AGATGTGTATAAGAGACAG"


class CutadaptNode(CommandNode):
    """Trims adapters from single-end reads, or from both mates of paired-end
    reads; the cutadapt report is written to 'out_log'."""

    def __init__(
        self,
        *,
        in_fq_1: str,
        in_fq_2: str | None,
        out_fq_1: str,
        out_fq_2: str | None,
        out_log: str,
        adapter_3p: str = NEXTERA_ADAPTER_3P,
        adapter_5p: str = NEXTERA_ADAPTER_5P,
        min_length: int = 30,
        threads: int = 1,
        options: OptionsType | None = None,
        dependencies: Iterable[Node] = (),
    ) -> None:
        if options is None:
            options = {}

        if (in_fq_2 is None) != (out_fq_2 is None):
            raise NodeError("mate 2 input and output must both be set or both be unset")

        fixed_options: OptionsType = {
            "--minimum-length": min_length,
            "--cores": threads,
            "-a": adapter_3p,
            "-g": adapter_5p,
            "-o": OutputFile(out_fq_1),
        }

        in_files = [in_fq_1]
        if in_fq_2 is not None and out_fq_2 is not None:
            in_files.append(in_fq_2)
            fixed_options["-A"] = adapter_3p
            fixed_options["-G"] = adapter_5p
            fixed_options["-p"] = OutputFile(out_fq_2)

        command = AtomicCmd(
            ["cutadapt"],
            stdout=out_log,
            requirements=[CUTADAPT_VERSION],
        )

        command.merge_options(
            user_options=options,
            fixed_options=fixed_options,
            blacklisted_options=["--interleaved", "--output", "--paired-output"],
        )

        command.append(*(InputFile(filename) for filename in in_files))

        CommandNode.__init__(
            self,
            command=command,
            description=f"trimming adapters from {describe_files(in_files)}",
            threads=threads,
            dependencies=dependencies,
        )
