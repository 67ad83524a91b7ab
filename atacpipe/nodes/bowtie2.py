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
Bowtie 2 - An ultrafast and memory-efficient tool for aligning sequencing reads
to long reference sequences

https://github.com/BenLangmead/bowtie2
"""

from __future__ import annotations

import os
from typing import Iterable

from atacpipe.common.command import AtomicCmd, InputFile, OptionsType, OutputFile
from atacpipe.common.fileutils import describe_files
from atacpipe.common.versions import Requirement
from atacpipe.node import CommandNode, Node, NodeError

BOWTIE2_VERSION = Requirement(
    call=("bowtie2", "--version"),
    regexp=r"version (\d+\.\d+\.\d+)",
    specifiers=">=2.3.0",
)

# Maximum fragment length for valid paired-end alignments
MAX_FRAGMENT_LENGTH = 2000


class Bowtie2Node(CommandNode):
    """Aligns reads in local mode, writing a SAM file; the alignment summary that
    Bowtie2 prints to STDERR is saved in 'output_log'."""

    def __init__(
        self,
        *,
        input_file_1: str,
        input_file_2: str | None,
        output_file: str,
        output_log: str,
        reference: str,
        threads: int = 1,
        options: OptionsType | None = None,
        dependencies: Iterable[Node] = (),
    ) -> None:
        if options is None:
            options = {}

        command = AtomicCmd(
            ["bowtie2"],
            stderr=output_log,
            extra_files=[InputFile(path) for path in index_files(reference)],
            requirements=[BOWTIE2_VERSION],
        )

        fixed_options: OptionsType = {
            "-X": MAX_FRAGMENT_LENGTH,
            "--local": None,
            "--mm": None,
            "--threads": threads,
            "-x": reference,
            "-S": OutputFile(output_file),
        }

        if input_file_1 and not input_file_2:
            fixed_options["-U"] = InputFile(input_file_1)
            input_files = [input_file_1]
        elif input_file_1 and input_file_2:
            fixed_options["-1"] = InputFile(input_file_1)
            fixed_options["-2"] = InputFile(input_file_2)
            input_files = [input_file_1, input_file_2]
        else:
            raise NodeError(
                "Input 1, OR both input 1 and input 2 must be specified for Bowtie2 node"
            )

        command.merge_options(
            user_options=options,
            fixed_options=fixed_options,
            blacklisted_options=["--end-to-end", "--interleaved", "-b"],
        )

        CommandNode.__init__(
            self,
            command=command,
            description="aligning {} against {!r} using Bowtie2".format(
                describe_files(input_files), os.path.basename(reference)
            ),
            threads=threads,
            dependencies=dependencies,
        )


def index_files(reference: str) -> tuple[str, ...]:
    """Returns the files making up a Bowtie2 index; large indexes (.bt2l) are used
    if present, otherwise the regular (.bt2) index files are expected."""
    extension = ".bt2l" if os.path.exists(reference + ".1.bt2l") else ".bt2"

    return tuple(
        reference + postfix + extension
        for postfix in (".1", ".2", ".3", ".4", ".rev.1", ".rev.2")
    )
