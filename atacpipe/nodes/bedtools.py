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
BEDTools - A swiss army knife for genome arithmetic

https://github.com/arq5x/bedtools2
"""

from __future__ import annotations

from typing import Iterable

from atacpipe.common.command import AtomicCmd, InputFile
from atacpipe.common.versions import Requirement
from atacpipe.node import CommandNode, Node

BEDTOOLS_VERSION = Requirement(
    call=("bedtools", "--version"),
    regexp=r"bedtools v?(\d+\.\d+)(?:\.(\d+))?",
    specifiers=">=2.26.0",
)


class BAMToBEDNode(CommandNode):
    """Converts alignments to BED6 records, or if 'bedpe' is set, converts pairs of
    alignments to BEDPE records. The latter requires a BAM sorted by read name."""

    def __init__(
        self,
        *,
        infile: str,
        outfile: str,
        bedpe: bool = False,
        dependencies: Iterable[Node] = (),
    ) -> None:
        command = AtomicCmd(
            ["bedtools", "bamtobed"],
            stdout=outfile,
            requirements=[BEDTOOLS_VERSION],
        )

        if bedpe:
            command.append("-bedpe")

        command.append("-i", InputFile(infile))

        CommandNode.__init__(
            self,
            command=command,
            description="converting {!r} to {}".format(
                infile, "BEDPE" if bedpe else "BED"
            ),
            dependencies=dependencies,
        )


class SubtractIntervalsNode(CommandNode):
    """Writes records in 'infile' that do not overlap any record in 'exclude'."""

    def __init__(
        self,
        *,
        infile: str,
        exclude: str,
        outfile: str,
        dependencies: Iterable[Node] = (),
    ) -> None:
        command = AtomicCmd(
            [
                "bedtools",
                "intersect",
                "-v",
                "-a",
                InputFile(infile),
                "-b",
                InputFile(exclude),
            ],
            stdout=outfile,
            requirements=[BEDTOOLS_VERSION],
        )

        CommandNode.__init__(
            self,
            command=command,
            description=f"excluding intervals in {exclude!r} from {infile!r}",
            dependencies=dependencies,
        )
