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
SAMTools - Tools (written in C using htslib) for manipulating next-generation
sequencing data

https://github.com/samtools/samtools
"""

from __future__ import annotations

import os
from typing import Iterable

from atacpipe.common import versions
from atacpipe.common.command import (
    AtomicCmd,
    InputFile,
    OptionsType,
    OutputFile,
    SequentialCmds,
    TempInputFile,
    TempOutputFile,
)
from atacpipe.node import CommandNode, Node
from atacpipe.tools import factory

_VERSION_REGEX = r"Version: (\d+\.\d+)(?:\.(\d+))?"

SAMTOOLS_VERSION = versions.Requirement(
    call=("samtools",),
    regexp=_VERSION_REGEX,
    specifiers=">=1.6.0",
)

# SAM flags
FLAG_PROPER_PAIR = 0x2
FLAG_UNMAPPED = 0x4
FLAG_MATE_UNMAPPED = 0x8
FLAG_SECONDARY = 0x100
FLAG_QC_FAILED = 0x200
FLAG_DUPLICATE = 0x400

# Unmapped, secondary, QC failed, and duplicate reads (1796)
EXCLUDE_FLAGS_SE = FLAG_UNMAPPED | FLAG_SECONDARY | FLAG_QC_FAILED | FLAG_DUPLICATE
# As above, but also excluding reads with unmapped mates (1804)
EXCLUDE_FLAGS_PE = EXCLUDE_FLAGS_SE | FLAG_MATE_UNMAPPED


class SAMToBAMNode(CommandNode):
    """Converts a SAM file to an (unsorted) BAM file using 'samtools view'."""

    def __init__(
        self,
        *,
        in_file: str,
        out_file: str,
        threads: int = 1,
        dependencies: Iterable[Node] = (),
    ) -> None:
        command = AtomicCmd(
            [
                "samtools",
                "view",
                "-b",
                "-@",
                threads,
                "-o",
                OutputFile(out_file),
                InputFile(in_file),
            ],
            requirements=[SAMTOOLS_VERSION],
        )

        CommandNode.__init__(
            self,
            command=command,
            description=f"converting {in_file!r} to BAM",
            threads=threads,
            dependencies=dependencies,
        )


class BAMSortNode(CommandNode):
    """Sorts a BAM file by coordinate, or by read name if 'by_name' is set."""

    def __init__(
        self,
        *,
        in_file: str,
        out_file: str,
        by_name: bool = False,
        threads: int = 1,
        options: OptionsType | None = None,
        dependencies: Iterable[Node] = (),
    ) -> None:
        if options is None:
            options = {}

        command = AtomicCmd(["samtools", "sort"], requirements=[SAMTOOLS_VERSION])

        fixed_options: OptionsType = {
            "-@": threads,
            # Temporary files are written to the task's temporary folder
            "-T": os.path.join("%(TEMP_DIR)s", "sort"),
            "-o": OutputFile(out_file),
        }

        if by_name:
            fixed_options["-n"] = None

        command.merge_options(user_options=options, fixed_options=fixed_options)
        command.append(InputFile(in_file))

        CommandNode.__init__(
            self,
            command=command,
            description="sorting {!r} by {}".format(
                in_file, "read name" if by_name else "coordinate"
            ),
            threads=threads,
            dependencies=dependencies,
        )


class BAMIndexNode(CommandNode):
    """Indexes a BAM file using 'samtools index'."""

    def __init__(
        self,
        *,
        infile: str,
        threads: int = 1,
        dependencies: Iterable[Node] = (),
    ) -> None:
        command = AtomicCmd(
            [
                "samtools",
                "index",
                "-@",
                threads,
                InputFile(infile),
                OutputFile(infile + ".bai"),
            ],
            requirements=[SAMTOOLS_VERSION],
        )

        CommandNode.__init__(
            self,
            command=command,
            description=f"creating BAI index for {infile!r}",
            threads=threads,
            dependencies=dependencies,
        )


class FlagstatNode(CommandNode):
    def __init__(
        self,
        *,
        infile: str,
        outfile: str,
        threads: int = 1,
        dependencies: Iterable[Node] = (),
    ) -> None:
        command = AtomicCmd(
            ["samtools", "flagstat", "-@", threads, InputFile(infile)],
            stdout=outfile,
            requirements=[SAMTOOLS_VERSION],
        )

        CommandNode.__init__(
            self,
            command=command,
            description=f"collecting flag statistics for {infile!r}",
            threads=threads,
            dependencies=dependencies,
        )


class RemoveDuplicatesNode(CommandNode):
    """Removes PCR duplicates from single-end reads using 'samtools rmdup -s'."""

    def __init__(
        self,
        *,
        infile: str,
        outfile: str,
        dependencies: Iterable[Node] = (),
    ) -> None:
        command = AtomicCmd(
            ["samtools", "rmdup", "-s", InputFile(infile), OutputFile(outfile)],
            requirements=[SAMTOOLS_VERSION],
        )

        CommandNode.__init__(
            self,
            command=command,
            description=f"removing PCR duplicates from {infile!r}",
            dependencies=dependencies,
        )


class ExcludeContigsNode(CommandNode):
    """Removes alignments to mitochondrial contigs. The contigs kept are listed
    in a BED file written by ':nuclear_contigs', which is passed to 'samtools
    view -L'. The input BAM must be indexed."""

    def __init__(
        self,
        *,
        infile: str,
        outfile: str,
        mito_contigs: Iterable[str] = (),
        threads: int = 1,
        dependencies: Iterable[Node] = (),
    ) -> None:
        regions = TempOutputFile("nuclear_contigs.bed")

        contigs = factory.new([":nuclear_contigs", InputFile(infile)], stdout=regions)
        for name in mito_contigs:
            contigs.append("--mito-contig", name)

        view = AtomicCmd(
            [
                "samtools",
                "view",
                "-b",
                "-@",
                threads,
                "-L",
                TempInputFile(regions.path),
                "-o",
                OutputFile(outfile),
                InputFile(infile),
            ],
            extra_files=[InputFile(infile + ".bai")],
            requirements=[SAMTOOLS_VERSION],
        )

        CommandNode.__init__(
            self,
            command=SequentialCmds([contigs, view]),
            description=f"excluding mitochondrial alignments from {infile!r}",
            threads=threads,
            dependencies=dependencies,
        )


class BAMFilterNode(CommandNode):
    """Keeps alignments with every flag in 'require_flags' set, and with none of
    the flags in 'exclude_flags' set."""

    def __init__(
        self,
        *,
        infile: str,
        outfile: str,
        require_flags: int = 0,
        exclude_flags: int = 0,
        threads: int = 1,
        dependencies: Iterable[Node] = (),
    ) -> None:
        command = AtomicCmd(
            ["samtools", "view", "-b", "-@", threads],
            requirements=[SAMTOOLS_VERSION],
        )

        if require_flags:
            command.append("-f", require_flags)
        if exclude_flags:
            command.append("-F", exclude_flags)

        command.append("-o", OutputFile(outfile), InputFile(infile))

        CommandNode.__init__(
            self,
            command=command,
            description="filtering {!r} (require {:#x}, exclude {:#x})".format(
                infile, require_flags, exclude_flags
            ),
            threads=threads,
            dependencies=dependencies,
        )
