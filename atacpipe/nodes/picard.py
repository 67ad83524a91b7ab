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
Picard - A set of command line tools for manipulating high-throughput
sequencing data

https://broadinstitute.github.io/picard/

Picard is run using the 'picard' wrapper script (as installed by e.g. Bioconda),
or using 'java -jar' if the path to a picard JAR is given.
"""

from __future__ import annotations

import getpass
import os
from typing import Iterable

from atacpipe.common.command import AtomicCmd, InputFile, OptionsType, OutputFile
from atacpipe.common.fileutils import PathTypes, try_rmtree
from atacpipe.common.versions import Requirement
from atacpipe.node import CommandNode, Node

_PICARD_VERSION_REGEX = r"\b(\d+)\.(\d+)\.(\d+)"
_PICARD_VERSION_CACHE: dict[tuple[str, ...], Requirement] = {}


class PicardNode(CommandNode):
    """Base class for nodes using Picard; removes the folders that Picard and the
    JRE may create in the temporary folder."""

    def _teardown(self, temp: PathTypes) -> None:
        user = getpass.getuser()
        # Picard creates a folder named after the user in TMP_DIR
        try_rmtree(os.path.join(temp, user))
        # Some JREs create a folder for temporary performance counters
        try_rmtree(os.path.join(temp, "hsperfdata_" + user))

        super()._teardown(temp)


class MarkDuplicatesNode(PicardNode):
    """Marks (but by default does not remove) PCR duplicates."""

    def __init__(
        self,
        *,
        in_bam: str,
        out_bam: str,
        out_metrics: str,
        picard_jar: str | None = None,
        java_options: Iterable[str] = (),
        remove_duplicates: bool = False,
        options: OptionsType | None = None,
        dependencies: Iterable[Node] = (),
    ) -> None:
        if options is None:
            options = {}

        command = picard_command(
            "MarkDuplicates",
            picard_jar=picard_jar,
            java_options=java_options,
        )

        command.merge_options(
            user_options=options,
            fixed_options={
                "-I": InputFile(in_bam),
                "-O": OutputFile(out_bam),
                "-M": OutputFile(out_metrics),
                "--REMOVE_DUPLICATES": str(remove_duplicates).lower(),
                "--TMP_DIR": "%(TEMP_DIR)s",
            },
        )

        PicardNode.__init__(
            self,
            command=command,
            description=f"marking PCR duplicates in {in_bam!r}",
            dependencies=dependencies,
        )


def picard_command(
    tool: str,
    *,
    picard_jar: str | None = None,
    java_options: Iterable[str] = (),
) -> AtomicCmd:
    """Returns an AtomicCmd for running a Picard tool, with a version check."""
    if picard_jar is None:
        call: tuple[str, ...] = ("picard",)
        extra_files: list[InputFile] = []
    else:
        call = ("java", *java_options, "-jar", picard_jar)
        extra_files = [InputFile(picard_jar)]

    requirement = _PICARD_VERSION_CACHE.get(call)
    if requirement is None:
        # Arbitrary tool, since '--version' on its own is not supported
        requirement = Requirement(
            call=(*call, "MarkDuplicates", "--version"),
            regexp=_PICARD_VERSION_REGEX,
            specifiers=">=2.18.0",
            name="Picard",
        )
        _PICARD_VERSION_CACHE[call] = requirement

    return AtomicCmd(
        [*call, tool],
        extra_files=extra_files,
        requirements=[requirement],
    )
