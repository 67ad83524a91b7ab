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

from typing import Iterable, Literal

from atacpipe.common.command import InputFile
from atacpipe.node import CommandNode, Node
from atacpipe.tools import factory


class ShiftTn5Node(CommandNode):
    """Corrects read or fragment coordinates for the Tn5 insertion offset; see
    `atacpipe.tools.shift_tn5` for the rules applied to BED and BEDPE files."""

    def __init__(
        self,
        *,
        mode: Literal["se", "pe"],
        infile: str,
        outfile: str,
        dependencies: Iterable[Node] = (),
    ) -> None:
        if mode not in ("se", "pe"):
            raise ValueError(mode)

        command = factory.new(
            [":shift_tn5", mode, InputFile(infile)],
            stdout=outfile,
        )

        CommandNode.__init__(
            self,
            command=command,
            description=f"applying Tn5 offsets to {infile!r}",
            dependencies=dependencies,
        )
