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

import os
from typing import Iterable

from atacpipe.common.fileutils import PathTypes, move_file
from atacpipe.node import Node


class ConcatenateLogsNode(Node):
    """Concatenates a set of text reports into a single log, writing each report
    below a header line, in the order given."""

    def __init__(
        self,
        *,
        sections: Iterable[tuple[str, str]],
        outfile: str,
        dependencies: Iterable[Node] = (),
    ) -> None:
        self._sections = tuple(sections)
        self._outfile = outfile

        Node.__init__(
            self,
            description=f"writing alignment summary to {outfile!r}",
            input_files=[filename for _, filename in self._sections],
            output_files=[outfile],
            dependencies=dependencies,
        )

    def _run(self, temp: PathTypes) -> None:
        temp_file = os.path.join(temp, os.path.basename(self._outfile))

        with open(temp_file, "w") as out_handle:
            for header, filename in self._sections:
                out_handle.write(f"{header}\n")
                with open(filename) as in_handle:
                    out_handle.write(in_handle.read())
                out_handle.write("\n")

    def _teardown(self, temp: PathTypes) -> None:
        move_file(os.path.join(temp, os.path.basename(self._outfile)), self._outfile)

        super()._teardown(temp)
