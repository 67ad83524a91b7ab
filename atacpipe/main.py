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

import logging
import sys
from importlib import import_module

import atacpipe.common.logging

# Helper tools run by the pipeline as separate processes, invoked as ':name'
_TOOLS = {
    ":shift_tn5": "atacpipe.tools.shift_tn5",
    ":nuclear_contigs": "atacpipe.tools.nuclear_contigs",
}


def main(argv: list[str]) -> int:
    if argv and argv[0].startswith(":"):
        atacpipe.common.logging.initialize_console_logging()

        command, *argv = argv
        module_name = _TOOLS.get(command)
        if module_name is None:
            log = logging.getLogger(__name__)
            log.error("Unknown command %r", command)
            return 1

        return import_module(module_name).main(argv)

    from atacpipe.pipelines.atac.main import main as pipeline_main

    return pipeline_main(argv)


def entry_point() -> int:
    return main(sys.argv[1:])

