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
"""Writes whole-contig BED regions for every non-mitochondrial contig in a BAM."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, Iterator

import pysam

from atacpipe.common.argparse import ArgumentParser, Namespace

MITOCHONDRIAL_CONTIGS = frozenset(("chrm", "mt", "m", "chrmt"))


def is_mitochondrial(name: str, extra_names: Iterable[str] = ()) -> bool:
    if name.lower() in MITOCHONDRIAL_CONTIGS:
        return True

    return name in frozenset(extra_names)


def nuclear_contigs(
    contigs: Iterable[tuple[str, int]],
    extra_names: Iterable[str] = (),
) -> Iterator[tuple[str, int]]:
    extra_names = frozenset(extra_names)
    for name, length in contigs:
        if not is_mitochondrial(name, extra_names):
            yield name, length


def parse_args(argv: list[str]) -> Namespace:
    parser = ArgumentParser("atacpipe :nuclear_contigs")
    parser.add_argument("bamfile", type=Path)
    parser.add_argument(
        "--mito-contig",
        default=[],
        action="append",
        help="Additional contig names to treat as mitochondrial",
    )

    return parser.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)

    with pysam.AlignmentFile(str(args.bamfile)) as handle:
        contigs = list(zip(handle.references, handle.lengths))

    for name, length in nuclear_contigs(contigs, args.mito_contig):
        print(name, 0, length, sep="\t")

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main(sys.argv[1:]))
