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
"""Corrects BED/BEDPE coordinates for the offset of Tn5 insertion sites.

Tn5 binds DNA as a dimer and inserts adapters 9bp apart; reads on the forward
strand are therefore shifted +4 and reads on the reverse strand are shifted -5,
so that intervals are centered on the actual insertion site.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import IO, Iterable, Iterator, Optional, Sequence

from atacpipe.common.argparse import ArgumentParser, Namespace

FORWARD_OFFSET = 4
REVERSE_OFFSET = 5


def shift_bed_record(fields: Sequence[str]) -> Optional[list[str]]:
    """Shifts a single-end BED6 record; the strand is read from the 6th column.

    Forward strand reads have their start moved 4bp downstream and reverse strand
    reads have their end moved 5bp upstream. Returns None if the resulting interval
    is empty.
    """
    if len(fields) < 6:
        raise ValueError(f"expected BED6 record, found {len(fields)} columns")

    start = int(fields[1])
    end = int(fields[2])
    strand = fields[5]
    if strand == "+":
        start += FORWARD_OFFSET
    elif strand == "-":
        end -= REVERSE_OFFSET

    start = max(0, start)
    if end <= start:
        return None

    return [fields[0], str(start), str(end), *fields[3:]]


def shift_bedpe_record(fields: Sequence[str]) -> Optional[list[str]]:
    """Shifts a BEDPE record into a single fragment interval (chrom, start, end),
    spanning the leftmost to the rightmost coordinate of either mate. The strand
    is read from the 9th column; records on other strands than '+' and
    '-' are dropped, as are fragments that are empty after shifting.
    """
    if len(fields) < 9:
        raise ValueError(f"expected BEDPE record, found {len(fields)} columns")

    chrom = fields[0]
    start = min(int(fields[1]), int(fields[4]))
    end = max(int(fields[2]), int(fields[5]))
    strand = fields[8]

    if strand == "+":
        offset = FORWARD_OFFSET
    elif strand == "-":
        offset = -REVERSE_OFFSET
    else:
        return None

    start = max(0, start + offset)
    end += offset
    if end <= start:
        return None

    return [chrom, str(start), str(end)]


def shift_records(lines: Iterable[str], mode: str) -> Iterator[str]:
    shift = shift_bed_record if mode == "se" else shift_bedpe_record

    for line in lines:
        line = line.rstrip("\r\n")
        if not line or line.startswith(("#", "track", "browser")):
            continue

        record = shift(line.split("\t"))
        if record is not None:
            yield "\t".join(record)


def write_records(lines: Iterable[str], mode: str, out: IO[str]) -> None:
    for record in shift_records(lines, mode):
        out.write(record)
        out.write("\n")


def parse_args(argv: list[str]) -> Namespace:
    parser = ArgumentParser("atacpipe :shift_tn5")
    parser.add_argument(
        "mode",
        choices=("se", "pe"),
        help="Input is single-end reads in BED6 format (se) or read pairs in "
        "BEDPE format (pe)",
    )
    parser.add_argument("bedfile", type=Path)

    return parser.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)

    with args.bedfile.open("rt") as handle:
        write_records(handle, args.mode, sys.stdout)

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main(sys.argv[1:]))
