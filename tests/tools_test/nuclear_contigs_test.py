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

from pathlib import Path

import pysam
import pytest

from atacpipe.tools.nuclear_contigs import is_mitochondrial, main, nuclear_contigs


@pytest.mark.parametrize("name", ["chrM", "chrm", "MT", "M", "chrMT", "mt"])
def test_is_mitochondrial__default_names(name: str) -> None:
    assert is_mitochondrial(name)


@pytest.mark.parametrize("name", ["chr1", "chrX", "chrMito", "Mt_random", "1"])
def test_is_mitochondrial__nuclear_names(name: str) -> None:
    assert not is_mitochondrial(name)


def test_is_mitochondrial__extra_names() -> None:
    assert is_mitochondrial("chrMito", ["chrMito"])
    assert not is_mitochondrial("chrmito", ["chrMito"])


def test_nuclear_contigs() -> None:
    contigs = [("chr1", 1000), ("chrM", 16569), ("chr2", 500), ("chrMito", 20)]

    assert list(nuclear_contigs(contigs)) == [
        ("chr1", 1000),
        ("chr2", 500),
        ("chrMito", 20),
    ]
    assert list(nuclear_contigs(contigs, ["chrMito"])) == [
        ("chr1", 1000),
        ("chr2", 500),
    ]


def test_main(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    bamfile = tmp_path / "sample.bam"
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [
            {"SN": "chr1", "LN": 1000},
            {"SN": "chrM", "LN": 16569},
            {"SN": "chr2", "LN": 500},
        ],
    }
    with pysam.AlignmentFile(str(bamfile), "wb", header=header):
        pass

    assert main([str(bamfile)]) == 0

    captured = capsys.readouterr()
    assert captured.out == "chr1\t0\t1000\nchr2\t0\t500\n"
