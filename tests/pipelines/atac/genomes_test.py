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

import gzip
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
import requests

from atacpipe.pipelines.atac import genomes
from atacpipe.pipelines.atac.genomes import (
    DEFAULT_INDEX_ROOT,
    DownloadError,
    GenomeError,
    GenomePreset,
    fetch_blacklist,
    load_presets,
)

_URL = "https://example.org/hg38-blacklist.v2.bed.gz"
_BLACKLIST = "chr1\t628903\t635104\tHigh Signal Region\nchr1\t5850087\t5850571\tLow\n"

########################################################################################
# Presets


def test_load_presets__default_root() -> None:
    presets = load_presets()

    assert sorted(presets) == ["hg19", "hg38", "mm10"]
    assert presets["hg38"] == GenomePreset(
        name="hg38",
        index=f"{DEFAULT_INDEX_ROOT}/hg38/BOWTIE2index/hg38",
        genome_size="hs",
        blacklist_url="https://raw.githubusercontent.com/Boyle-Lab/Blacklist/"
        "master/lists/hg38-blacklist.v2.bed.gz",
    )
    assert presets["mm10"].genome_size == "mm"


def test_load_presets__custom_root() -> None:
    presets = load_presets("/data/genomes/")

    assert presets["hg19"].index == "/data/genomes/hg19/BOWTIE2index/hg19"


def test_preset__blacklist_filename() -> None:
    preset = GenomePreset(name="mm10", index="mm10", genome_size="mm", blacklist_url="")

    assert preset.blacklist == "mm10-blacklist.v2.bed"


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("hg38: [", "error reading genome presets"),
        ("- hg38\n", "genome presets must be a mapping"),
        ("hg38: hs\n", "invalid preset for genome 'hg38'"),
        ("hg38:\n  index: x\n  size: hs\n", "'blacklist' missing from preset 'hg38'"),
        ("1:\n  index: x\n  size: hs\n  blacklist: y\n", "invalid genome name 1"),
    ],
)
def test_load_presets__invalid(
    monkeypatch: pytest.MonkeyPatch,
    text: str,
    message: str,
) -> None:
    monkeypatch.setattr(genomes.resources, "read_text", lambda _name: text)

    with pytest.raises(GenomeError, match=message):
        load_presets()


########################################################################################
# Blacklist downloads


def _response(*chunks: bytes, error: Exception | None = None) -> Mock:
    response = Mock()
    response.iter_content.return_value = iter(chunks)
    if error is not None:
        response.raise_for_status.side_effect = error

    return response


def test_fetch_blacklist(tmp_path: Path) -> None:
    destination = tmp_path / "hg38-blacklist.v2.bed"
    data = gzip.compress(_BLACKLIST.encode())
    response = _response(data[:10], data[10:])

    with patch("requests.get", return_value=response) as mock_get:
        assert fetch_blacklist(_URL, str(destination))

    mock_get.assert_called_once_with(_URL, stream=True, timeout=60)
    response.close.assert_called_once_with()
    assert destination.read_text() == _BLACKLIST
    assert sorted(tmp_path.iterdir()) == [destination]


def test_fetch_blacklist__existing_file_is_reused(tmp_path: Path) -> None:
    destination = tmp_path / "hg38-blacklist.v2.bed"
    destination.write_text("chr1\t0\t10\n")

    with patch("requests.get") as mock_get:
        assert not fetch_blacklist(_URL, str(destination))

    mock_get.assert_not_called()
    assert destination.read_text() == "chr1\t0\t10\n"


def test_fetch_blacklist__http_error(tmp_path: Path) -> None:
    destination = tmp_path / "hg38-blacklist.v2.bed"
    response = _response(error=requests.HTTPError("404 Client Error: Not Found"))

    with patch("requests.get", return_value=response):
        with pytest.raises(DownloadError, match="404 Client Error"):
            fetch_blacklist(_URL, str(destination))

    response.close.assert_called_once_with()
    assert list(tmp_path.iterdir()) == []


def test_fetch_blacklist__connection_error(tmp_path: Path) -> None:
    destination = tmp_path / "hg38-blacklist.v2.bed"

    with patch("requests.get", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(DownloadError, match="failed to download"):
            fetch_blacklist(_URL, str(destination))

    assert list(tmp_path.iterdir()) == []


def test_fetch_blacklist__truncated_data(tmp_path: Path) -> None:
    destination = tmp_path / "hg38-blacklist.v2.bed"
    data = gzip.compress(_BLACKLIST.encode())

    with patch("requests.get", return_value=_response(data[:-8])):
        with pytest.raises(DownloadError, match="truncated gzip data"):
            fetch_blacklist(_URL, str(destination))

    assert list(tmp_path.iterdir()) == []


def test_fetch_blacklist__invalid_data(tmp_path: Path) -> None:
    destination = tmp_path / "hg38-blacklist.v2.bed"

    with patch("requests.get", return_value=_response(b"not gzip compressed")):
        with pytest.raises(DownloadError, match="failed to write blacklist"):
            fetch_blacklist(_URL, str(destination))

    assert list(tmp_path.iterdir()) == []
