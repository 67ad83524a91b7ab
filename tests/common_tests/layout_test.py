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

import pytest

from atacpipe.common.layout import Layout, LayoutError


def test_layout__minimal() -> None:
    layout = Layout({})

    assert layout.kwargs == {}
    assert list(layout) == []


def test_layout__nested_layout() -> None:
    layout = Layout(
        {
            "logs": {"{prefix}_align.log": "align_log"},
            "{prefix}.bam": "bam",
        },
        prefix="sampleA",
    )

    assert sorted(layout) == ["align_log", "bam"]
    assert layout["align_log"] == "logs/sampleA_align.log"
    assert layout["bam"] == "sampleA.bam"


def test_layout__unknown_layout_key() -> None:
    layout = Layout({"{root}": "my_file"}, root="foo")

    with pytest.raises(KeyError, match="unknown layout key"):
        layout["other_file"]


def test_layout__missing_value() -> None:
    layout = Layout({"{root}": "my_file"})

    with pytest.raises(KeyError, match="root"):
        layout["my_file"]


def test_layout__unnamed_field() -> None:
    with pytest.raises(LayoutError, match="unnamed field are not allowed in"):
        Layout({"{}": "my_file"})


def test_layout__unknown_field() -> None:
    with pytest.raises(LayoutError, match="unknown key"):
        Layout({"{root}": "my_file"}, foobar="/path/to/somewhere")


def test_layout__invalid_keys_and_values() -> None:
    with pytest.raises(LayoutError, match="invalid key 17"):
        Layout({17: "my_file"})  # pyright: ignore[reportArgumentType]

    with pytest.raises(LayoutError, match="invalid value 17"):
        Layout({"{root}": 17})  # pyright: ignore[reportArgumentType]


def test_layout__duplicate_labels() -> None:
    with pytest.raises(LayoutError, match="'file_1' used multiple times"):
        Layout({"foo": "file_1", "{root}": {"zod": "file_1"}})


def test_layout__label_used_as_field() -> None:
    with pytest.raises(LayoutError, match="'file_1' used as both key and field"):
        Layout({"foo": "file_1", "{root}": {"{file_1}": "file_2"}})


def test_layout__fields_in_nested_folders() -> None:
    layout = Layout(
        {"{root}": {"macs2": {"{prefix}_peaks.broadPeak": "peaks"}}},
        root="/data",
        prefix="sampleB",
    )

    assert layout["peaks"] == "/data/macs2/sampleB_peaks.broadPeak"
