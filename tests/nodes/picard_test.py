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

import getpass
import os
from pathlib import Path

import pytest

from atacpipe.node import CommandNode
from atacpipe.nodes.picard import MarkDuplicatesNode, picard_command


def test_picard_command__wrapper() -> None:
    command = picard_command("MarkDuplicates")

    assert command.to_call("/temp") == ["picard", "MarkDuplicates"]
    assert command.input_files == set()


def test_picard_command__jar() -> None:
    command = picard_command(
        "MarkDuplicates",
        picard_jar="/opt/picard.jar",
        java_options=["-Xmx4g"],
    )

    assert command.to_call("/temp") == [
        "java",
        "-Xmx4g",
        "-jar",
        "/opt/picard.jar",
        "MarkDuplicates",
    ]
    assert command.input_files == {"/opt/picard.jar"}


def test_picard_command__requirement_is_shared() -> None:
    (requirement_1,) = picard_command("MarkDuplicates").requirements
    (requirement_2,) = picard_command("SortSam").requirements

    assert requirement_1 is requirement_2
    assert requirement_1.name == "Picard"


def test_mark_duplicates__call() -> None:
    node = MarkDuplicatesNode(
        in_bam="/out/a_srt.bam",
        out_bam="/out/a_mkdup.bam",
        out_metrics="/out/logs/a_dup.log",
    )

    assert node.command.to_call("/temp") == [
        "picard",
        "MarkDuplicates",
        "-I",
        "/out/a_srt.bam",
        "-O",
        "/temp/a_mkdup.bam",
        "-M",
        "/temp/a_dup.log",
        "--REMOVE_DUPLICATES",
        "false",
        "--TMP_DIR",
        "/temp",
    ]
    assert node.output_files == frozenset(["/out/a_mkdup.bam", "/out/logs/a_dup.log"])
    assert str(node) == "marking PCR duplicates in '/out/a_srt.bam'"


def test_mark_duplicates__teardown_removes_java_folders(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    committed: list[str] = []
    monkeypatch.setattr(
        CommandNode, "_teardown", lambda _self, temp: committed.append(temp)
    )

    node = MarkDuplicatesNode(
        in_bam="/out/a_srt.bam",
        out_bam="/out/a_mkdup.bam",
        out_metrics="/out/logs/a_dup.log",
    )

    user = getpass.getuser()
    (tmp_path / user).mkdir()
    (tmp_path / ("hsperfdata_" + user)).mkdir()
    (tmp_path / "a_mkdup.bam").touch()

    node._teardown(str(tmp_path))

    assert committed == [str(tmp_path)]
    assert sorted(os.listdir(tmp_path)) == ["a_mkdup.bam"]
