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

import dataclasses

import pytest

from atacpipe.nodes.bowtie2 import Bowtie2Node
from atacpipe.nodes.macs2 import MACS2BroadPeaksNode
from atacpipe.nodes.picard import MarkDuplicatesNode
from atacpipe.nodes.samtools import BAMFilterNode, RemoveDuplicatesNode
from atacpipe.nodes.tn5 import ShiftTn5Node
from atacpipe.pipeline import Pypeline
from atacpipe.pipelines.atac.config import RunConfig
from atacpipe.pipelines.atac.pipeline import (
    SE_MACS2_OPTIONS,
    build_filtering,
    build_peak_calling,
    build_pipeline,
    build_qc_alignment,
    build_signal_track,
    output_layout,
)

_PE_CONFIG = RunConfig(
    reads=("/data/sampleA_R1.fq.gz", "/data/sampleA_R2.fq.gz"),
    prefix="sampleA",
    single_end=False,
    threads=2,
    index="/genome/hg38",
    blacklist="hg38-blacklist.v2.bed",
    genome_size="hs",
)

_SE_CONFIG = dataclasses.replace(
    _PE_CONFIG,
    reads=("/data/sampleB.fastq.gz",),
    prefix="sampleB",
    single_end=True,
)


def _output_files(config: RunConfig) -> dict[str, set[str]]:
    outputs: set[str] = set()
    intermediate: set[str] = set()
    for task in Pypeline(build_pipeline(config).nodes).tasks:
        outputs.update(task.output_files)
        intermediate.update(task.intermediate_output_files)

    return {"final": outputs - intermediate, "intermediate": intermediate}


def _find(config: RunConfig, node_type: type) -> list:
    tasks = Pypeline(build_pipeline(config).nodes).tasks

    return [task for task in tasks if isinstance(task, node_type)]


########################################################################################
# Output files


def test_paired_end__output_files() -> None:
    files = _output_files(_PE_CONFIG)

    assert files["final"] == {
        "fastqc/sampleA_R1_fastqc.html",
        "fastqc/sampleA_R1_fastqc.zip",
        "fastqc/sampleA_R2_fastqc.html",
        "fastqc/sampleA_R2_fastqc.zip",
        "logs/sampleA_cutadapt.log",
        "logs/sampleA_bowtie2.log",
        "logs/sampleA_dup.log",
        "logs/sampleA_mkdup.flagstat",
        "logs/sampleA_filtered.flagstat",
        "logs/sampleA_align.log",
        "sampleA_trimmed_R1.fastq.gz",
        "sampleA_trimmed_R2.fastq.gz",
        "sampleA_filtered.bam",
        "sampleA_filtered.bam.bai",
        "sampleA.bedpe",
        "sampleA_shift.bed",
        "sampleA.bw",
        "macs2/sampleA_peaks.broadPeak",
        "macs2/sampleA_peaks.gappedPeak",
        "macs2/sampleA_peaks.xls",
        "macs2/sampleA_broad_filtered.bed",
    }
    assert files["intermediate"] == {
        "sampleA.sam",
        "sampleA.bam",
        "sampleA_srt.bam",
        "sampleA_mkdup.bam",
        "sampleA_mkdup.bam.bai",
        "sampleA_chrM.bam",
        "sampleA_nsrt.bam",
    }


def test_single_end__output_files() -> None:
    files = _output_files(_SE_CONFIG)

    assert files["final"] == {
        "fastqc/sampleB_fastqc.html",
        "fastqc/sampleB_fastqc.zip",
        "logs/sampleB_cutadapt.log",
        "logs/sampleB_bowtie2.log",
        "logs/sampleB_rmdup.flagstat",
        "logs/sampleB_filtered.flagstat",
        "logs/sampleB_align.log",
        "sampleB_trimmed.fastq.gz",
        "sampleB_filtered.bam",
        "sampleB_filtered.bam.bai",
        "sampleB_shift_se.bed",
        "sampleB.bw",
        "macs2/sampleB_peaks.broadPeak",
        "macs2/sampleB_peaks.gappedPeak",
        "macs2/sampleB_peaks.xls",
        "macs2/sampleB_broad_filtered.bed",
    }
    assert files["intermediate"] == {
        "sampleB.sam",
        "sampleB.bam",
        "sampleB_srt.bam",
        "sampleB_rm.bam",
        "sampleB_rm.bam.bai",
        "sampleB_chrM.bam",
        "sampleB_se.bed",
    }


def test_prefix_with_directory() -> None:
    config = dataclasses.replace(_PE_CONFIG, prefix="results/sampleA")
    layout = output_layout(config)

    assert layout["align_log"] == "logs/results/sampleA_align.log"
    assert layout["filtered_bam"] == "results/sampleA_filtered.bam"

    (peaks,) = _find(config, MACS2BroadPeaksNode)
    assert peaks.out_broad_peaks == "macs2/results/sampleA_peaks.broadPeak"


########################################################################################
# Tasks


def test_task_order__paired_end() -> None:
    tasks = Pypeline(build_pipeline(_PE_CONFIG).nodes).tasks
    position = {type(task).__name__: idx for idx, task in enumerate(tasks)}

    assert position["CutadaptNode"] < position["Bowtie2Node"]
    assert position["Bowtie2Node"] < position["SAMToBAMNode"]
    assert position["MarkDuplicatesNode"] < position["ExcludeContigsNode"]
    assert position["ExcludeContigsNode"] < position["BAMFilterNode"]
    assert position["ShiftTn5Node"] < position["MACS2BroadPeaksNode"]
    assert position["MACS2BroadPeaksNode"] < position["SubtractIntervalsNode"]
    assert len(tasks) == len(set(tasks))


def test_paired_end__filtering() -> None:
    (node,) = _find(_PE_CONFIG, BAMFilterNode)
    call = node.command.to_call("/temp")

    assert call[5:9] == ["-f", "2", "-F", "1804"]
    assert call[-1] == "sampleA_chrM.bam"


@pytest.mark.parametrize(
    ("require_proper_pair", "expected"),
    [(False, ["-F", "1796"]), (True, ["-f", "2", "-F", "1796"])],
)
def test_single_end__filtering(
    require_proper_pair: bool,
    expected: list[str],
) -> None:
    config = dataclasses.replace(
        _SE_CONFIG,
        se_require_proper_pair=require_proper_pair,
    )
    (node,) = _find(config, BAMFilterNode)
    call = node.command.to_call("/temp")

    assert call[5 : 5 + len(expected)] == expected
    assert call[-1] == "sampleB_chrM.bam"


def test_paired_end__duplicates_are_marked_with_picard() -> None:
    config = dataclasses.replace(
        _PE_CONFIG,
        picard_jar="/opt/picard.jar",
        java_options=("-Xmx4g",),
    )

    assert not _find(config, RemoveDuplicatesNode)
    (node,) = _find(config, MarkDuplicatesNode)
    assert node.command.to_call("/temp")[:5] == [
        "java",
        "-Xmx4g",
        "-jar",
        "/opt/picard.jar",
        "MarkDuplicates",
    ]


def test_single_end__duplicates_are_removed_with_samtools() -> None:
    assert not _find(_SE_CONFIG, MarkDuplicatesNode)
    assert _find(_SE_CONFIG, RemoveDuplicatesNode)


def test_alignment__uses_trimmed_reads() -> None:
    (node,) = _find(_PE_CONFIG, Bowtie2Node)

    assert node.input_files >= {
        "sampleA_trimmed_R1.fastq.gz",
        "sampleA_trimmed_R2.fastq.gz",
    }


def test_peak_calling__paired_end() -> None:
    (shift,) = _find(_PE_CONFIG, ShiftTn5Node)
    (peaks,) = _find(_PE_CONFIG, MACS2BroadPeaksNode)

    assert shift.command.to_call("/temp")[3:] == [":shift_tn5", "pe", "sampleA.bedpe"]
    assert peaks.command.to_call("/temp")[2:8] == [
        "-t",
        "sampleA_shift.bed",
        "-f",
        "BEDPE",
        "-g",
        "hs",
    ]
    assert "--nomodel" not in peaks.command.to_call("/temp")


def test_peak_calling__single_end() -> None:
    (shift,) = _find(_SE_CONFIG, ShiftTn5Node)
    (peaks,) = _find(_SE_CONFIG, MACS2BroadPeaksNode)
    call = peaks.command.to_call("/temp")

    assert shift.command.to_call("/temp")[3:] == [":shift_tn5", "se", "sampleB_se.bed"]
    assert call[2:6] == ["-t", "sampleB_shift_se.bed", "-f", "BED"]
    assert call[-5:] == ["--nomodel", "--shift", "-37", "--extsize", "73"]
    assert SE_MACS2_OPTIONS == {"--nomodel": None, "--shift": -37, "--extsize": 73}


def test_peak_calling__blacklist_is_input() -> None:
    stage = build_pipeline(_PE_CONFIG)

    assert stage.peaks_file == "macs2/sampleA_broad_filtered.bed"
    assert stage.filtered_peaks.input_files == frozenset(
        ["macs2/sampleA_peaks.broadPeak", "hg38-blacklist.v2.bed"]
    )


def test_stages_chain_records() -> None:
    qc_alignment = build_qc_alignment(_PE_CONFIG)
    filtering = build_filtering(_PE_CONFIG, qc_alignment)
    signal_track = build_signal_track(_PE_CONFIG, filtering)
    peak_calling = build_peak_calling(_PE_CONFIG, signal_track)

    assert qc_alignment.trimmed_reads == (
        "sampleA_trimmed_R1.fastq.gz",
        "sampleA_trimmed_R2.fastq.gz",
    )
    assert filtering.bam == "sampleA_filtered.bam"
    assert filtering.bam_index == "sampleA_filtered.bam.bai"
    assert filtering.fragments_format == "BEDPE"
    assert signal_track.bigwig == "sampleA.bw"
    assert peak_calling.shifted == "sampleA_shift.bed"
    assert peak_calling.broad_peaks == "macs2/sampleA_peaks.broadPeak"
    assert peak_calling.signal_track is signal_track


def test_report_sections() -> None:
    stage = build_pipeline(_SE_CONFIG)
    report = stage.signal_track.filtering.report

    assert report.input_files == frozenset(
        [
            "logs/sampleB_bowtie2.log",
            "logs/sampleB_rmdup.flagstat",
            "logs/sampleB_filtered.flagstat",
        ]
    )
    assert report.output_files == frozenset(["logs/sampleB_align.log"])
