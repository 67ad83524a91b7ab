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
"""Tasks for a single ATAC-seq sample.

The pipeline is built by four stage functions, each taking the run configuration
and the record returned by the previous stage, and each returning a record of the
tasks it created and of the files those tasks produce.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Literal

from atacpipe.common.layout import Layout
from atacpipe.node import Node
from atacpipe.nodes.bedtools import BAMToBEDNode, SubtractIntervalsNode
from atacpipe.nodes.bowtie2 import Bowtie2Node
from atacpipe.nodes.cutadapt import CutadaptNode
from atacpipe.nodes.deeptools import BAMCoverageNode
from atacpipe.nodes.fastqc import FastQCNode
from atacpipe.nodes.macs2 import MACS2BroadPeaksNode
from atacpipe.nodes.picard import MarkDuplicatesNode
from atacpipe.nodes.reports import ConcatenateLogsNode
from atacpipe.nodes.samtools import (
    EXCLUDE_FLAGS_PE,
    EXCLUDE_FLAGS_SE,
    FLAG_PROPER_PAIR,
    BAMFilterNode,
    BAMIndexNode,
    BAMSortNode,
    ExcludeContigsNode,
    FlagstatNode,
    RemoveDuplicatesNode,
    SAMToBAMNode,
)
from atacpipe.nodes.tn5 import ShiftTn5Node
from atacpipe.pipelines.atac.config import RunConfig

# MACS2 options for single-end reads, centering a 73bp window on the cut site
SE_MACS2_OPTIONS = {"--nomodel": None, "--shift": -37, "--extsize": 73}

_LAYOUT = {
    "fastqc": "fastqc_dir",
    "logs": {
        "{prefix}_cutadapt.log": "cutadapt_log",
        "{prefix}_bowtie2.log": "bowtie2_log",
        "{prefix}_dup.log": "dup_metrics",
        "{prefix}_rmdup.flagstat": "rmdup_flagstat",
        "{prefix}_mkdup.flagstat": "mkdup_flagstat",
        "{prefix}_filtered.flagstat": "filtered_flagstat",
        "{prefix}_align.log": "align_log",
    },
    "macs2": {
        "{prefix}_peaks.broadPeak": "broad_peaks",
        "{prefix}_broad_filtered.bed": "filtered_peaks",
    },
    "{prefix}_trimmed.fastq.gz": "trimmed_se",
    "{prefix}_trimmed_R1.fastq.gz": "trimmed_1",
    "{prefix}_trimmed_R2.fastq.gz": "trimmed_2",
    "{prefix}.sam": "sam",
    "{prefix}.bam": "bam",
    "{prefix}_srt.bam": "sorted_bam",
    "{prefix}_rm.bam": "rmdup_bam",
    "{prefix}_mkdup.bam": "mkdup_bam",
    "{prefix}_chrM.bam": "nuclear_bam",
    "{prefix}_filtered.bam": "filtered_bam",
    "{prefix}_nsrt.bam": "name_sorted_bam",
    "{prefix}.bedpe": "bedpe",
    "{prefix}_se.bed": "se_bed",
    "{prefix}_shift.bed": "shifted_pe",
    "{prefix}_shift_se.bed": "shifted_se",
    "{prefix}.bw": "bigwig",
}


def output_layout(config: RunConfig) -> Layout:
    """Returns the layout of output files for the given run."""
    return Layout(_LAYOUT, prefix=config.prefix)


@dataclass(frozen=True)
class QCAlignmentStage:
    fastqc: Node
    trimming: Node
    alignment: Node
    trimmed_reads: tuple[str, ...]
    sam: str
    bowtie2_log: str


@dataclass(frozen=True)
class FilteringStage:
    qc_alignment: QCAlignmentStage
    filtered_bam: Node
    filtered_index: Node
    fragments: Node
    report: Node
    bam: str
    bam_index: str
    # Reads as BED (single-end) or read pairs as BEDPE (paired-end)
    fragments_file: str
    fragments_format: Literal["BED", "BEDPE"]
    align_log: str


@dataclass(frozen=True)
class SignalTrackStage:
    filtering: FilteringStage
    coverage: Node
    bigwig: str


@dataclass(frozen=True)
class PeakCallingStage:
    signal_track: SignalTrackStage
    shift: Node
    peaks: Node
    filtered_peaks: Node
    shifted: str
    broad_peaks: str
    peaks_file: str

    @property
    def nodes(self) -> tuple[Node, ...]:
        """Final tasks of every stage; running these runs the entire pipeline."""
        filtering = self.signal_track.filtering

        return (
            filtering.qc_alignment.fastqc,
            filtering.report,
            self.signal_track.coverage,
            self.filtered_peaks,
        )


def build_qc_alignment(config: RunConfig) -> QCAlignmentStage:
    layout = output_layout(config)

    fastqc = FastQCNode(
        in_files=config.reads,
        out_folder=layout["fastqc_dir"],
        threads=config.threads,
    )

    if config.single_end:
        (in_fq_1,) = config.reads
        in_fq_2 = None
        trimmed: tuple[str, ...] = (layout["trimmed_se"],)
    else:
        in_fq_1, in_fq_2 = config.reads
        trimmed = (layout["trimmed_1"], layout["trimmed_2"])

    trimming = CutadaptNode(
        in_fq_1=in_fq_1,
        in_fq_2=in_fq_2,
        out_fq_1=trimmed[0],
        out_fq_2=trimmed[1] if len(trimmed) > 1 else None,
        out_log=layout["cutadapt_log"],
        adapter_3p=config.adapter_3p,
        adapter_5p=config.adapter_5p,
        min_length=config.min_length,
        threads=config.threads,
    )

    alignment = Bowtie2Node(
        input_file_1=trimmed[0],
        input_file_2=trimmed[1] if len(trimmed) > 1 else None,
        output_file=layout["sam"],
        output_log=layout["bowtie2_log"],
        reference=config.index,
        threads=config.threads,
        dependencies=[trimming],
    )
    alignment.mark_intermediate_files("*.sam")

    return QCAlignmentStage(
        fastqc=fastqc,
        trimming=trimming,
        alignment=alignment,
        trimmed_reads=trimmed,
        sam=layout["sam"],
        bowtie2_log=layout["bowtie2_log"],
    )


def build_filtering(config: RunConfig, previous: QCAlignmentStage) -> FilteringStage:
    layout = output_layout(config)
    threads = config.threads

    to_bam = SAMToBAMNode(
        in_file=previous.sam,
        out_file=layout["bam"],
        threads=threads,
        dependencies=[previous.alignment],
    )
    to_bam.mark_intermediate_files()

    sorted_bam = BAMSortNode(
        in_file=layout["bam"],
        out_file=layout["sorted_bam"],
        threads=threads,
        dependencies=[to_bam],
    )
    sorted_bam.mark_intermediate_files()

    if config.single_end:
        dedup_bam = layout["rmdup_bam"]
        dedup_flagstat = layout["rmdup_flagstat"]
        dedup_header = "flagstat after rmdup:"
        dedup: Node = RemoveDuplicatesNode(
            infile=layout["sorted_bam"],
            outfile=dedup_bam,
            dependencies=[sorted_bam],
        )
        dedup.mark_intermediate_files()

        require_flags = FLAG_PROPER_PAIR if config.se_require_proper_pair else 0
        exclude_flags = EXCLUDE_FLAGS_SE
    else:
        dedup_bam = layout["mkdup_bam"]
        dedup_flagstat = layout["mkdup_flagstat"]
        dedup_header = "flagstat after mkdup:"
        dedup = MarkDuplicatesNode(
            in_bam=layout["sorted_bam"],
            out_bam=dedup_bam,
            out_metrics=layout["dup_metrics"],
            picard_jar=config.picard_jar,
            java_options=config.java_options,
            dependencies=[sorted_bam],
        )
        dedup.mark_intermediate_files("*.bam")

        require_flags = FLAG_PROPER_PAIR
        exclude_flags = EXCLUDE_FLAGS_PE

    dedup_stats = FlagstatNode(
        infile=dedup_bam,
        outfile=dedup_flagstat,
        threads=threads,
        dependencies=[dedup],
    )

    dedup_index = BAMIndexNode(infile=dedup_bam, threads=threads, dependencies=[dedup])
    dedup_index.mark_intermediate_files()

    nuclear = ExcludeContigsNode(
        infile=dedup_bam,
        outfile=layout["nuclear_bam"],
        mito_contigs=config.mito_contigs,
        threads=threads,
        dependencies=[dedup_index],
    )
    nuclear.mark_intermediate_files()

    filtered = BAMFilterNode(
        infile=layout["nuclear_bam"],
        outfile=layout["filtered_bam"],
        require_flags=require_flags,
        exclude_flags=exclude_flags,
        threads=threads,
        dependencies=[nuclear],
    )

    filtered_stats = FlagstatNode(
        infile=layout["filtered_bam"],
        outfile=layout["filtered_flagstat"],
        threads=threads,
        dependencies=[filtered],
    )

    filtered_index = BAMIndexNode(
        infile=layout["filtered_bam"],
        threads=threads,
        dependencies=[filtered],
    )

    fragments_format: Literal["BED", "BEDPE"]
    if config.single_end:
        fragments_file = layout["se_bed"]
        fragments_format = "BED"
        fragments: Node = BAMToBEDNode(
            infile=layout["filtered_bam"],
            outfile=fragments_file,
            dependencies=[filtered],
        )
        fragments.mark_intermediate_files()
    else:
        name_sorted = BAMSortNode(
            in_file=layout["filtered_bam"],
            out_file=layout["name_sorted_bam"],
            by_name=True,
            threads=threads,
            dependencies=[filtered],
        )
        name_sorted.mark_intermediate_files()

        fragments_file = layout["bedpe"]
        fragments_format = "BEDPE"
        fragments = BAMToBEDNode(
            infile=layout["name_sorted_bam"],
            outfile=fragments_file,
            bedpe=True,
            dependencies=[name_sorted],
        )

    report = ConcatenateLogsNode(
        sections=[
            ("Bowtie2 mapping summary:", previous.bowtie2_log),
            (dedup_header, dedup_flagstat),
            ("flagstat after filter:", layout["filtered_flagstat"]),
        ],
        outfile=layout["align_log"],
        dependencies=[previous.alignment, dedup_stats, filtered_stats],
    )

    return FilteringStage(
        qc_alignment=previous,
        filtered_bam=filtered,
        filtered_index=filtered_index,
        fragments=fragments,
        report=report,
        bam=layout["filtered_bam"],
        bam_index=layout["filtered_bam"] + ".bai",
        fragments_file=fragments_file,
        fragments_format=fragments_format,
        align_log=layout["align_log"],
    )


def build_signal_track(config: RunConfig, previous: FilteringStage) -> SignalTrackStage:
    layout = output_layout(config)

    coverage = BAMCoverageNode(
        in_bam=previous.bam,
        out_bigwig=layout["bigwig"],
        bin_size=config.bin_size,
        normalization="CPM",
        threads=config.threads,
        dependencies=[previous.filtered_index],
    )

    return SignalTrackStage(
        filtering=previous,
        coverage=coverage,
        bigwig=layout["bigwig"],
    )


def build_peak_calling(
    config: RunConfig, previous: SignalTrackStage
) -> PeakCallingStage:
    layout = output_layout(config)
    filtering = previous.filtering

    shifted = layout["shifted_se"] if config.single_end else layout["shifted_pe"]
    shift = ShiftTn5Node(
        mode=config.mode,
        infile=filtering.fragments_file,
        outfile=shifted,
        dependencies=[filtering.fragments],
    )

    peaks = MACS2BroadPeaksNode(
        in_file=shifted,
        in_format=filtering.fragments_format,
        genome_size=config.genome_size,
        name=os.path.basename(config.prefix),
        out_folder=os.path.dirname(layout["broad_peaks"]),
        options=SE_MACS2_OPTIONS if config.single_end else None,
        dependencies=[shift],
    )

    filtered_peaks = SubtractIntervalsNode(
        infile=peaks.out_broad_peaks,
        exclude=config.blacklist,
        outfile=layout["filtered_peaks"],
        dependencies=[peaks],
    )

    return PeakCallingStage(
        signal_track=previous,
        shift=shift,
        peaks=peaks,
        filtered_peaks=filtered_peaks,
        shifted=shifted,
        broad_peaks=peaks.out_broad_peaks,
        peaks_file=layout["filtered_peaks"],
    )


def build_pipeline(config: RunConfig) -> PeakCallingStage:
    log = logging.getLogger(__name__)
    log.info(
        "Building %s pipeline for %r",
        "single-end" if config.single_end else "paired-end",
        config.prefix,
    )

    qc_alignment = build_qc_alignment(config)
    filtering = build_filtering(config, qc_alignment)
    signal_track = build_signal_track(config, filtering)

    return build_peak_calling(config, signal_track)
