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
from dataclasses import dataclass
from typing import Optional

import atacpipe.common.logging
import atacpipe.pipeline
from atacpipe.common.argparse import ArgumentParser, Namespace
from atacpipe.nodes.cutadapt import NEXTERA_ADAPTER_3P, NEXTERA_ADAPTER_5P
from atacpipe.pipelines.atac.genomes import (
    DEFAULT_INDEX_ROOT,
    GenomeError,
    load_presets,
)

_DEFAULT_CONFIG_FILES = [
    "/etc/atacpipe/atacpipe.ini",
    "~/.atacpipe/atacpipe.ini",
]


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class RunConfig:
    """Settings for a single run, shared by every stage of the pipeline."""

    reads: tuple[str, ...]
    prefix: str
    single_end: bool
    threads: int
    index: str
    blacklist: str
    genome_size: str
    # Genome build and blacklist URL, if a preset was selected
    genome: Optional[str] = None
    blacklist_url: Optional[str] = None
    picard_jar: Optional[str] = None
    java_options: tuple[str, ...] = ()
    adapter_3p: str = NEXTERA_ADAPTER_3P
    adapter_5p: str = NEXTERA_ADAPTER_5P
    min_length: int = 30
    bin_size: int = 10
    mito_contigs: tuple[str, ...] = ()
    se_require_proper_pair: bool = False

    @property
    def mode(self) -> str:
        return "se" if self.single_end else "pe"


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="atacpipe",
        usage="%(prog)s [options] (-g BUILD | -i INDEX -b BED -c SIZE) "
        "READS_1 [READS_2]",
        description="Quality control, trimming, alignment, filtering, coverage "
        "tracks and peak calling for a single ATAC-seq sample. Reads are "
        "paired-end by default; use -s for single-end reads.",
        default_config_files=_DEFAULT_CONFIG_FILES,
        auto_env_var_prefix="ATACPIPE_",
    )

    parser.add_argument(
        "reads",
        nargs="*",
        metavar="FASTQ",
        help="One FASTQ file for single-end reads, or two FASTQ files (mate 1 "
        "and mate 2) for paired-end reads",
    )
    parser.add_argument(
        "--config",
        is_config_file=True,
        metavar="FILE",
        help="Read options from this config file",
    )

    group = parser.add_argument_group("Genome")
    group.add_argument(
        "-g",
        "--genome",
        metavar="BUILD",
        help="Genome build preset (hg19, hg38, or mm10); selects the Bowtie2 index, "
        "the MACS2 genome size, and downloads the ENCODE blacklist for the build",
    )
    group.add_argument(
        "-i",
        "--index",
        metavar="PREFIX",
        help="Custom Bowtie2 index prefix",
    )
    group.add_argument(
        "-b",
        "--blacklist",
        metavar="BED",
        help="Custom BED file of blacklisted regions",
    )
    group.add_argument(
        "-c",
        "--genome-size",
        metavar="SIZE",
        help="Custom effective genome size for MACS2, e.g. 'hs', 'mm', or a number",
    )
    group.add_argument(
        "--index-root",
        metavar="DIR",
        default=DEFAULT_INDEX_ROOT,
        help="Folder containing the Bowtie2 indexes used by genome presets",
    )
    group.add_argument(
        "--mito-contig",
        metavar="NAME",
        default=[],
        action="append",
        help="Additional contig names to exclude as mitochondrial, besides chrM, "
        "MT, M, and chrMT",
    )

    group = parser.add_argument_group("Run")
    group.add_argument(
        "-p",
        "--prefix",
        help="Prefix for output files; by default derived from the name of the "
        "first FASTQ file",
    )
    group.add_argument(
        "-t",
        "--threads",
        type=int,
        default=1,
        help="Number of threads used by each program",
    )
    group.add_argument(
        "-s",
        "--single-end",
        default=False,
        action="store_true",
        help="Input consists of single-end reads",
    )

    group = parser.add_argument_group("Programs")
    group.add_argument(
        "--adapter-3p",
        metavar="SEQ",
        default=NEXTERA_ADAPTER_3P,
        help="Adapter trimmed from the 3' end of reads",
    )
    group.add_argument(
        "--adapter-5p",
        metavar="SEQ",
        default=NEXTERA_ADAPTER_5P,
        help="Adapter trimmed from the 5' end of reads",
    )
    group.add_argument(
        "--min-length",
        metavar="N",
        type=int,
        default=30,
        help="Discard reads shorter than this after trimming",
    )
    group.add_argument(
        "--bin-size",
        metavar="N",
        type=int,
        default=10,
        help="Bin size used by bamCoverage",
    )
    group.add_argument(
        "--picard-jar",
        metavar="JAR",
        help="Run Picard using 'java -jar JAR' instead of the 'picard' executable",
    )
    group.add_argument(
        "--java-option",
        dest="java_options",
        metavar="OPTION",
        default=[],
        action="append",
        help="Option passed to java when running Picard from a JAR, e.g. -Xmx4g",
    )
    group.add_argument(
        "--se-require-proper-pair",
        default=False,
        action="store_true",
        help="Require the 'proper pair' flag when filtering single-end reads, as "
        "done by older versions of this pipeline; this discards every read",
    )

    atacpipe.common.logging.add_argument_group(parser)
    atacpipe.pipeline.add_argument_group(parser)

    return parser


def derive_prefix(filename: str, single_end: bool) -> str:
    """Derives an output prefix from a FASTQ file; for single-end reads the last
    extension is removed, and for paired-end reads everything from the last '_R1'
    is removed. The prefix never includes the directory of the file."""
    name = os.path.basename(filename)
    if single_end:
        prefix, _ = os.path.splitext(name)
    else:
        head, sep, _ = name.rpartition("_R1")
        prefix = head if sep else name

    if not prefix:
        raise ConfigError(f"could not derive output prefix from {filename!r}")

    return prefix


def resolve_config(args: Namespace) -> RunConfig:
    """Validates command-line options and resolves genome presets."""
    single_end = bool(args.single_end)
    reads = tuple(args.reads)
    if single_end and len(reads) != 1:
        raise ConfigError(
            f"single-end mode requires exactly one FASTQ file, got {len(reads)}"
        )
    elif not single_end and len(reads) != 2:
        raise ConfigError(
            f"paired-end mode requires exactly two FASTQ files, got {len(reads)}"
        )

    for key in ("threads", "min_length", "bin_size"):
        value = getattr(args, key)
        if value < 1:
            option = "--" + key.replace("_", "-")
            raise ConfigError(f"{option} must be a positive integer, not {value}")

    custom = {"-i": args.index, "-b": args.blacklist, "-c": args.genome_size}
    genome: str | None = args.genome
    blacklist_url: str | None = None
    if genome is not None:
        given = [key for key, value in custom.items() if value is not None]
        if given:
            raise ConfigError(
                f"both preset and custom paths given: -g cannot be combined with "
                f"{', '.join(given)}"
            )

        try:
            presets = load_presets(args.index_root)
        except GenomeError as error:
            raise ConfigError(error) from error

        preset = presets.get(genome)
        if preset is None:
            raise ConfigError(
                f"unsupported genome build {genome!r}; choose one of "
                f"{', '.join(sorted(presets))}"
            )

        index = preset.index
        blacklist = preset.blacklist
        genome_size = preset.genome_size
        blacklist_url = preset.blacklist_url
    else:
        missing = [key for key, value in custom.items() if value is None]
        if len(missing) == len(custom):
            raise ConfigError("no genome specified; use -g or -i, -b, and -c")
        elif missing:
            raise ConfigError(f"custom genome requires {', '.join(missing)}")

        index = args.index
        blacklist = args.blacklist
        genome_size = args.genome_size

    prefix = args.prefix
    if prefix is None:
        prefix = derive_prefix(reads[0], single_end)
    elif not prefix:
        raise ConfigError("output prefix must not be empty")

    return RunConfig(
        reads=reads,
        prefix=prefix,
        single_end=single_end,
        threads=args.threads,
        index=index,
        blacklist=blacklist,
        genome_size=genome_size,
        genome=genome,
        blacklist_url=blacklist_url,
        picard_jar=args.picard_jar,
        java_options=tuple(args.java_options),
        adapter_3p=args.adapter_3p,
        adapter_5p=args.adapter_5p,
        min_length=args.min_length,
        bin_size=args.bin_size,
        mito_contigs=tuple(args.mito_contig),
        se_require_proper_pair=args.se_require_proper_pair,
    )
