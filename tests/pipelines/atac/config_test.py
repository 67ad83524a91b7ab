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

import pytest

from atacpipe.nodes.cutadapt import NEXTERA_ADAPTER_3P, NEXTERA_ADAPTER_5P
from atacpipe.pipelines.atac.config import (
    ConfigError,
    RunConfig,
    build_parser,
    derive_prefix,
    resolve_config,
)

_CUSTOM = ["-i", "/genome/custom", "-b", "/genome/custom.bed", "-c", "1.2e9"]


def _resolve(*argv: str) -> RunConfig:
    return resolve_config(build_parser().parse_args(list(argv)))


########################################################################################
# Output prefixes


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("sample.fastq", "sample"),
        ("/data/sample.fq", "sample"),
        ("sample.fastq.gz", "sample.fastq"),
        ("sample", "sample"),
    ],
)
def test_derive_prefix__single_end(filename: str, expected: str) -> None:
    assert derive_prefix(filename, single_end=True) == expected


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("sampleA_R1.fq.gz", "sampleA"),
        ("/data/sampleA_R1.fq.gz", "sampleA"),
        ("lib_R1_run_R1.fq.gz", "lib_R1_run"),
        ("sampleA_1.fq.gz", "sampleA_1.fq.gz"),
    ],
)
def test_derive_prefix__paired_end(filename: str, expected: str) -> None:
    assert derive_prefix(filename, single_end=False) == expected


@pytest.mark.parametrize("filename", ["_R1.fq.gz", "/data/_R1.fq"])
def test_derive_prefix__empty_prefix(filename: str) -> None:
    with pytest.raises(ConfigError, match="could not derive output prefix"):
        derive_prefix(filename, single_end=False)


########################################################################################
# Inputs


def test_resolve__paired_end_defaults() -> None:
    config = _resolve("sampleA_R1.fq.gz", "sampleA_R2.fq.gz", *_CUSTOM)

    assert config.reads == ("sampleA_R1.fq.gz", "sampleA_R2.fq.gz")
    assert config.prefix == "sampleA"
    assert not config.single_end
    assert config.mode == "pe"
    assert config.threads == 1
    assert config.adapter_3p == NEXTERA_ADAPTER_3P
    assert config.adapter_5p == NEXTERA_ADAPTER_5P
    assert config.min_length == 30
    assert config.bin_size == 10
    assert config.picard_jar is None
    assert config.java_options == ()
    assert config.mito_contigs == ()
    assert not config.se_require_proper_pair


def test_resolve__single_end() -> None:
    config = _resolve("-s", "reads/sampleB.fastq", *_CUSTOM, "-t", "8")

    assert config.single_end
    assert config.mode == "se"
    assert config.prefix == "sampleB"
    assert config.threads == 8


def test_resolve__explicit_prefix() -> None:
    config = _resolve("-p", "out/run1", "a_R1.fq", "a_R2.fq", *_CUSTOM)

    assert config.prefix == "out/run1"


def test_resolve__empty_prefix() -> None:
    with pytest.raises(ConfigError, match="output prefix must not be empty"):
        _resolve("-p", "", "a_R1.fq", "a_R2.fq", *_CUSTOM)


@pytest.mark.parametrize(
    ("argv", "message"),
    [
        (["-s"], "single-end mode requires exactly one FASTQ file, got 0"),
        (["-s", "a.fq", "b.fq"], "single-end mode requires exactly one FASTQ file"),
        (["a_R1.fq"], "paired-end mode requires exactly two FASTQ files, got 1"),
        (["a.fq", "b.fq", "c.fq"], "paired-end mode requires exactly two FASTQ"),
    ],
)
def test_resolve__wrong_number_of_reads(argv: list[str], message: str) -> None:
    with pytest.raises(ConfigError, match=message):
        _resolve(*argv, *_CUSTOM)


@pytest.mark.parametrize(
    ("option", "value"),
    [
        ("--threads", "0"),
        ("--min-length", "-1"),
        ("--bin-size", "0"),
    ],
)
def test_resolve__non_positive_values(option: str, value: str) -> None:
    with pytest.raises(ConfigError, match=f"{option} must be a positive integer"):
        _resolve("a_R1.fq", "a_R2.fq", *_CUSTOM, option, value)


def test_resolve__program_options() -> None:
    config = _resolve(
        "a_R1.fq",
        "a_R2.fq",
        *_CUSTOM,
        "--adapter-3p",
        "AAAA",
        "--adapter-5p",
        "CCCC",
        "--min-length",
        "20",
        "--bin-size",
        "50",
        "--picard-jar",
        "/opt/picard.jar",
        "--java-option=-Xmx4g",
        "--mito-contig",
        "chrMito",
    )

    assert config.adapter_3p == "AAAA"
    assert config.adapter_5p == "CCCC"
    assert config.min_length == 20
    assert config.bin_size == 50
    assert config.picard_jar == "/opt/picard.jar"
    assert config.java_options == ("-Xmx4g",)
    assert config.mito_contigs == ("chrMito",)


########################################################################################
# Genomes


@pytest.mark.parametrize(
    ("build", "size"),
    [("hg19", "hs"), ("hg38", "hs"), ("mm10", "mm")],
)
def test_resolve__genome_presets(build: str, size: str) -> None:
    config = _resolve("a_R1.fq", "a_R2.fq", "-g", build, "--index-root", "/idx")

    assert config.genome == build
    assert config.index == f"/idx/{build}/BOWTIE2index/{build}"
    assert config.blacklist == f"{build}-blacklist.v2.bed"
    assert config.genome_size == size
    assert config.blacklist_url is not None
    assert config.blacklist_url.endswith(f"/{build}-blacklist.v2.bed.gz")


def test_resolve__custom_genome() -> None:
    config = _resolve("a_R1.fq", "a_R2.fq", *_CUSTOM)

    assert config.genome is None
    assert config.blacklist_url is None
    assert config.index == "/genome/custom"
    assert config.blacklist == "/genome/custom.bed"
    assert config.genome_size == "1.2e9"


def test_resolve__unsupported_genome() -> None:
    with pytest.raises(ConfigError, match="unsupported genome build 'hg18'"):
        _resolve("a_R1.fq", "a_R2.fq", "-g", "hg18")


def test_resolve__preset_and_custom_paths() -> None:
    with pytest.raises(ConfigError, match="-g cannot be combined with -i, -c"):
        _resolve("a_R1.fq", "a_R2.fq", "-g", "hg38", "-i", "/idx", "-c", "hs")


def test_resolve__no_genome() -> None:
    with pytest.raises(ConfigError, match="no genome specified"):
        _resolve("a_R1.fq", "a_R2.fq")


def test_resolve__incomplete_custom_genome() -> None:
    with pytest.raises(ConfigError, match="custom genome requires -b, -c"):
        _resolve("a_R1.fq", "a_R2.fq", "-i", "/genome/custom")


########################################################################################
# Config files


def test_parser__config_file(tmp_path: Path) -> None:
    config_file = tmp_path / "atacpipe.ini"
    config_file.write_text("genome = mm10\nthreads = 4\n")

    config = _resolve("--config", str(config_file), "a_R1.fq", "a_R2.fq")

    assert config.genome == "mm10"
    assert config.threads == 4


def test_parser__environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ATACPIPE_THREADS", "6")

    config = _resolve("a_R1.fq", "a_R2.fq", *_CUSTOM)

    assert config.threads == 6
