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
"""Genome build presets and retrieval of blacklisted regions for presets."""
from __future__ import annotations

import logging
import os
import zlib
from dataclasses import dataclass
from typing import Any

import requests

from atacpipe.common import resources
from atacpipe.common.fileutils import move_file, try_remove
from atacpipe.common.yaml import YAMLError, safe_load

DEFAULT_INDEX_ROOT = "/mnt/date3/Project/zhaoqy/genome"

_DOWNLOAD_CHUNK_SIZE = 64 * 1024
_DOWNLOAD_TIMEOUT = 60


class GenomeError(Exception):
    pass


class DownloadError(GenomeError):
    pass


@dataclass(frozen=True)
class GenomePreset:
    name: str
    index: str
    genome_size: str
    blacklist_url: str

    @property
    def blacklist(self) -> str:
        """Name of the decompressed blacklist in the working directory."""
        return f"{self.name}-blacklist.v2.bed"


def load_presets(index_root: str = DEFAULT_INDEX_ROOT) -> dict[str, GenomePreset]:
    """Reads the packaged genome presets, placing indexes under 'index_root'."""
    try:
        data = safe_load(resources.read_text("genomes.yaml"))
    except YAMLError as error:
        raise GenomeError(f"error reading genome presets: {error}") from error

    if not isinstance(data, dict):
        raise GenomeError(f"genome presets must be a mapping, not {data!r}")

    index_root = index_root.rstrip("/") or "/"
    presets: dict[str, GenomePreset] = {}
    for name, values in data.items():
        presets[name] = _parse_preset(name, values, index_root)

    return presets


def fetch_blacklist(url: str, destination: str) -> bool:
    """Downloads the gzip compressed blacklist at 'url' and writes the decompressed
    regions to 'destination'. An existing 'destination' is reused as is. Returns
    True if the file was downloaded.
    """
    log = logging.getLogger(__name__)
    if os.path.exists(destination):
        log.info("Using existing blacklist %r", destination)
        return False

    log.info("Downloading blacklist from %r", url)
    temp_file = destination + ".download"
    try:
        response = requests.get(url, stream=True, timeout=_DOWNLOAD_TIMEOUT)
        try:
            response.raise_for_status()

            # 16 + MAX_WBITS selects gzip framing
            decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
            with open(temp_file, "wb") as handle:
                for chunk in response.iter_content(chunk_size=_DOWNLOAD_CHUNK_SIZE):
                    handle.write(decompressor.decompress(chunk))
                handle.write(decompressor.flush())

            if not decompressor.eof:
                raise DownloadError(f"truncated gzip data received from {url!r}")
        finally:
            response.close()

        move_file(temp_file, destination)
    except requests.RequestException as error:
        try_remove(temp_file)
        raise DownloadError(f"failed to download {url!r}: {error}") from error
    except (OSError, zlib.error) as error:
        try_remove(temp_file)
        raise DownloadError(
            f"failed to write blacklist {destination!r}: {error}"
        ) from error
    except DownloadError:
        try_remove(temp_file)
        raise

    log.info("Wrote blacklist to %r", destination)
    return True


def _parse_preset(name: Any, values: Any, index_root: str) -> GenomePreset:
    if not isinstance(name, str):
        raise GenomeError(f"invalid genome name {name!r}")
    elif not isinstance(values, dict):
        raise GenomeError(f"invalid preset for genome {name!r}: {values!r}")

    try:
        index = values["index"]
        genome_size = values["size"]
        blacklist_url = values["blacklist"]
    except KeyError as error:
        raise GenomeError(f"{error} missing from preset {name!r}") from None

    return GenomePreset(
        name=name,
        index=str(index).format(root=index_root),
        genome_size=str(genome_size),
        blacklist_url=str(blacklist_url),
    )
