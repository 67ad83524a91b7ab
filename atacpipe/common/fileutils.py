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

import errno
import os
import shutil
import tempfile
import uuid
from datetime import datetime
from os import fspath
from typing import Iterable, List, Tuple, Union

from .utilities import safe_coerce_to_tuple

PathTypes = Union[str, "os.PathLike[str]"]

__all__ = [
    "PathTypes",
    "create_temp_dir",
    "describe_files",
    "fspath",
    "missing_executables",
    "missing_files",
    "move_file",
    "reroot_path",
    "try_remove",
    "try_rmtree",
    "validate_filenames",
]


def reroot_path(root: PathTypes, filename: str) -> str:
    """Returns the path of 'filename' if it was placed directly in 'root'."""
    return os.path.join(root, os.path.basename(filename))


def create_temp_dir(root: PathTypes) -> str:
    """Creates a private scratch folder in 'root', named by timestamp so that
    folders left by failed tasks are listed in the order they were created."""
    os.makedirs(root, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_")  # noqa: DTZ005

    return tempfile.mkdtemp(prefix=timestamp, dir=root)


def missing_files(filenames: Iterable[PathTypes]) -> List[str]:
    """Returns filenames that do not exist, in the order given."""
    paths = (fspath(filename) for filename in safe_coerce_to_tuple(filenames))

    return [path for path in paths if not os.path.exists(path)]


def missing_executables(filenames: Iterable[PathTypes]) -> List[str]:
    """Returns executables that are neither paths to, nor the name of, a program
    on PATH."""
    paths = (fspath(filename) for filename in filenames)

    return [path for path in paths if shutil.which(path) is None]


def move_file(source: PathTypes, destination: PathTypes) -> None:
    """Moves a file, creating the destination folder if required. If the source
    and destination are on different file-systems then the file is copied to a
    temporary name next to the destination and renamed once complete."""
    source = fspath(source)
    destination = fspath(destination)

    if not os.path.exists(source):
        raise FileNotFoundError(errno.ENOENT, "No such file", source)

    os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
    try:
        os.rename(source, destination)
        return
    except OSError as error:
        if error.errno != errno.EXDEV:
            raise

    partial = f"{destination}.{uuid.uuid4().hex[:8]}.tmp"
    try:
        shutil.copy2(source, partial)
    except OSError:
        try_remove(partial)
        raise

    os.rename(partial, destination)
    os.unlink(source)


def try_remove(filename: PathTypes) -> bool:
    """Removes a file, returning false if it did not exist."""
    try:
        os.remove(fspath(filename))
    except FileNotFoundError:
        return False

    return True


def try_rmtree(filename: PathTypes) -> bool:
    """Removes a folder and its contents, returning false if it did not exist."""
    try:
        shutil.rmtree(fspath(filename))
    except FileNotFoundError:
        return False

    return True


def describe_files(files: Iterable[str]) -> str:
    """Short description of a set of files for task descriptions, such as
    "2 files in 'fastq'"."""
    files = validate_filenames(files)
    if not files:
        return "No files"
    elif len(files) == 1:
        return repr(files[0])

    folders = {os.path.dirname(filename) for filename in files}
    if len(folders) > 1:
        return f"{len(files)} files"

    return "{} files in '{}'".format(len(files), folders.pop() or ".")


def validate_filenames(filenames: Iterable[str]) -> Tuple[str, ...]:
    return tuple(fspath(filename) for filename in safe_coerce_to_tuple(filenames))
