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
"""Output file names of a run, described as a tree of path templates.

Keys of the (nested) dict are path components, which may contain '{field}'
placeholders, while the leaves are the labels by which files are looked up:

    layout = Layout({"logs": {"{prefix}_align.log": "align_log"}}, prefix="A")
    layout["align_log"] == "logs/A_align.log"
"""

from __future__ import annotations

import os.path
import string
from typing import Dict, Iterator, Union

from typing_extensions import TypeAlias

LayoutType: TypeAlias = Dict[str, Union[str, "LayoutType"]]


class LayoutError(Exception):
    pass


class Layout:
    kwargs: dict[str, str | int]
    _paths: dict[str, tuple[str, ...]]

    def __init__(self, layout: LayoutType, **kwargs: str | int) -> None:
        self.kwargs = kwargs
        self._paths = {}
        for label, path in _flatten(layout, ()):
            if self._paths.setdefault(label, path) is not path:
                raise LayoutError(f"key {label!r} used multiple times")

        fields = set(_fields(self._paths))
        for key in kwargs:
            if key not in fields:
                raise LayoutError(f"unknown key {key!r}")

    def __iter__(self) -> Iterator[str]:
        return iter(self._paths)

    def __getitem__(self, label: str) -> str:
        path = self._paths.get(label)
        if path is None:
            raise KeyError(f"unknown layout key {label!r}")

        try:
            return os.path.join(*(part.format(**self.kwargs) for part in path))
        except KeyError as error:
            raise KeyError(f"value {error} missing for layout key {label!r}") from None


def _flatten(
    layout: LayoutType,
    parents: tuple[str, ...],
) -> Iterator[tuple[str, tuple[str, ...]]]:
    for key, value in layout.items():
        if not isinstance(key, str):
            raise LayoutError(f"invalid key {key!r}")
        elif isinstance(value, dict):
            yield from _flatten(value, (*parents, key))
        elif isinstance(value, str):
            yield value, (*parents, key)
        else:
            raise LayoutError(f"invalid value {value!r}")


def _fields(paths: dict[str, tuple[str, ...]]) -> Iterator[str]:
    formatter = string.Formatter()
    for path in paths.values():
        for part in path:
            for _, name, _, _ in formatter.parse(part):
                if name == "":
                    raise LayoutError(f"unnamed field are not allowed in {part!r}")
                elif name in paths:
                    raise LayoutError(f"{name!r} used as both key and field name")
                elif name is not None:
                    yield name
