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

from typing import Any, Iterable, Iterator


def format_timespan(seconds: float) -> str:
    """Formats a runtime as '12.3s', 'M:SSs' or 'H:MM:SSs'."""
    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes, seconds = divmod(round(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02}:{seconds:02}s"

    return f"{minutes}:{seconds:02}s"


def padded_table(
    table: Iterable[str | Iterable[Any]],
    min_padding: int = 4,
) -> Iterator[str]:
    """Yields the rows of 'table' with columns aligned, separated by at least
    'min_padding' spaces. Rows that are plain strings are yielded as is."""
    rows = [row if isinstance(row, str) else [str(it) for it in row] for row in table]

    widths: dict[int, int] = {}
    for row in rows:
        if not isinstance(row, str):
            for idx, value in enumerate(row):
                widths[idx] = max(widths.get(idx, 0), len(value))

    for row in rows:
        if isinstance(row, str):
            yield row
        else:
            cells = (
                value.ljust(widths[idx] + min_padding)
                for idx, value in enumerate(row)
            )
            yield "".join(cells).rstrip()
