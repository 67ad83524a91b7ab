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

import argparse
from typing import Any

import configargparse

import atacpipe

__all__ = [
    "ArgumentGroup",
    "ArgumentParser",
    "HelpFormatter",
    "Namespace",
]

ArgumentGroup = argparse._ArgumentGroup  # noqa: SLF001
Namespace = configargparse.Namespace

# Defaults that say nothing useful when printed after a help text
_UNINFORMATIVE_DEFAULTS = (None, [], ())


class HelpFormatter(configargparse.ArgumentDefaultsHelpFormatter):
    """Appends ' [default]' to help texts, unless the default is a flag value or
    empty, or the help text already places the default itself."""

    def __init__(self, prog: str) -> None:
        super().__init__(prog=prog, width=79)

    def _get_help_string(self, action: configargparse.Action) -> str | None:
        help_text = action.help
        if (
            help_text is None
            or "%(default)" in help_text
            or isinstance(action.default, bool)
            or action.default in _UNINFORMATIVE_DEFAULTS
            or action.default is argparse.SUPPRESS
            or super()._get_help_string(action) == help_text
        ):
            return help_text

        return f"{help_text} [%(default)s]"


class ArgumentParser(configargparse.ArgumentParser):
    """Parser for atacpipe commands; options may also be given in config files
    and, if 'auto_env_var_prefix' is set, in environment variables."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", HelpFormatter)
        # Abbreviated options on the command-line would not override the same
        # options read from config files
        kwargs.setdefault("allow_abbrev", False)

        super().__init__(*args, **kwargs)

        self.add_argument(
            "-v",
            "--version",
            action="version",
            version=f"%(prog)s v{atacpipe.__version__}",
        )
