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

import logging
import os
import sys

import atacpipe.common.logging
from atacpipe.common.argparse import Namespace
from atacpipe.node import NodeError
from atacpipe.pipeline import Pypeline
from atacpipe.pipelines.atac.config import (
    ConfigError,
    RunConfig,
    build_parser,
    resolve_config,
)
from atacpipe.pipelines.atac.genomes import DownloadError, fetch_blacklist
from atacpipe.pipelines.atac.pipeline import build_pipeline


def main(argv: list[str]) -> int:
    parser = build_parser()
    if not argv:
        parser.print_help(sys.stderr)
        return 1

    args = parser.parse_args(argv)
    if args.temp_root is None:
        args.temp_root = os.path.join(".atacpipe", "temp")

    atacpipe.common.logging.initialize_console_logging(
        log_level=args.log_level,
        log_color=args.log_color,
    )

    logger = logging.getLogger(__name__)

    try:
        config = resolve_config(args)
    except ConfigError as error:
        parser.print_usage(sys.stderr)
        logger.error("Invalid options: %s", error)
        return 1

    return run(config, args)


def run(config: RunConfig, args: Namespace) -> int:
    logger = logging.getLogger(__name__)

    try:
        stage = build_pipeline(config)
    except NodeError as error:
        logger.error("Error while building pipeline: %s", error)
        return 1

    # A preset blacklist is downloaded once requirements are known to be met
    pending_files: list[str] = []
    if config.blacklist_url is not None and not os.path.exists(config.blacklist):
        pending_files.append(config.blacklist)

    pipeline = Pypeline(
        nodes=stage.nodes,
        temp_root=args.temp_root,
        keep_intermediate=args.keep_intermediate,
        pending_files=pending_files,
    )

    if not args.dry_run:
        if not pipeline.check_requirements():
            return 1

        if pending_files:
            try:
                fetch_blacklist(config.blacklist_url, config.blacklist)
            except DownloadError as error:
                logger.error("Error retrieving blacklist: %s", error)
                return 1

        if not pipeline.check_input_files():
            return 1

        # No log file is created in logs/ unless the preflight checks passed
        atacpipe.common.logging.initialize_file_logging(
            log_level=args.log_level,
            log_file=args.log_file,
            auto_log_file=os.path.join("logs", "atacpipe"),
        )

    return pipeline.run(dry_run=args.dry_run)
