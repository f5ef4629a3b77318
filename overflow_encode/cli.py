#!/usr/bin/env python3
"""
Overflow encode CLI.

Uploads one local video to the primary region and encodes it there, or in
the backup region when the primary queue is backed up.

Usage:
    overflow-encode <LocalPathToVideoToUpload>
"""

import logging
import signal
import sys
import threading
import uuid
from typing import List, Optional

from .config import Config
from .errors import ConfigurationError, InputError, OverflowEncodeError
from .logging_config import setup_logging
from .regions import build_regions
from .workflow import EncodeOutcome, EncodeWorkflow, resolve_upload_path

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_CONFIG = 3

USAGE = """This application requires two regions, each with a bucket, a job queue and catalog tables.

This application checks the current queue length for videos waiting to be encoded. If the queue length
reaches the threshold set in the configuration (default of 3) then the backup region will be used for
the encode. In this case the video is still uploaded to the primary region, the queue length is
checked, the video is copied to the backup region, the video is encoded, and the resulting video
files are copied back to the primary region and placed into a new asset.

Configure both regions through PRIMARY_* and BACKUP_* environment variables (or a .env file).

Usage:
overflow-encode <LocalPathToVideoToUpload>

Example:
overflow-encode ~/videos/myvideo.mp4"""


def display_usage() -> None:
    print(USAGE)


def _print_outcome(outcome: EncodeOutcome) -> None:
    print(f"Route:        {outcome.route.value} ({outcome.pending} queued in primary)")
    print(f"Source asset: {outcome.source_asset.name} ({outcome.source_asset.asset_id})")
    print(f"Job:          {outcome.job.name} -> {outcome.job.state.value}")
    if outcome.output_asset:
        primary = outcome.output_asset.primary_file
        print(f"Output asset: {outcome.output_asset.name} ({outcome.output_asset.asset_id}), "
              f"{len(outcome.output_asset.files)} files, primary: {primary.name if primary else 'none'}")
    if outcome.cleanup is not None:
        print(f"Cleanup:      {len(outcome.cleanup.deleted)} deleted, {len(outcome.cleanup.errors)} failed")


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv

    if len(args) == 1 and args[0] in ('-h', '--help'):
        display_usage()
        return EXIT_OK
    if len(args) != 1:
        display_usage()
        return EXIT_USAGE

    try:
        upload_path = resolve_upload_path(args[0])
    except InputError as e:
        print(f"Error: {e}")
        return EXIT_FAILED

    try:
        config = Config.from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return EXIT_CONFIG

    setup_logging(config.log_level, config.log_format, request_id=uuid.uuid4().hex[:8])

    cancel_event = threading.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, cancelling the encode...")
        cancel_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        regions = build_regions(config)
        outcome = EncodeWorkflow(config, regions).run(str(upload_path), cancel_event=cancel_event)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return EXIT_CONFIG
    except OverflowEncodeError as e:
        logger.error(f"Encode request failed: {e}")
        return EXIT_FAILED

    _print_outcome(outcome)
    return EXIT_OK if outcome.succeeded else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
