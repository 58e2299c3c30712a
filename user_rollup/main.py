#!/usr/bin/env python3
"""user-rollup: entry point.

Run as `python -m user_rollup.main -f path/to/data.log`.
"""

import functools
import logging
import sys

from user_rollup.checkpoint import CheckpointStore
from user_rollup.config import build_cli_parser, load_config, load_yaml_config
from user_rollup.errors import CheckpointError, ConfigError
from user_rollup.pipeline import Pipeline
from user_rollup.report import write_report

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [ROLLUP] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    parser = build_cli_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args, load_yaml_config(args.config))
    except ConfigError as e:
        parser.print_usage(sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logging.getLogger().setLevel(config.log_level)
    logger.info("Config: log=%s, checkpoint every %d records, dedup scope=%s",
                config.log_file, config.checkpoint_interval, config.dedup_scope)

    store = CheckpointStore(config.checkpoint_path)
    pipeline = Pipeline(
        config.log_file,
        store,
        checkpoint_interval=config.checkpoint_interval,
        dedup_scope=config.dedup_scope,
        on_complete=functools.partial(write_report, config.report_path),
    )
    try:
        if config.clear_checkpoint:
            store.clear()
        result = pipeline.run()
    except CheckpointError as e:
        logger.error("Checkpoint %s is unusable: %s", store.path, e)
        return 1
    except OSError as e:
        logger.error("I/O failure: %s", e)
        return 1

    print(f"Done: {len(result.user_ids)} users written to {config.report_path}", flush=True)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
