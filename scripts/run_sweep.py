#!/usr/bin/env python3
"""
Run a named sweep from an external scheduler (cron).

Suggested schedule (session time zone):
    */15 * * * *     run_sweep.py retention
    30 8 * * 1-5     run_sweep.py bias_release
    0 16 * * 1-5     run_sweep.py settlement
"""

import argparse
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from signal_relay.errors import ConfigError, StoreError
from signal_relay.logging import configure_logging, get_logger
from signal_relay.relay import SignalRelay
from signal_relay.sweeps.scheduler import SweepName


def main():
    parser = argparse.ArgumentParser(description="Run a signal relay sweep")
    parser.add_argument("sweep", choices=[name.value for name in SweepName])
    parser.add_argument("--config-dir", type=Path, default=None)
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--json-logs", action="store_true")
    args = parser.parse_args()

    configure_logging(level=args.log_level, format_json=args.json_logs)
    logger = get_logger("signal_relay.scripts.run_sweep")

    try:
        relay = SignalRelay.from_config_dir(args.config_dir)
        result = relay.run_sweep(args.sweep)
    except ConfigError as e:
        logger.error("Invalid configuration", errors=[str(err) for err in e.errors])
        return 2
    except StoreError as e:
        logger.error("Sweep aborted by store failure", sweep=args.sweep, error=str(e))
        return 1

    logger.info("Sweep complete", sweep=result.name.value, ran_at=result.ran_at.isoformat())
    return 0


if __name__ == "__main__":
    sys.exit(main())
