# -*- coding: utf-8 -*-
"""DriftWatch entrypoint (CLI).

Usage:
  # create the monitor store tables
  python -m driftwatch.cli --init-db

  # one scheduler tick
  python -m driftwatch.cli --once

  # scheduler loop (tick every 5 minutes, stop after 12 ticks)
  python -m driftwatch.cli --monitor --interval 300 --max-runs 12

  # monitor edit API
  python -m driftwatch.cli --serve --port 4001
"""

import argparse
import logging
import sys

from driftwatch.config import DriftWatchConfig


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="DriftWatch production model drift monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  %(prog)s --init-db
  %(prog)s --once
  %(prog)s --monitor --interval 300
  %(prog)s --serve --port 4001
        """,
    )

    mode_group = parser.add_argument_group("mode")
    mode = mode_group.add_mutually_exclusive_group(required=True)
    mode.add_argument("--init-db", action="store_true", help="create store tables and exit")
    mode.add_argument("--once", action="store_true", help="run a single scheduler tick")
    mode.add_argument("--monitor", action="store_true", help="run the scheduler loop")
    mode.add_argument("--serve", action="store_true", help="serve the monitor edit API")

    settings = parser.add_argument_group("settings")
    settings.add_argument("--database-url", type=str, help="SQLAlchemy URL of the monitor store")
    settings.add_argument("--model-dir", type=str, help="directory of model metadata JSON files")
    settings.add_argument("--interval", type=int, help="seconds between scheduler ticks")
    settings.add_argument("--max-runs", type=int, help="stop the loop after N ticks")
    settings.add_argument("--workers", type=int, help="concurrent monitor evaluations")
    settings.add_argument("--host", type=str, default="0.0.0.0")
    settings.add_argument("--port", type=int, default=4001)
    settings.add_argument("--log-level", type=str, help="DEBUG / INFO / WARNING")

    args = parser.parse_args(argv)
    config = DriftWatchConfig.from_env()
    if args.database_url:
        config.database.url = args.database_url
    if args.model_dir:
        from pathlib import Path
        config.registry.model_dir = Path(args.model_dir)
    if args.interval:
        config.scheduler.tick_interval_seconds = args.interval
    if args.workers:
        config.scheduler.max_workers = args.workers
    if args.log_level:
        config.log_level = args.log_level.upper()

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.serve:
        return _run_server(args, config)

    from driftwatch.store import MonitorStore

    store = MonitorStore.from_config(config.database)
    store.init_db()
    if args.init_db:
        print(f"Monitor store ready: {config.database.url}")
        return 0

    return _run_scheduler(args, config, store)


def _run_scheduler(args, config: DriftWatchConfig, store) -> int:
    """Runs one tick or the scheduler loop."""
    from driftwatch.connectors import JsonModelRegistry
    from driftwatch.monitoring import Alerter, MonitoringScheduler

    scheduler = MonitoringScheduler(
        store=store,
        metadata=JsonModelRegistry(config.registry.model_dir),
        alerter=Alerter(config.alerts),
        config=config.scheduler,
    )
    try:
        if args.once:
            report = scheduler.run_once()
            if not report.store_available:
                print("Monitor store unavailable; nothing evaluated.")
                return 1
            for result in report.results:
                line = f"{result.monitor_id}: {result.state.value}"
                if result.result is not None and result.result.variance is not None:
                    line += f" (variance={result.result.variance:+.4f})"
                print(line)
            return 0
        scheduler.start(max_runs=args.max_runs)
        return 0
    finally:
        scheduler.close()
        store.dispose()


def _run_server(args, config: DriftWatchConfig) -> int:
    import uvicorn

    from driftwatch.api.main import create_app

    uvicorn.run(create_app(config=config), host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
