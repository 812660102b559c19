from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import threading
from typing import Optional, Sequence

from mediaflow.app.domain.errors import ConfigurationError, RepositoryError
from mediaflow.app.domain.models import MetricsRefreshSummary
from mediaflow.app.services.metrics_refresher import MetricsRefresher
from workers.metrics_refresher.config import WorkerConfig, get_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("metrics-refresher")


class MetricsRefresherWorker:
    def __init__(self, config: WorkerConfig, refresher: MetricsRefresher):
        self.config = config
        self.refresher = refresher
        self.running = False
        self.runs_completed = 0
        self.last_summary: MetricsRefreshSummary | None = None
        self._stop_event = threading.Event()

    def start(self, once: bool = False) -> None:
        self._validate_configuration()
        self._setup_signal_handlers()
        logger.info(
            "Starting metrics refresher: id=%s, interval=%ds, once=%s",
            self.config.worker_id,
            self.config.interval_seconds,
            once,
        )
        self.running = True
        self._run_main_loop(once)
        logger.info("Metrics refresher shutting down: runs_completed=%d", self.runs_completed)

    def stop(self) -> None:
        self.running = False
        self._stop_event.set()

    def _validate_configuration(self) -> None:
        errors = self.config.validate()
        if errors:
            raise ConfigurationError(errors)

    def _setup_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._handle_shutdown_signal)
        signal.signal(signal.SIGINT, self._handle_shutdown_signal)

    def _handle_shutdown_signal(self, signum: int, frame: object) -> None:
        logger.info("Received shutdown signal %d", signum)
        self.stop()

    def _run_main_loop(self, once: bool) -> None:
        while self.running:
            self.run_once()

            if once or self._reached_max_runs():
                break

            # Returns early when a shutdown signal arrives.
            self._stop_event.wait(self.config.interval_seconds)

    def run_once(self) -> MetricsRefreshSummary | None:
        try:
            summary = asyncio.run(self.refresher.refresh())
        except RepositoryError as error:
            logger.error("Could not load leaderboard entries: %s", error)
            return None

        self.runs_completed += 1
        self.last_summary = summary
        logger.info("Run %d: %s", self.runs_completed, summary.message)
        return summary

    def _reached_max_runs(self) -> bool:
        if self.config.max_runs <= 0:
            return False
        if self.runs_completed >= self.config.max_runs:
            logger.info("Reached max runs (%d), shutting down", self.config.max_runs)
            return True
        return False


def create_default_dependencies(config: WorkerConfig) -> MetricsRefresher:
    from supabase import create_client

    from mediaflow.app.infra.db.supabase_media_repo import SupabaseMediaRepository
    from mediaflow.services.engagement import EngagementFetcher

    client = create_client(config.supabase_url, config.supabase_key)
    return MetricsRefresher(
        repository=SupabaseMediaRepository(client),
        fetcher=EngagementFetcher(),
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh cached engagement metrics for leaderboard entries.")
    parser.add_argument("--once", action="store_true", help="run a single refresh pass and exit")
    parser.add_argument("--interval", type=int, default=None, help="seconds between refresh passes")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    config = get_config()
    if args.interval is not None:
        config.interval_seconds = args.interval

    errors = config.validate()
    if errors:
        raise ConfigurationError(errors)

    worker = MetricsRefresherWorker(config=config, refresher=create_default_dependencies(config))
    worker.start(once=args.once)


if __name__ == "__main__":
    main()
