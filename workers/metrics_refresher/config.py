# workers/metrics_refresher/config.py
"""
Configuration for the engagement metrics refresher.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass
class WorkerConfig:
    """Configuration for the metrics refresher worker."""

    worker_id: str = field(default_factory=lambda: os.getenv("WORKER_ID", f"metrics-{os.getpid()}"))

    # Seconds between two refresh passes
    interval_seconds: int = field(default_factory=lambda: _env_int("METRICS_REFRESH_INTERVAL", 3600))

    # Stop after this many passes (0 = run until signalled)
    max_runs: int = field(default_factory=lambda: _env_int("METRICS_REFRESH_MAX_RUNS", 0))

    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = field(default_factory=lambda: os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""))

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.supabase_url:
            errors.append("SUPABASE_URL is required")
        if not self.supabase_key:
            errors.append("SUPABASE_SERVICE_ROLE_KEY is required")
        if self.interval_seconds <= 0:
            errors.append("METRICS_REFRESH_INTERVAL must be positive")
        if self.max_runs < 0:
            errors.append("METRICS_REFRESH_MAX_RUNS cannot be negative")

        return errors


def get_config() -> WorkerConfig:
    """Get worker configuration from environment."""
    return WorkerConfig()
