# workers/media_backfill/config.py
"""
Configuration for the media backfill jobs.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

R2_SETTINGS = (
    "R2_ACCOUNT_ID",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "R2_BUCKET_NAME",
    "R2_PUBLIC_URL",
)


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass
class BackfillConfig:
    """Configuration for the media backfill worker."""

    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = field(default_factory=lambda: os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""))

    r2_account_id: str = field(default_factory=lambda: os.getenv("R2_ACCOUNT_ID", ""))
    r2_access_key_id: str = field(default_factory=lambda: os.getenv("R2_ACCESS_KEY_ID", ""))
    r2_secret_access_key: str = field(default_factory=lambda: os.getenv("R2_SECRET_ACCESS_KEY", ""))
    r2_bucket_name: str = field(default_factory=lambda: os.getenv("R2_BUCKET_NAME", ""))
    r2_public_url: str = field(default_factory=lambda: os.getenv("R2_PUBLIC_URL", ""))

    download_timeout_seconds: float = field(default_factory=lambda: _env_float("DOWNLOAD_TIMEOUT_SECONDS", 120.0))
    scratch_dir: Optional[str] = field(default_factory=lambda: os.getenv("SCRATCH_DIR") or None)
    transcription_language: Optional[str] = field(default_factory=lambda: os.getenv("TRANSCRIPTION_LANGUAGE") or None)

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.supabase_url:
            errors.append("SUPABASE_URL is required")
        if not self.supabase_key:
            errors.append("SUPABASE_SERVICE_ROLE_KEY is required")

        r2_values = (
            self.r2_account_id,
            self.r2_access_key_id,
            self.r2_secret_access_key,
            self.r2_bucket_name,
            self.r2_public_url,
        )
        for name, value in zip(R2_SETTINGS, r2_values):
            if not value:
                errors.append(f"{name} is required")

        if self.download_timeout_seconds <= 0:
            errors.append("DOWNLOAD_TIMEOUT_SECONDS must be positive")

        return errors


def get_config() -> BackfillConfig:
    """Get backfill configuration from environment."""
    return BackfillConfig()
