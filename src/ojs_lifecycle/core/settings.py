"""Environment-driven settings for the command-line surface.

Engine functions never read settings: they take explicit arguments so a
simulation is a pure function of its inputs.  Only the CLI consults
``get_settings()`` to fill in defaults the user did not pass.

Every field can be overridden with an ``OJS_``-prefixed environment
variable or a ``.env`` file::

    OJS_LOG_LEVEL=DEBUG
    OJS_DEFAULT_SEED=7
    OJS_DEFAULT_STRATEGY=linear

Tags:
    settings, configuration, pydantic, environment, ojs-lifecycle

Doc-Types:
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SimulatorSettings(BaseSettings):
    """Defaults for CLI runs.

    Fields
    ──────
    log_level              : structlog level for the CLI process
    json_logs              : force JSON (True) or console (False) logs; auto when unset
    default_seed           : PRNG seed when ``--seed`` is omitted
    default_strategy       : backoff strategy when ``--strategy`` is omitted
    rate_limit_interval_ms : spacing between synthetic admissions in ``ratelimit simulate``
    cron_run_count         : how many fire times ``cron next`` lists by default
    """

    model_config = SettingsConfigDict(
        env_prefix="OJS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "WARNING"
    json_logs: bool | None = None

    # ── Simulation defaults ──────────────────────────────────────
    default_seed: int = 42
    default_strategy: Literal["none", "linear", "exponential", "polynomial"] = "exponential"
    rate_limit_interval_ms: int = Field(default=100, ge=1)
    cron_run_count: int = Field(default=5, ge=1, le=1000)


@lru_cache(maxsize=1)
def get_settings() -> SimulatorSettings:
    """Load and cache settings.  Tests call ``get_settings.cache_clear()``."""
    return SimulatorSettings()


__all__ = ["SimulatorSettings", "get_settings"]
