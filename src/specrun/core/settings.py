"""Runner settings loaded from the environment.

Hosting layers (CLI, services) translate their own input into a
``RunnerSettings`` and then into a builder with
``SpecRunnerBuilder.from_settings``.  The engine itself never reads the
environment at run time.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    Invalid values fail when settings are loaded, not halfway through a run.

    - **Pydantic validation:** Type-checked at load time
    - **Environment-driven:** ``SPECRUN_*`` variables and ``.env`` files
    - **Extra ignore:** Unknown env vars don't cause startup failures

Fields
──────
parallel                : Use the bounded-parallel strategy
max_degree              : Parallel degree (<= 0 means logical CPU count)
bail                    : Stop starting new specs after the first failure
retry                   : Extra attempts for failed specs (0 = no retry)
timeout_ms              : Per-spec timeout in milliseconds (0 = none)
tags / exclude_tags     : Tag include/exclude filters
isolate_reporter_errors : Catch and log reporter failures instead of raising
log_level / log_json    : Applied by ``apply_logging()``

Examples:
    >>> import os
    >>> os.environ["SPECRUN_PARALLEL"] = "true"
    >>> os.environ["SPECRUN_MAX_DEGREE"] = "4"
    >>> RunnerSettings().max_degree
    4

Tags:
    settings, configuration, pydantic, environment, specrun
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from specrun.core.logging import configure_logging


class RunnerSettings(BaseSettings):
    """Settings for building a ``SpecRunner``."""

    model_config = SettingsConfigDict(
        env_prefix="SPECRUN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────────
    parallel: bool = False
    max_degree: int = 0
    bail: bool = False

    # ── Middleware ───────────────────────────────────────────────
    retry: int = Field(default=0, ge=0)
    timeout_ms: int = Field(default=0, ge=0, description="0 disables the timeout middleware")
    tags: list[str] = Field(default_factory=list)
    exclude_tags: list[str] = Field(default_factory=list)

    # ── Reporting / observability ────────────────────────────────
    isolate_reporter_errors: bool = True
    log_level: str = "INFO"
    log_json: bool | None = None

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    def apply_logging(self) -> None:
        """Configure structlog from ``log_level`` and ``log_json``."""
        configure_logging(level=self.log_level, json_format=self.log_json)
