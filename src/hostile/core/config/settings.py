from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Global application-level configuration.

    This class is the single source of truth for:
    - environment selection
    - logging behavior
    - reproducibility defaults for simulation sessions
    - reporting and session limits
    """

    model_config = SettingsConfigDict(
        env_prefix="HOSTILE_",
        env_file=".env",
        extra="ignore",
    )

    # ---- Environment -------------------------------------------------

    env: Literal["local", "staging", "prod"] = "local"

    # ---- Logging -----------------------------------------------------

    log_level: str = "INFO"

    # ---- Sessions & Reproducibility ---------------------------------

    # None -> every session draws fresh OS entropy
    default_seed: Optional[int] = Field(
        default=None,
        description="Default RNG seed for new simulation sessions",
    )

    max_sessions: int = Field(
        default=256,
        ge=1,
        description="Live sessions kept in memory; the oldest is evicted beyond this",
    )

    # ---- Reporting ---------------------------------------------------

    report_top_n: int = Field(
        default=5,
        ge=0,
        description="Most-violated rules listed in a session report",
    )


# Singleton settings object
settings = AppSettings()
