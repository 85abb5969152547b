"""
Engine configuration.

Defaults live here as module constants; every value can be overridden from the
environment (see EngineSettings.from_env) or per call.
"""

import os

from pydantic import BaseModel, Field

# --- DEFAULTS ---
DEFAULT_GRANULARITY_MINUTES = 15
DEFAULT_MAX_RESULTS = 10
WAITLIST_HORIZON_DAYS = 14
WAITLIST_MAX_MATCHES = 3
ALTERNATIVE_EXTRA_DAYS = 3
BRANCH_TIMEOUT_SECONDS = 5.0
MAX_WORKERS = 8
# ----------------


class EngineSettings(BaseModel):
    """Tunables shared by the engine, the waitlist matcher and the orchestrator."""
    default_granularity_minutes: int = Field(default=DEFAULT_GRANULARITY_MINUTES, ge=1)
    default_max_results: int = Field(default=DEFAULT_MAX_RESULTS, ge=1)
    waitlist_horizon_days: int = Field(default=WAITLIST_HORIZON_DAYS, ge=1)
    waitlist_max_matches: int = Field(default=WAITLIST_MAX_MATCHES, ge=1)
    alternative_extra_days: int = Field(default=ALTERNATIVE_EXTRA_DAYS, ge=1)
    branch_timeout_seconds: float = Field(default=BRANCH_TIMEOUT_SECONDS, gt=0)
    max_workers: int = Field(default=MAX_WORKERS, ge=1)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from SLOTS_* environment variables, falling back to defaults."""
        return cls(
            default_granularity_minutes=int(os.getenv("SLOTS_DEFAULT_GRANULARITY_MINUTES", DEFAULT_GRANULARITY_MINUTES)),
            default_max_results=int(os.getenv("SLOTS_DEFAULT_MAX_RESULTS", DEFAULT_MAX_RESULTS)),
            waitlist_horizon_days=int(os.getenv("SLOTS_WAITLIST_HORIZON_DAYS", WAITLIST_HORIZON_DAYS)),
            waitlist_max_matches=int(os.getenv("SLOTS_WAITLIST_MAX_MATCHES", WAITLIST_MAX_MATCHES)),
            alternative_extra_days=int(os.getenv("SLOTS_ALTERNATIVE_EXTRA_DAYS", ALTERNATIVE_EXTRA_DAYS)),
            branch_timeout_seconds=float(os.getenv("SLOTS_BRANCH_TIMEOUT_SECONDS", BRANCH_TIMEOUT_SECONDS)),
            max_workers=int(os.getenv("SLOTS_MAX_WORKERS", MAX_WORKERS)),
        )
