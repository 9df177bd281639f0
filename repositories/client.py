"""
Supabase client initialization and store settings.

This module contains *only* the database connection setup. The client is
created on first use so that importing repositories (and running the test
suite) never needs credentials.

Environment variables:
- SUPABASE_URL: Your Supabase project URL (required)
- SUPABASE_KEY: Your Supabase API key (required; server-side key only)
- STORE_MAX_RETRIES: Read attempts on transport failures (default 3)
- STORE_RETRY_BASE_DELAY: First retry delay in seconds, doubled each time (default 0.5)
- STORE_TIMEOUT: Overall read budget in seconds (default 10)
- DEFAULT_COMPANY_FEE_PERCENTAGE: Fee % applied when a confirmation gives none (default 2)
- LOG_LEVEL: Logging level for the API process (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

# Load environment variables from the .env file at the project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


@dataclass(frozen=True, slots=True)
class StoreSettings:
    """Runtime settings read from the environment."""

    max_retries: int = 3
    retry_base_delay: float = 0.5
    timeout: float = 10.0
    default_company_fee_percentage: Decimal = Decimal("2")
    log_level: str = "INFO"


def load_settings() -> StoreSettings:
    """Read settings from the environment, falling back to defaults."""

    try:
        return StoreSettings(
            max_retries=int(os.getenv("STORE_MAX_RETRIES", "3")),
            retry_base_delay=float(os.getenv("STORE_RETRY_BASE_DELAY", "0.5")),
            timeout=float(os.getenv("STORE_TIMEOUT", "10")),
            default_company_fee_percentage=Decimal(os.getenv("DEFAULT_COMPANY_FEE_PERCENTAGE", "2")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
    except (ArithmeticError, ValueError) as e:
        raise RuntimeError(f"Invalid store configuration: {e}") from e


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Return the shared Supabase client, creating it on first call.

    Raises:
        RuntimeError: SUPABASE_URL or SUPABASE_KEY is not set
    """

    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_key: str | None = os.getenv("SUPABASE_KEY")

    if not supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(supabase_url, supabase_key)


__all__ = ["StoreSettings", "get_supabase", "load_settings"]
