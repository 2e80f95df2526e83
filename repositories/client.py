"""
Supabase client initialization.

This module contains *only* the database connection setup. It exposes
`get_supabase()`, which builds a single async `supabase` client on first use
and hands the same instance to every repository afterwards.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key. Identity lookups use the auth admin
  API, so this must be a service-role key on the backend.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import AsyncClient, acreate_client  # type: ignore[import-not-found]

# Load environment variables from the project's .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_client: Optional[AsyncClient] = None
_client_lock = asyncio.Lock()


def _read_credentials() -> tuple[str, str]:
    # Read credentials from the environment to avoid hard-coding secrets in code.
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")

    if not supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase service-role key."
        )

    return supabase_url, supabase_key


async def get_supabase() -> AsyncClient:
    """
    Return the shared async Supabase client, creating it on first call.

    Raises:
        RuntimeError: If SUPABASE_URL or SUPABASE_KEY is not set.
    """

    global _client
    async with _client_lock:
        if _client is None:
            url, key = _read_credentials()
            _client = await acreate_client(url, key)
    return _client


__all__ = ["get_supabase"]
