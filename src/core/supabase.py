"""Supabase client singleton for receipt storage."""

from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from src.core.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton.

    Uses the secret key (sb_secret_) so the backend can write to private
    storage buckets. Only server-side code may hold this client.

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


async def check_storage_connection(client: Client, bucket: str) -> dict[str, Any]:
    """Check that the receipt bucket is reachable.

    Args:
        client: Supabase client.
        bucket: Storage bucket name.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client.storage.get_bucket(bucket)
        return {"healthy": True, "error": None}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
