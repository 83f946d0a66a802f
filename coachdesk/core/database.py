import logging

from supabase import create_client, Client
from coachdesk.core.config import settings

logger = logging.getLogger(__name__)

_supabase_client: Client | None = None


def get_supabase() -> Client:
    global _supabase_client
    if _supabase_client is None:
        logger.info("Connecting to Supabase at %s", settings.SUPABASE_URL)
        _supabase_client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY,
        )
    return _supabase_client


def fetch_one(query) -> dict | None:
    """Run a ``maybe_single()`` query and return the row or None.

    supabase-py returns ``None`` instead of an empty response when no row
    matches, so callers go through here rather than poking at ``.data``.
    """
    result = query.maybe_single().execute()
    if not result or not result.data:
        return None
    return result.data
