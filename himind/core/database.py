import logging
from typing import Optional

from supabase import Client, create_client

from himind.core.config import settings

logger = logging.getLogger("HiMind.Database")

_supabase: Optional[Client] = None


def is_supabase_configured() -> bool:
    return bool(settings.SUPABASE_URL and settings.SUPABASE_KEY)


def get_supabase() -> Client:
    """Create the shared Supabase client on first use."""
    global _supabase
    if _supabase is None:
        if not is_supabase_configured():
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set")
        _supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
        logger.info("Supabase client created")
    return _supabase
