"""Database utilities for Supabase integration."""

from supabase import Client, create_client

from gigboard.config import Settings


def get_supabase_client(settings: Settings) -> Client:
    """Create a Supabase client using the backend secret key."""
    if not settings.supabase_url or not settings.supabase_secret_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SECRET_KEY must be set for the supabase backend")
    return create_client(settings.supabase_url, settings.supabase_secret_key)
