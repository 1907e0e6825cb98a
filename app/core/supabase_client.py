# app/core/supabase_client.py
from functools import lru_cache
from supabase import create_client, Client

from app.core.config import get_settings


@lru_cache
def supabase_public() -> Client:
    """
    Create a Supabase client with the anon/public key.

    Note: This client still respects RLS.
    """
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def supabase_admin() -> Client:
    """
    Create a Supabase client with the service role key.

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    settings = get_settings()
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def supabase_for_functions() -> Client:
    """
    Client used to invoke Edge Functions.

    Prefers the service role (the verify-payment function updates orders);
    falls back to the anon key when no service role is configured.
    """
    if get_settings().SUPABASE_SERVICE_ROLE_KEY:
        return supabase_admin()
    return supabase_public()
