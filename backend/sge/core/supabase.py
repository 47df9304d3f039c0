"""
supabase.py — Supabase Client Construction & FastAPI Dependencies

Three kinds of client exist, with different privileges:

- anon client (cached): public key only. Used to verify bearer tokens.
- user client (per request): a bare PostgREST client carrying the public key
  and the caller's bearer token, so every query runs under row-level security
  as that user. The auth gate closes it when the request finishes.
- service role client (cached): bypasses RLS. Only the onboarding service may
  obtain it (see services/onboarding.py). Request handlers never receive it.

An unconfigured project is not a startup failure; calling a factory without
the needed keys raises UpstreamServiceError instead.
"""

from functools import lru_cache
from typing import Callable, Union

from postgrest import SyncPostgrestClient
from postgrest.constants import DEFAULT_POSTGREST_CLIENT_HEADERS
from supabase import Client, create_client

from sge.core.config import settings
from sge.core.errors import UpstreamServiceError
from sge.core.logging import get_logger

logger = get_logger(__name__)

# Anything exposing .table() / .rpc() with the postgrest query builder
QueryClient = Union[Client, SyncPostgrestClient]
UserClientFactory = Callable[[str], SyncPostgrestClient]


def _require(value: str, name: str) -> str:
    if not value:
        raise UpstreamServiceError(
            "Supabase client is not configured",
            details=f"{name} is not set",
        )
    return value


# -----------------------------------------------------------------------------
# Client Factories
# -----------------------------------------------------------------------------

@lru_cache(maxsize=1)
def _anon_client() -> Client:
    url = _require(settings.SUPABASE_URL, "SUPABASE_URL")
    key = _require(settings.SUPABASE_KEY, "SUPABASE_KEY")
    return create_client(url, key)


@lru_cache(maxsize=1)
def get_service_role_client() -> Client:
    """Privileged client. Only services/onboarding.py calls this."""
    url = _require(settings.SUPABASE_URL, "SUPABASE_URL")
    key = _require(settings.SUPABASE_SERVICE_ROLE_KEY, "SUPABASE_SERVICE_ROLE_KEY")
    logger.info("Creating Supabase service role client")
    return create_client(url, key)


def create_user_client(token: str) -> SyncPostgrestClient:
    """
    Build a PostgREST client whose requests carry the caller's JWT.

    One client per request keeps one user's token from leaking into another
    request. The caller owns it and must close `client.session`.
    """
    url = _require(settings.SUPABASE_URL, "SUPABASE_URL")
    key = _require(settings.SUPABASE_KEY, "SUPABASE_KEY")
    client = SyncPostgrestClient(
        f"{url.rstrip('/')}/rest/v1",
        headers={**DEFAULT_POSTGREST_CLIENT_HEADERS, "apikey": key},
    )
    client.auth(token)
    return client


def get_anon_client() -> Client:
    """Shared anon client; SupabaseTokenVerifier uses it when none is injected."""
    return _anon_client()


# -----------------------------------------------------------------------------
# FastAPI Dependencies
# -----------------------------------------------------------------------------

def get_user_client_factory() -> UserClientFactory:
    """
    FastAPI dependency: returns a callable token -> user-scoped client.

    Returned as a factory so the auth gate can build the client only after the
    token has been verified (and so tests can swap the whole thing out).
    """
    return create_user_client
