"""
security.py — Bearer Token Authentication (the auth gate)

Purpose:
- Verify the Supabase access token sent as `Authorization: Bearer <token>`.
- Resolve the caller's membership (org_id, role) from `profiles`.
- Expose `get_current_user`, the dependency every protected route uses.

Verification modes:
- SUPABASE_JWT_SECRET set -> decode the HS256 token locally (python-jose).
- otherwise -> ask Supabase Auth (`auth.get_user(token)`).

A missing profile is not an error: the caller may be mid-onboarding, so
org_id and role are simply left as None.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Protocol

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from supabase import AuthError, Client

from sge.core.config import settings
from sge.core.errors import AuthenticationError, UpstreamServiceError
from sge.core.logging import get_logger
from sge.core.supabase import QueryClient, UserClientFactory, get_anon_client, get_user_client_factory
from sge.services.db_client import SupabaseDBClient

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedIdentity:
    id: str
    email: Optional[str] = None


@dataclass
class CurrentUser:
    id: str
    email: Optional[str]
    token: str
    org_id: Optional[str] = None
    role: Optional[str] = None
    # User-scoped Supabase client (RLS applies)
    client: Optional[QueryClient] = field(default=None, repr=False)


# -----------------------------------------------------------------------------
# Token Verification
# -----------------------------------------------------------------------------

def decode_token(token: str, secret: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a Supabase JWT.
    Returns the payload dict if valid, None if invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            secret or settings.SUPABASE_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
        )
    except JWTError:
        return None


class TokenVerifier(Protocol):
    def verify(self, token: str) -> AuthenticatedIdentity:
        ...


class LocalJWTVerifier:
    def __init__(self, secret: str) -> None:
        self._secret = secret

    def verify(self, token: str) -> AuthenticatedIdentity:
        payload = decode_token(token, self._secret)
        if not payload or not payload.get("sub"):
            raise AuthenticationError("Invalid or expired token")
        return AuthenticatedIdentity(id=str(payload["sub"]), email=payload.get("email"))


class SupabaseTokenVerifier:
    def __init__(self, client: Optional[Client] = None) -> None:
        self._client = client

    def verify(self, token: str) -> AuthenticatedIdentity:
        client = self._client or get_anon_client()
        try:
            response = client.auth.get_user(token)
        except AuthError as e:
            logger.info("Token validation failed: %s", e)
            raise AuthenticationError("Invalid or expired token") from e
        except Exception as e:
            raise UpstreamServiceError("Failed to verify token", details=str(e)) from e

        user = getattr(response, "user", None)
        if user is None:
            raise AuthenticationError("Invalid or expired token")
        return AuthenticatedIdentity(id=str(user.id), email=getattr(user, "email", None))


def get_token_verifier() -> TokenVerifier:
    """FastAPI dependency: picks local or remote verification from settings."""
    if settings.SUPABASE_JWT_SECRET:
        return LocalJWTVerifier(settings.SUPABASE_JWT_SECRET)
    return SupabaseTokenVerifier()


# -----------------------------------------------------------------------------
# Current User Dependency
# -----------------------------------------------------------------------------

def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier),
    user_client_factory: UserClientFactory = Depends(get_user_client_factory),
) -> Iterator[CurrentUser]:
    """
    Flow:
    - Require a bearer token (401 otherwise).
    - Verify it (401 on invalid/expired).
    - Build a user-scoped client and look up the caller's profile.
    - Close the client's HTTP session once the request is done.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No authorization header provided")

    token = credentials.credentials
    identity = verifier.verify(token)

    client = user_client_factory(token)
    try:
        current_user = CurrentUser(id=identity.id, email=identity.email, token=token, client=client)

        try:
            profile = SupabaseDBClient(client).get_profile(identity.id)
        except UpstreamServiceError as e:
            logger.warning("Profile fetch failed for user %s (non-critical): %s", identity.id, e.message)
            profile = None

        if profile is not None:
            current_user.org_id = profile.org_id
            current_user.role = profile.role

        logger.debug("Authenticated user %s (org=%s, role=%s)", current_user.id, current_user.org_id, current_user.role)
        yield current_user
    finally:
        client.session.close()
