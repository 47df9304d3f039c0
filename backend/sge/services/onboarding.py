"""
onboarding.py — User Onboarding (organization + profile creation)

Turns an authenticated user identity with no profile into an
(Organization, Profile) pair:

1. Normalize the requested organization name (trim; blank -> default label).
2. Find the organization by normalized name, or create it.
3. Create the user's profile with role 'member'.

The whole flow is safe to call more than once for the same user: an existing
profile is returned as-is and nothing is written.

Organization creation has to happen before the user belongs to any tenant,
which RLS would refuse. This service is therefore the one place that holds a
service role client; `get_onboarding_service()` is the only way to reach it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Tuple

from sge.core.errors import AlreadyOnboardedError, UpstreamServiceError
from sge.core.logging import get_logger
from sge.core.supabase import get_service_role_client
from sge.models import Organization, Profile, ProfileRole
from sge.services.db_client import UNIQUE_VIOLATION, SupabaseDBClient

logger = get_logger(__name__)

DEFAULT_ORGANIZATION_NAME = "Default Organization"


@dataclass
class OnboardingResult:
    organization: Organization
    profile: Profile
    created: bool = True


def normalize_organization_name(name: Optional[str]) -> str:
    if not isinstance(name, str):
        return DEFAULT_ORGANIZATION_NAME
    return name.strip() or DEFAULT_ORGANIZATION_NAME


def organization_name_from_metadata(metadata: Mapping[str, Any]) -> Optional[str]:
    """Signup metadata has used both spellings."""
    return metadata.get("organization_name") or metadata.get("organizationName")


class UserOnboardingService:
    def __init__(self, db: SupabaseDBClient) -> None:
        self._db = db

    # ------------------------------------------------------------------ #
    def is_onboarded(self, user_id: str) -> bool:
        """True when a profile exists. Storage errors propagate."""
        profile = self._db.get_profile(user_id)
        logger.debug("User %s is %s onboarded", user_id, "already" if profile else "not")
        return profile is not None

    def get_membership(self, user_id: str) -> Optional[Tuple[Organization, Profile]]:
        """Return the user's (organization, profile), or None if not onboarded."""
        profile = self._db.get_profile(user_id)
        if profile is None:
            return None
        organization = self._db.get_organization(profile.org_id) if profile.org_id else None
        if organization is None:
            raise UpstreamServiceError(
                "Failed to fetch existing organization",
                details=f"profile {user_id} references missing organization {profile.org_id}",
            )
        return organization, profile

    # ------------------------------------------------------------------ #
    def find_or_create_organization(self, name: Optional[str]) -> Organization:
        """
        Names match case- and whitespace-insensitively. Concurrent callers
        naming the same organization get the same row: the lookup and the
        insert run inside one database function, keyed on a unique index.
        """
        normalized = normalize_organization_name(name)
        organization = self._db.find_or_create_organization(normalized)
        logger.info("Resolved organization %r to %s (%s)", normalized, organization.name, organization.id)
        return organization

    def create_profile(self, user_id: str, org_id: str, full_name: Optional[str] = None) -> Profile:
        try:
            profile = self._db.insert_profile(
                user_id=user_id,
                org_id=org_id,
                role=ProfileRole.MEMBER,
                full_name=full_name,
            )
        except UpstreamServiceError as e:
            if e.code == UNIQUE_VIOLATION:
                raise AlreadyOnboardedError(
                    "User is already onboarded",
                    details=e.details,
                    extra={"userId": user_id},
                ) from e
            raise
        logger.info("Created profile for user %s in organization %s", user_id, org_id)
        return profile

    # ------------------------------------------------------------------ #
    def onboard(self, user_id: str, metadata: Optional[Mapping[str, Any]] = None) -> OnboardingResult:
        """
        Find-or-create the organization named in `metadata`, then create the profile.

        Returns the existing membership (created=False) when the user already
        has a profile. There is no compensating delete if the profile insert
        fails after the organization was created; organizations are shared.
        """
        metadata = metadata or {}

        membership = self.get_membership(user_id)
        if membership:
            organization, profile = membership
            return OnboardingResult(organization=organization, profile=profile, created=False)

        try:
            organization = self.find_or_create_organization(organization_name_from_metadata(metadata))
            try:
                profile = self.create_profile(user_id, organization.id, metadata.get("full_name") or None)
            except AlreadyOnboardedError:
                membership = self.get_membership(user_id)
                if membership is None:
                    raise
                logger.info("User %s was onboarded concurrently", user_id)
                return OnboardingResult(organization=membership[0], profile=membership[1], created=False)
        except Exception:
            logger.exception("Failed to onboard user %s", user_id)
            raise

        logger.info("Successfully onboarded user %s", user_id)
        return OnboardingResult(organization=organization, profile=profile, created=True)


def get_onboarding_service() -> UserOnboardingService:
    """FastAPI dependency: onboarding service bound to the service role client."""
    return UserOnboardingService(SupabaseDBClient(get_service_role_client()))


OnboardingServiceFactory = Callable[[], UserOnboardingService]


def get_onboarding_service_factory() -> OnboardingServiceFactory:
    """
    FastAPI dependency for handlers that must catch client construction
    failures themselves (the auth webhook always answers 200).
    """
    return get_onboarding_service
