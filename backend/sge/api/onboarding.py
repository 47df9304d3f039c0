"""
onboarding.py — Onboarding Completion Endpoint (API Layer)

Purpose:
- Let a freshly signed-up user finish onboarding from the frontend:
    • POST /api/onboarding/complete → find-or-create the organization and the
      caller's profile.

The user identity comes from the verified bearer token, never from the body.
Calling this twice is safe: the second call returns the existing records.

Business logic lives in services/onboarding.py; this file only validates
input and shapes responses.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from sge.core.errors import AppError, InternalError, UpstreamServiceError, ValidationError
from sge.core.logging import get_logger
from sge.core.security import CurrentUser, get_current_user
from sge.models import Organization, Profile
from sge.services.onboarding import OnboardingServiceFactory, get_onboarding_service_factory

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/onboarding",
    tags=["onboarding"]
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class OnboardingCompleteRequest(BaseModel):
    organization_name: Optional[str] = None


class OnboardingCompleteResponse(BaseModel):
    success: bool
    message: str
    org: Organization
    profile: Profile


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.post("/complete", response_model=OnboardingCompleteResponse)
def complete_onboarding(
    payload: OnboardingCompleteRequest,
    user: CurrentUser = Depends(get_current_user),
    service_factory: OnboardingServiceFactory = Depends(get_onboarding_service_factory),
):
    """
    POST /api/onboarding/complete

    - 400 if `organization_name` is missing or blank (nothing is written).
    - 200 "User already onboarded" with the existing org/profile on repeat calls.
    - 200 "Onboarding completed successfully" with the new records otherwise.
    - 500 "Failed to complete onboarding" with the storage error as details.
    """
    organization_name = payload.organization_name
    if not organization_name or not organization_name.strip():
        raise ValidationError("organization_name is required and must be a non-empty string")

    logger.info("Onboarding request for user %s, org: %s", user.id, organization_name)

    try:
        service = service_factory()
        membership = service.get_membership(user.id)
        if membership:
            org, profile = membership
            logger.info("User %s is already onboarded, returning existing data", user.id)
            return OnboardingCompleteResponse(
                success=True,
                message="User already onboarded",
                org=org,
                profile=profile,
            )

        result = service.onboard(user.id, {"organization_name": organization_name})
    except AppError as e:
        if e.status_code < 500:
            raise
        raise UpstreamServiceError("Failed to complete onboarding", details=e.message) from e
    except Exception as e:
        logger.exception("Onboarding error for user %s", user.id)
        raise InternalError("Failed to complete onboarding", details=str(e)) from e

    logger.info("Successfully onboarded user %s", user.id)
    return OnboardingCompleteResponse(
        success=True,
        message="Onboarding completed successfully" if result.created else "User already onboarded",
        org=result.organization,
        profile=result.profile,
    )
