"""
webhooks.py — Supabase Auth Webhook & Manual Onboarding Endpoints

Endpoints:
    • POST /webhooks/auth    → called by Supabase Auth on user creation (no auth).
    • POST /webhooks/onboard → re-run onboarding for a user the webhook missed
                               (bearer auth).

The auth webhook always answers 200, even when onboarding failed, so Supabase
does not retry in a loop. Failures are only visible in the logs (ERROR level,
with the user id).
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from sge.core.errors import AlreadyOnboardedError, ValidationError
from sge.core.logging import get_logger
from sge.core.security import CurrentUser, get_current_user
from sge.services.onboarding import (
    OnboardingServiceFactory,
    UserOnboardingService,
    get_onboarding_service,
    get_onboarding_service_factory,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/webhooks",
    tags=["webhooks"]
)

HANDLED_EVENT_TYPES = {"INSERT", "user.created"}

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class AuthWebhookPayload(BaseModel):
    """
    Supabase webhook body. `record` is the auth.users row; only `id` and the
    signup metadata are used.
    """
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    record: Optional[Dict[str, Any]] = None


class ManualOnboardRequest(BaseModel):
    userId: Optional[str] = None
    organizationName: Optional[str] = None


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.post("/auth")
def handle_auth_webhook(
    payload: AuthWebhookPayload,
    service_factory: OnboardingServiceFactory = Depends(get_onboarding_service_factory),
):
    """
    POST /webhooks/auth

    Only INSERT / user.created events are processed; everything else is
    acknowledged and ignored.
    """
    record = payload.record or {}
    user_id = record.get("id")
    logger.info("Received auth webhook: type=%s user=%s", payload.type, user_id)

    if payload.type not in HANDLED_EVENT_TYPES:
        return {"message": "Event type not handled", "type": payload.type}

    if not user_id:
        logger.error("No user ID in webhook payload")
        raise ValidationError("Invalid webhook payload: missing user ID")

    metadata = record.get("raw_user_meta_data") or record.get("user_metadata") or {}

    try:
        service = service_factory()
        if service.is_onboarded(user_id):
            logger.info("User %s is already onboarded, skipping", user_id)
            return {"message": "User already onboarded", "userId": user_id}

        result = service.onboard(user_id, metadata)
    except Exception as e:
        # 200 keeps Supabase from retrying; the failure is only in the logs.
        logger.error("Auth webhook onboarding failed for user %s: %s", user_id, e)
        return {
            "success": False,
            "error": getattr(e, "message", str(e)),
            "message": "Webhook processed with errors",
        }

    if not result.created:
        logger.info("User %s was onboarded concurrently, skipping", user_id)
        return {"message": "User already onboarded", "userId": user_id}

    return {
        "success": True,
        "message": "User onboarded successfully",
        "userId": user_id,
        "organizationId": result.organization.id,
        "organizationName": result.organization.name,
    }


@router.post("/onboard")
def manual_onboard(
    payload: ManualOnboardRequest,
    user: CurrentUser = Depends(get_current_user),
    service: UserOnboardingService = Depends(get_onboarding_service),
):
    """
    POST /webhooks/onboard

    For users whose webhook failed. 400 when `userId` is missing or the user
    already has a profile.
    """
    if not payload.userId:
        raise ValidationError("userId is required")

    logger.info("Manual onboarding of user %s requested by %s", payload.userId, user.id)

    if service.is_onboarded(payload.userId):
        raise AlreadyOnboardedError("User is already onboarded", extra={"userId": payload.userId})

    result = service.onboard(payload.userId, {"organization_name": payload.organizationName})
    if not result.created:
        raise AlreadyOnboardedError("User is already onboarded", extra={"userId": payload.userId})

    return {
        "success": True,
        "message": "User onboarded successfully",
        "organization": result.organization,
        "profile": result.profile,
    }
