"""
Tests for the onboarding workflow (services/onboarding.py).

Tests verify that:
1. Organizations are matched case/whitespace-insensitively and created once
2. Blank or missing names fall back to the default organization
3. Profiles are created as 'member' and duplicates are rejected
4. onboard() is idempotent per user
5. Storage errors surface with the operation in the message
"""

from __future__ import annotations

import pytest

from sge.core.errors import AlreadyOnboardedError, UpstreamServiceError
from sge.services.onboarding import (
    DEFAULT_ORGANIZATION_NAME,
    normalize_organization_name,
    organization_name_from_metadata,
)
from tests.conftest import ALICE, BOB


# ============================================================================
# Name normalization
# ============================================================================

@pytest.mark.parametrize("raw", [None, "", "   ", 42])
def test_normalize_blank_names_to_default(raw):
    assert normalize_organization_name(raw) == DEFAULT_ORGANIZATION_NAME


def test_normalize_trims_whitespace():
    assert normalize_organization_name("  Acme Corp  ") == "Acme Corp"


def test_organization_name_from_metadata_accepts_both_spellings():
    assert organization_name_from_metadata({"organization_name": "Acme"}) == "Acme"
    assert organization_name_from_metadata({"organizationName": "Globex"}) == "Globex"
    assert organization_name_from_metadata({}) is None


# ============================================================================
# find_or_create_organization
# ============================================================================

def test_find_or_create_matches_case_and_whitespace(onboarding_service, fake_db):
    first = onboarding_service.find_or_create_organization("Acme")
    second = onboarding_service.find_or_create_organization("  aCME ")
    third = onboarding_service.find_or_create_organization("ACME")

    assert first.id == second.id == third.id
    assert first.name == "Acme"
    assert fake_db.inserts("organizations") == 1


def test_find_or_create_default_for_missing_and_empty(onboarding_service, fake_db):
    from_none = onboarding_service.find_or_create_organization(None)
    from_empty = onboarding_service.find_or_create_organization("")

    assert from_none.name == DEFAULT_ORGANIZATION_NAME
    assert from_none.id == from_empty.id
    assert fake_db.inserts("organizations") == 1


def test_find_or_create_reuses_row_created_elsewhere(onboarding_service, fake_db):
    fake_db.insert_row("organizations", {"name": "acme"})

    organization = onboarding_service.find_or_create_organization("Acme")

    assert organization.name == "acme"
    assert len(fake_db.tables["organizations"]) == 1


def test_find_or_create_sends_trimmed_name_to_database(onboarding_service, fake_db):
    onboarding_service.find_or_create_organization("  Acme Corp ")

    assert fake_db.calls == [("find_or_create_organization", "rpc"), ("organizations", "insert")]
    assert fake_db.tables["organizations"][0]["name"] == "Acme Corp"


@pytest.mark.parametrize("name", ["ΟΔΥΣΣΕΑΣ", "İSTANBUL"])
def test_non_ascii_names_resolve_to_one_organization(onboarding_service, fake_db, name):
    alice = onboarding_service.onboard(ALICE.id, {"organization_name": name})
    bob = onboarding_service.onboard(BOB.id, {"organization_name": name})

    assert alice.organization.id == bob.organization.id
    assert len(fake_db.tables["organizations"]) == 1


def test_find_or_create_surfaces_storage_errors(onboarding_service, fake_db):
    fake_db.fail("find_or_create_organization", "rpc", message="permission denied", code="42501")

    with pytest.raises(UpstreamServiceError) as exc_info:
        onboarding_service.find_or_create_organization("Acme")

    assert exc_info.value.message == "Failed to find or create organization: permission denied"
    assert exc_info.value.code == "42501"
    assert fake_db.tables["organizations"] == []


# ============================================================================
# create_profile / is_onboarded
# ============================================================================

def test_create_profile_defaults_to_member_without_name(onboarding_service):
    organization = onboarding_service.find_or_create_organization("Acme")

    profile = onboarding_service.create_profile(ALICE.id, organization.id)

    assert profile.id == ALICE.id
    assert profile.org_id == organization.id
    assert profile.role == "member"
    assert profile.full_name is None


def test_create_profile_twice_is_rejected(onboarding_service):
    organization = onboarding_service.find_or_create_organization("Acme")
    onboarding_service.create_profile(ALICE.id, organization.id)

    with pytest.raises(AlreadyOnboardedError):
        onboarding_service.create_profile(ALICE.id, organization.id)


def test_is_onboarded_tracks_profile_existence(onboarding_service):
    assert onboarding_service.is_onboarded(ALICE.id) is False

    onboarding_service.onboard(ALICE.id, {"organization_name": "Acme"})

    assert onboarding_service.is_onboarded(ALICE.id) is True
    assert onboarding_service.is_onboarded(BOB.id) is False


def test_is_onboarded_propagates_storage_errors(onboarding_service, fake_db):
    fake_db.fail("profiles", "select", message="connection reset")

    with pytest.raises(UpstreamServiceError, match="Failed to fetch profile"):
        onboarding_service.is_onboarded(ALICE.id)


# ============================================================================
# onboard
# ============================================================================

def test_onboard_creates_organization_and_profile(onboarding_service):
    result = onboarding_service.onboard(ALICE.id, {"organizationName": "Globex", "full_name": "Alice A."})

    assert result.created is True
    assert result.organization.name == "Globex"
    assert result.profile.org_id == result.organization.id
    assert result.profile.full_name == "Alice A."
    assert result.profile.role == "member"


def test_onboard_twice_returns_same_records_without_inserts(onboarding_service, fake_db):
    first = onboarding_service.onboard(ALICE.id, {"organization_name": "Acme"})
    inserts_after_first = len([c for c in fake_db.calls if c[1] == "insert"])

    second = onboarding_service.onboard(ALICE.id, {"organization_name": "Something Else"})

    assert second.created is False
    assert second.organization.id == first.organization.id
    assert second.profile.id == first.profile.id
    assert len([c for c in fake_db.calls if c[1] == "insert"]) == inserts_after_first


def test_users_naming_same_org_share_it(onboarding_service):
    alice = onboarding_service.onboard(ALICE.id, {"organization_name": "Acme"})
    bob = onboarding_service.onboard(BOB.id, {"organization_name": " acme"})

    assert alice.organization.id == bob.organization.id
    assert alice.profile.id != bob.profile.id


def test_onboard_keeps_organization_when_profile_insert_fails(onboarding_service, fake_db):
    fake_db.fail("profiles", "insert", message="foreign key violation", code="23503")

    with pytest.raises(UpstreamServiceError, match="Failed to create profile"):
        onboarding_service.onboard(ALICE.id, {"organization_name": "Acme"})

    assert len(fake_db.tables["organizations"]) == 1
    assert fake_db.tables["profiles"] == []
