"""
organization.py — Organization (tenant) and Profile (membership) records

Organization:
- The tenant unit. Owns conversations and messages.
- Created lazily the first time a user names it during onboarding.
- Matched case-insensitively on the trimmed name (`name_key` column).

Profile:
- One row per user identity (primary key == auth user id).
- Links the user to exactly one organization with a role.
- Existence of a profile is what "onboarded" means.

Rows live in Supabase (`organizations`, `profiles`); these models are the
typed view the backend works with, and double as API response schemas.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ProfileRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class Organization(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    org_id: Optional[str] = None
    role: ProfileRole = ProfileRole.MEMBER
    full_name: Optional[str] = None
