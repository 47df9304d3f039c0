"""
Supabase database client helpers for organizations, profiles and chat tables.

The wrapper does not decide privileges: whoever constructs it chooses the
underlying client (service role for onboarding, user-scoped for chat).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError

from sge.core.errors import UpstreamServiceError
from sge.core.logging import get_logger
from sge.core.supabase import QueryClient
from sge.models import Conversation, Message, MessageRole, Organization, Profile, ProfileRole


logger = get_logger(__name__)

UNIQUE_VIOLATION = "23505"


def _storage_error(action: str, exc: APIError) -> UpstreamServiceError:
    return UpstreamServiceError(
        f"Failed to {action}: {exc.message}",
        details=exc.details or exc.message,
        code=exc.code,
    )


def _first(rows: Optional[List[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    return rows[0] if rows else None


class SupabaseDBClient:
    """
    Thin wrapper providing typed helpers around the SGE tables.
    """

    def __init__(self, client: QueryClient):
        self._client = client

    # ------------------------------------------------------------------ #
    # Organization helpers
    def get_organization(self, org_id: str) -> Optional[Organization]:
        try:
            response = (
                self._client.table("organizations")
                .select("id, name")
                .eq("id", org_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            raise _storage_error("fetch organization", e) from e
        row = _first(response.data)
        return Organization(**row) if row else None

    def find_or_create_organization(self, name: str) -> Organization:
        """
        Resolve an organization by normalized name, creating it if needed.

        Runs the `find_or_create_organization` database function, which keys on
        the `name_key` column and upserts on its unique index. Key computation
        and conflict handling both happen in Postgres, in a single call.
        """
        try:
            response = self._client.rpc("find_or_create_organization", {"org_name": name}).execute()
        except APIError as e:
            raise _storage_error("find or create organization", e) from e
        row = _first(response.data)
        if row is None:
            raise UpstreamServiceError("Failed to find or create organization: no row returned")
        return Organization(**row)

    # ------------------------------------------------------------------ #
    # Profile helpers
    def get_profile(self, user_id: str) -> Optional[Profile]:
        try:
            response = (
                self._client.table("profiles")
                .select("id, org_id, role, full_name")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            raise _storage_error("fetch profile", e) from e
        row = _first(response.data)
        return Profile(**row) if row else None

    def insert_profile(
        self,
        user_id: str,
        org_id: str,
        role: ProfileRole = ProfileRole.MEMBER,
        full_name: Optional[str] = None,
    ) -> Profile:
        payload = {
            "id": user_id,
            "org_id": org_id,
            "role": role.value,
            "full_name": full_name,
        }
        try:
            response = self._client.table("profiles").insert(payload).execute()
        except APIError as e:
            raise _storage_error("create profile", e) from e
        row = _first(response.data)
        if row is None:
            raise UpstreamServiceError("Failed to create profile: no row returned")
        return Profile(**row)

    # ------------------------------------------------------------------ #
    # Conversation & message helpers
    def insert_conversation(self, user_id: str, org_id: str, title: str) -> Conversation:
        payload = {"user_id": user_id, "org_id": org_id, "title": title}
        try:
            response = self._client.table("conversations").insert(payload).execute()
        except APIError as e:
            raise _storage_error("create conversation", e) from e
        row = _first(response.data)
        if row is None:
            raise UpstreamServiceError("Failed to create conversation: no row returned")
        return Conversation(**row)

    def list_conversations(self, org_id: Optional[str] = None) -> List[Conversation]:
        query = self._client.table("conversations").select("*")
        if org_id:
            query = query.eq("org_id", org_id)
        try:
            response = query.order("created_at", desc=True).execute()
        except APIError as e:
            raise _storage_error("list conversations", e) from e
        return [Conversation(**row) for row in response.data or []]

    def list_messages(self, conversation_id: str) -> List[Message]:
        try:
            response = (
                self._client.table("messages")
                .select("*")
                .eq("conversation_id", conversation_id)
                .order("created_at")
                .execute()
            )
        except APIError as e:
            raise _storage_error("list messages", e) from e
        return [Message(**row) for row in response.data or []]

    def insert_message(
        self,
        conversation_id: str,
        org_id: str,
        role: MessageRole,
        content: str,
        user_id: Optional[str] = None,
    ) -> Message:
        payload = {
            "conversation_id": conversation_id,
            "org_id": org_id,
            "user_id": user_id,
            "role": role.value,
            "content": content,
        }
        try:
            response = self._client.table("messages").insert(payload).execute()
        except APIError as e:
            raise _storage_error(f"store {role.value} message", e) from e
        row = _first(response.data)
        if row is None:
            raise UpstreamServiceError("Failed to store message: no row returned")
        return Message(**row)
