"""
chat.py — Conversation / message persistence and the chat turn.

All reads and writes go through the caller's user-scoped client, so Supabase
RLS decides what each user can see. Reply generation is best-effort: if the
history lookup or the completion call fails, an echo reply is stored instead
and the request still succeeds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from fastapi import Depends

from sge.core.errors import NotOnboardedError, ValidationError
from sge.core.logging import get_logger
from sge.core.security import CurrentUser, get_current_user
from sge.models import Conversation, Message, MessageRole
from sge.services.db_client import SupabaseDBClient
from sge.services.llm import CompletionClient, get_completion_client

logger = get_logger(__name__)

DEFAULT_CONVERSATION_TITLE = "New Conversation"
TITLE_PREFIX_LENGTH = 30


def title_from_content(content: str) -> str:
    if len(content) > TITLE_PREFIX_LENGTH:
        return content[:TITLE_PREFIX_LENGTH] + "..."
    return content


def fallback_reply(content: str) -> str:
    return f"I got this input: {content}"


@dataclass
class ChatTurn:
    conversation_id: str
    user_message: Message
    assistant_message: Message


class ChatService:
    def __init__(self, db: SupabaseDBClient, completion: CompletionClient) -> None:
        self._db = db
        self._completion = completion

    @staticmethod
    def _require_org(user: CurrentUser) -> str:
        if not user.org_id:
            raise NotOnboardedError("User does not belong to an organization")
        return user.org_id

    # ------------------------------------------------------------------ #
    def create_conversation(self, user: CurrentUser, title: Optional[str] = None) -> Conversation:
        org_id = self._require_org(user)
        return self._db.insert_conversation(
            user_id=user.id,
            org_id=org_id,
            title=(title or "").strip() or DEFAULT_CONVERSATION_TITLE,
        )

    def list_conversations(self, user: CurrentUser) -> List[Conversation]:
        return self._db.list_conversations(org_id=user.org_id)

    def list_messages(self, conversation_id: str) -> List[Message]:
        return self._db.list_messages(conversation_id)

    # ------------------------------------------------------------------ #
    def send_message(self, user: CurrentUser, conversation_id: Optional[str], content: Optional[str]) -> ChatTurn:
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("content is required and must be a non-empty string")
        org_id = self._require_org(user)

        if not conversation_id:
            conversation = self._db.insert_conversation(
                user_id=user.id,
                org_id=org_id,
                title=title_from_content(content),
            )
            conversation_id = conversation.id
            logger.info("Started conversation %s for user %s", conversation_id, user.id)

        user_message = self._db.insert_message(
            conversation_id=conversation_id,
            org_id=org_id,
            role=MessageRole.USER,
            content=content,
            user_id=user.id,
        )

        reply = self._generate_reply(user, conversation_id, user_message)

        assistant_message = self._db.insert_message(
            conversation_id=conversation_id,
            org_id=org_id,
            role=MessageRole.ASSISTANT,
            content=reply,
        )
        return ChatTurn(
            conversation_id=conversation_id,
            user_message=user_message,
            assistant_message=assistant_message,
        )

    def _generate_reply(self, user: CurrentUser, conversation_id: str, user_message: Message) -> str:
        try:
            history = [
                message for message in self._db.list_messages(conversation_id)
                if message.id != user_message.id
            ]
            return self._completion.generate_reply(user_message.content, history)
        except Exception as e:
            logger.warning(
                "Chat reply failed for user %s in conversation %s, using echo fallback: %s",
                user.id,
                conversation_id,
                e,
            )
            return fallback_reply(user_message.content)


def get_chat_service(
    user: CurrentUser = Depends(get_current_user),
    completion: CompletionClient = Depends(get_completion_client),
) -> ChatService:
    """FastAPI dependency: chat service bound to the caller's RLS-scoped client."""
    return ChatService(SupabaseDBClient(user.client), completion)
