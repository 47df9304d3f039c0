"""
chat.py — Conversation & Message Endpoints (API Layer)

Endpoints (all bearer-authenticated):
    • POST /api/chat/conversations               → create a conversation
    • GET  /api/chat/conversations               → list conversations (newest first)
    • GET  /api/chat/conversations/{id}/messages → list messages (oldest first)
    • POST /api/chat/message                     → one chat turn (user msg + reply)

Storage and reply generation live in services/chat.py.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from sge.core.security import CurrentUser, get_current_user
from sge.models import Conversation, Message
from sge.services.chat import ChatService, get_chat_service

router = APIRouter(
    prefix="/api/chat",
    tags=["chat"]
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class ConversationCreate(BaseModel):
    title: Optional[str] = None


class SendMessageRequest(BaseModel):
    conversation_id: Optional[str] = None
    content: Optional[str] = None


class SendMessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str
    user_message: Message = Field(alias="userMessage")
    assistant_message: Message = Field(alias="assistantMessage")


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.post("/conversations", response_model=Conversation, status_code=status.HTTP_201_CREATED)
def create_conversation(
    payload: Optional[ConversationCreate] = None,
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """POST /api/chat/conversations (400 if the caller has no organization)."""
    return service.create_conversation(user, payload.title if payload else None)


@router.get("/conversations", response_model=List[Conversation])
def list_conversations(
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.list_conversations(user)


@router.get("/conversations/{conversation_id}/messages", response_model=List[Message])
def list_messages(
    conversation_id: str,
    service: ChatService = Depends(get_chat_service),
):
    return service.list_messages(conversation_id)


@router.post("/message", response_model=SendMessageResponse, response_model_by_alias=True)
def send_message(
    payload: SendMessageRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """
    POST /api/chat/message

    Without `conversation_id` a new conversation is started, titled after the
    first 30 characters of `content`. The assistant reply falls back to an
    echo of the input when the LLM is unavailable.
    """
    turn = service.send_message(user, payload.conversation_id, payload.content)
    return SendMessageResponse(
        conversation_id=turn.conversation_id,
        user_message=turn.user_message,
        assistant_message=turn.assistant_message,
    )
