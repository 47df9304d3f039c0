"""
conversation.py — Chat Conversation and Message records

Both are scoped to one organization; RLS policies in Supabase keep them there.
Assistant/system messages carry `user_id = None`.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Conversation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    org_id: str
    user_id: str
    title: Optional[str] = None
    created_at: Optional[str] = None


class Message(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str
    conversation_id: str
    org_id: str
    user_id: Optional[str] = None
    role: MessageRole
    content: str
    created_at: Optional[str] = None
