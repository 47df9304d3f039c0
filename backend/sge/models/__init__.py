"""
models — Typed records for the Supabase tables the backend reads and writes.
"""

from sge.models.conversation import Conversation, Message, MessageRole
from sge.models.organization import Organization, Profile, ProfileRole

__all__ = [
    "Conversation",
    "Message",
    "MessageRole",
    "Organization",
    "Profile",
    "ProfileRole",
]
