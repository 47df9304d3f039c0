"""
llm.py — Chat reply generation via the OpenAI Chat Completions API.

Any failure (no key, network, empty answer) is raised as UpstreamServiceError;
the chat service decides what to do about it.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from openai import OpenAI

from sge.core.config import settings
from sge.core.errors import UpstreamServiceError
from sge.core.logging import get_logger
from sge.models import Message, MessageRole

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are the SGE assistant, helping members of an organization with "
    "strategy and growth questions. Answer concisely."
)


def build_chat_messages(content: str, history: Sequence[Message]) -> List[Dict[str, str]]:
    """
    Convert stored history (oldest first) plus the new user input into the
    Chat Completions message list.
    """
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    for message in history:
        messages.append({"role": MessageRole(message.role).value, "content": message.content})
    messages.append({"role": "user", "content": content})
    return messages


class CompletionClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self._model = model or settings.OPENAI_MODEL
        self._timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self._max_retries = max_retries if max_retries is not None else settings.LLM_MAX_RETRIES
        self._client: Optional[OpenAI] = None

    def _get_client(self) -> OpenAI:
        if not self._api_key:
            raise UpstreamServiceError(
                "Completion API is not configured",
                details="OPENAI_API_KEY is not set",
            )
        if self._client is None:
            self._client = OpenAI(
                api_key=self._api_key,
                timeout=self._timeout,
                max_retries=self._max_retries,
            )
        return self._client

    def generate_reply(self, content: str, history: Sequence[Message] = ()) -> str:
        client = self._get_client()
        messages = build_chat_messages(content, history)

        logger.info("Requesting chat reply from %s (%d history messages)", self._model, len(history))
        try:
            response = client.chat.completions.create(
                model=self._model,
                messages=messages,
            )
        except Exception as e:
            raise UpstreamServiceError(f"OpenAI API call failed: {e}") from e

        reply = response.choices[0].message.content if response.choices else None
        if not reply:
            raise UpstreamServiceError("Empty response from LLM")
        return reply


_completion_client: Optional[CompletionClient] = None


def get_completion_client() -> CompletionClient:
    """FastAPI dependency: process-wide completion client."""
    global _completion_client
    if _completion_client is None:
        _completion_client = CompletionClient()
    return _completion_client
