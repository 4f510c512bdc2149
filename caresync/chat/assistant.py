import logging
from typing import Optional

from caresync.config import settings
from caresync.providers.llm.base import LLMProvider
from caresync.providers.llm.factory import LLMFactory

logger = logging.getLogger(__name__)

EMPTY_QUESTION_REPLY = "Please provide a question."
MISSING_KEY_REPLY = "Backend error: Missing LLM_API_KEY."
NO_ANSWER_REPLY = "I could not generate a response."
BACKEND_ERROR_PREFIX = "Gemini backend error: "


class ChatAssistant:
    """
    Forwards a question verbatim to the generative-text provider.

    Always answers with a string: an empty question or a missing API key
    is answered locally, and provider failures come back as
    "Gemini backend error: ..." instead of raising.
    """

    def __init__(self, provider: Optional[LLMProvider] = None):
        self._provider = provider

    def _get_provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = LLMFactory.create()
        return self._provider

    async def ask(self, question: str) -> str:
        if not question or not question.strip():
            return EMPTY_QUESTION_REPLY

        if self._provider is None and not settings.llm_api_key:
            return MISSING_KEY_REPLY

        try:
            answer = await self._get_provider().generate(question)
        except Exception as e:
            logger.error("Assistant request failed: %s", e)
            return f"{BACKEND_ERROR_PREFIX}{e}"

        return answer or NO_ANSWER_REPLY
