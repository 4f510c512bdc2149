"""Google Gemini provider (generateContent REST endpoint)"""
import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .base import LLMProvider

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


def extract_text(data: Dict[str, Any]) -> str:
    """
    First candidate's first text part; the prompt block reason if the
    prompt was refused; "" otherwise.
    """
    candidates = data.get("candidates") or []
    if candidates:
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if parts and parts[0].get("text"):
            return parts[0]["text"]
    block_reason = (data.get("promptFeedback") or {}).get("blockReason")
    return block_reason or ""


class GeminiProvider(LLMProvider):
    """Gemini provider over plain HTTP with retries on connection errors"""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google AI Studio API key
            model: Model name (e.g., 'gemini-1.5-flash')
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{GEMINI_API_BASE}/{self.model}:generateContent"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def generate(self, prompt: str, **kwargs) -> str:
        """
        Send the prompt as a single user turn.

        The key travels in the x-goog-api-key header so it never appears
        in URLs, error messages or logs. Error replies are not raised:
        their body goes through extract_text like any other.

        Args:
            prompt: Text forwarded verbatim

        Returns:
            Answer text, or "" when the response carried none
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                self.endpoint,
                headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
            )
        if response.is_error:
            logger.warning("Gemini replied with HTTP %d", response.status_code)
        try:
            data = response.json()
        except ValueError:
            return ""
        return extract_text(data) if isinstance(data, dict) else ""

    def get_provider_name(self) -> str:
        return "gemini"

    def get_model_name(self) -> str:
        return self.model
