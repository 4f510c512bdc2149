"""
Generative-text providers used by the chat assistant.
"""
from .base import LLMProvider
from .gemini import GeminiProvider
from .factory import LLMFactory

__all__ = [
    "LLMProvider",
    "GeminiProvider",
    "LLMFactory",
]
