from .base import LLMProvider
from .gemini import GeminiProvider
from caresync.config import settings


class LLMFactory:
    """Factory for creating generative-text providers from configuration"""

    @staticmethod
    def create(model: str = None) -> LLMProvider:
        """
        Create provider based on settings.

        Args:
            model: Optional model override. If None, uses settings.llm_model

        Raises:
            ValueError: If provider not supported or credentials not configured
        """
        provider = settings.llm_provider.lower()
        model_name = model or settings.llm_model

        if not model_name:
            raise ValueError("LLM_MODEL not configured. Set it in .env (e.g., 'gemini-1.5-flash')")

        if not settings.llm_api_key:
            raise ValueError("LLM_API_KEY not configured. Set it in .env")

        if provider == "gemini":
            return GeminiProvider(
                api_key=settings.llm_api_key,
                model=model_name,
                timeout=settings.llm_timeout,
            )
        else:
            raise ValueError(f"Unsupported LLM provider: {provider}")
