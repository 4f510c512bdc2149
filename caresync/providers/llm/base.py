from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """Abstract base class for generative-text providers"""

    @abstractmethod
    async def generate(self, prompt: str, **kwargs) -> str:
        """Generate text for the prompt ("" when the provider returned nothing)"""
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return provider identifier"""
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Return model name"""
        pass
