"""
LLM provider abstraction supporting OpenAI, Anthropic, and Google.
Provides a unified async interface for generating text and embeddings.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from openai import AsyncOpenAI
from anthropic import AsyncAnthropic
import google.generativeai as genai

from config import Settings, settings as default_settings
from observability import trace_logger
from integrations.errors import MalformedResponseError


def _require_text(text, provider: str) -> str:
    """Reject empty or non-string generation payloads."""
    if not isinstance(text, str) or not text.strip():
        raise MalformedResponseError(f"{provider} returned an empty completion")
    return text


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    model_name: str

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000
    ) -> str:
        """Generate text from prompt."""
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider."""

    def __init__(self, settings: Settings = default_settings):
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY not configured")
        self.client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.generation_timeout_seconds
        )
        self.model_name = settings.llm_model

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000
    ) -> str:
        """Generate text from prompt."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
            if not response.choices:
                raise MalformedResponseError("openai returned no choices")
            return _require_text(response.choices[0].message.content, "openai")
        except Exception as e:
            trace_logger.error_occurred(
                error_type="llm_generation_error",
                error_message=str(e),
                context={"provider": "openai", "model": self.model_name}
            )
            raise


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM provider."""

    def __init__(self, settings: Settings = default_settings):
        if not settings.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY not configured")
        self.client = AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.generation_timeout_seconds
        )
        self.model_name = settings.llm_model

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000
    ) -> str:
        """Generate text from prompt."""
        try:
            response = await self.client.messages.create(
                model=self.model_name,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt or "",
                messages=[{"role": "user", "content": prompt}]
            )
            text_blocks = [
                block.text for block in response.content
                if getattr(block, "type", None) == "text"
            ]
            return _require_text("".join(text_blocks), "anthropic")
        except Exception as e:
            trace_logger.error_occurred(
                error_type="llm_generation_error",
                error_message=str(e),
                context={"provider": "anthropic", "model": self.model_name}
            )
            raise


class GoogleProvider(LLMProvider):
    """Google Gemini LLM provider."""

    def __init__(self, settings: Settings = default_settings):
        if not settings.google_api_key:
            raise ValueError("GOOGLE_API_KEY not configured")
        genai.configure(api_key=settings.google_api_key)
        self.model = genai.GenerativeModel(settings.llm_model)
        self.model_name = settings.llm_model

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000
    ) -> str:
        """Generate text from prompt."""
        full_prompt = prompt
        if system_prompt:
            full_prompt = f"{system_prompt}\n\n{prompt}"

        try:
            response = await self.model.generate_content_async(
                full_prompt,
                generation_config=genai.types.GenerationConfig(
                    temperature=temperature,
                    max_output_tokens=max_tokens
                )
            )
            return _require_text(response.text, "google")
        except Exception as e:
            trace_logger.error_occurred(
                error_type="llm_generation_error",
                error_message=str(e),
                context={"provider": "google", "model": self.model_name}
            )
            raise


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    @abstractmethod
    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for texts."""
        pass


class OpenAIEmbedding(EmbeddingProvider):
    """OpenAI embeddings provider."""

    def __init__(self, settings: Settings = default_settings):
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY not configured")
        self.client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.embedding_timeout_seconds
        )
        self.model = settings.embedding_model

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for texts."""
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=texts
            )
            if len(response.data) != len(texts):
                raise MalformedResponseError(
                    f"openai returned {len(response.data)} embeddings for {len(texts)} inputs"
                )
            # Results carry their input index; do not rely on list order
            ordered = sorted(response.data, key=lambda item: item.index)
            return [list(item.embedding) for item in ordered]
        except Exception as e:
            trace_logger.error_occurred(
                error_type="embedding_error",
                error_message=str(e),
                context={"provider": "openai", "model": self.model}
            )
            raise


def get_llm_provider(settings: Settings = default_settings) -> LLMProvider:
    """Factory function to get configured LLM provider."""
    provider_map = {
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
        "google": GoogleProvider
    }

    provider_class = provider_map.get(settings.llm_provider)
    if not provider_class:
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")

    return provider_class(settings)


def get_embedding_provider(settings: Settings = default_settings) -> EmbeddingProvider:
    """Factory function to get configured embedding provider."""
    # Only OpenAI embeddings are used to build the paper index
    if settings.embedding_provider == "openai":
        return OpenAIEmbedding(settings)
    else:
        raise ValueError(f"Unknown embedding provider: {settings.embedding_provider}")
