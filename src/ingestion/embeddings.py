"""Embedding providers and the single-chunk embedding step."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal, Protocol

from openai import OpenAI, OpenAIError

from src.ingestion.errors import ProviderError, ValidationError
from src.pipeline_config import EmbeddingProviderName

if TYPE_CHECKING:
    from src.config import Settings

Purpose = Literal["document", "query"]

DEFAULT_EMBEDDING_MODELS = {
    EmbeddingProviderName.GEMINI: "text-embedding-004",
    EmbeddingProviderName.OPENAI: "text-embedding-3-small",
}


class EmbeddingProvider(Protocol):
    """Anything that turns one text into one vector."""

    model: str

    def embed(self, text: str) -> list[float]: ...


class OpenAIEmbeddingProvider:
    """Embeddings via the OpenAI embeddings API."""

    def __init__(self, api_key: str, model: str = "text-embedding-3-small", dimensions: int | None = None) -> None:
        self.model = model
        self._dimensions = dimensions
        self._client = OpenAI(api_key=api_key or None)

    def embed(self, text: str) -> list[float]:
        kwargs: dict[str, Any] = {}
        # Only the text-embedding-3 family accepts a dimensions override.
        if self._dimensions and self.model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self._dimensions
        try:
            response = self._client.embeddings.create(input=[text], model=self.model, **kwargs)
        except OpenAIError as exc:
            raise ProviderError(f"OpenAI embedding request failed: {exc}") from exc
        if not response.data:
            raise ProviderError("OpenAI returned no embedding data")
        return list(response.data[0].embedding)


class GeminiEmbeddingProvider:
    """Embeddings via Google's Generative AI SDK (``text-embedding-004``)."""

    def __init__(self, api_key: str, model: str = "text-embedding-004", purpose: Purpose = "document") -> None:
        import google.generativeai as genai

        genai.configure(api_key=api_key)  # type: ignore[attr-defined]
        self._genai = genai
        self.model = model
        self._task_type = "retrieval_query" if purpose == "query" else "retrieval_document"

    def embed(self, text: str) -> list[float]:
        model_name = self.model if self.model.startswith("models/") else f"models/{self.model}"
        try:
            result = self._genai.embed_content(  # type: ignore[attr-defined]
                model=model_name,
                content=text,
                task_type=self._task_type,
            )
        except Exception as exc:
            raise ProviderError(f"Gemini embedding request failed: {exc}") from exc
        values = result.get("embedding") if isinstance(result, dict) else None
        if values is None:
            raise ProviderError("Gemini response contained no embedding")
        return list(values)


def get_embedding_provider(settings: Settings | None = None, purpose: Purpose = "document") -> EmbeddingProvider:
    """Build the provider named by ``settings.embedding_provider``.

    An empty ``embedding_model`` selects that provider's default model.

    Raises:
        ValueError: If the provider name is not recognized.
    """
    if settings is None:
        from src.config import settings as default_settings

        settings = default_settings

    name = EmbeddingProviderName(settings.embedding_provider)
    model = settings.embedding_model or DEFAULT_EMBEDDING_MODELS[name]
    if name is EmbeddingProviderName.OPENAI:
        return OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key,
            model=model,
            dimensions=settings.embedding_dimensions,
        )
    return GeminiEmbeddingProvider(
        api_key=settings.gemini_api_key,
        model=model,
        purpose=purpose,
    )


def generate_embedding(provider: EmbeddingProvider, text: str) -> list[float]:
    """Embed one chunk of text.

    Args:
        provider: The embedding backend to call.
        text: Chunk text; must contain non-whitespace characters.

    Returns:
        The embedding vector as a list of floats.

    Raises:
        ValidationError: If *text* is empty.
        ProviderError: If the provider fails or returns a malformed vector.
    """
    if not text or not text.strip():
        raise ValidationError("Cannot embed empty text")

    try:
        vector = provider.embed(text)
    except ProviderError:
        raise
    except Exception as exc:
        raise ProviderError(f"Embedding provider {provider.model!r} failed: {exc}") from exc

    if not vector:
        raise ProviderError(f"Embedding provider {provider.model!r} returned an empty vector")
    try:
        return [float(v) for v in vector]
    except (TypeError, ValueError) as exc:
        raise ProviderError(f"Embedding provider {provider.model!r} returned non-numeric values") from exc
