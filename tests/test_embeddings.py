"""Tests for embedding providers and the single-chunk embedding step (no live API calls)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from src.config import Settings
from src.ingestion.embeddings import (
    GeminiEmbeddingProvider,
    OpenAIEmbeddingProvider,
    generate_embedding,
    get_embedding_provider,
)
from src.ingestion.errors import ProviderError, ValidationError


def _settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


class TestGenerateEmbedding:
    def test_returns_floats(self) -> None:
        provider = MagicMock(model="m")
        provider.embed.return_value = [1, 0.5, 0]
        assert generate_embedding(provider, "Hello.") == [1.0, 0.5, 0.0]
        provider.embed.assert_called_once_with("Hello.")

    @pytest.mark.parametrize("text", ["", "   "])
    def test_empty_text_rejected(self, text: str) -> None:
        provider = MagicMock(model="m")
        with pytest.raises(ValidationError):
            generate_embedding(provider, text)
        provider.embed.assert_not_called()

    def test_unexpected_provider_error_is_wrapped(self) -> None:
        provider = MagicMock(model="m")
        provider.embed.side_effect = RuntimeError("socket closed")
        with pytest.raises(ProviderError, match="socket closed"):
            generate_embedding(provider, "Hello.")

    def test_empty_vector_is_provider_error(self) -> None:
        provider = MagicMock(model="m")
        provider.embed.return_value = []
        with pytest.raises(ProviderError, match="empty vector"):
            generate_embedding(provider, "Hello.")

    def test_non_numeric_vector_is_provider_error(self) -> None:
        provider = MagicMock(model="m")
        provider.embed.return_value = ["a", "b"]
        with pytest.raises(ProviderError, match="non-numeric"):
            generate_embedding(provider, "Hello.")


class TestOpenAIProvider:
    def test_embed_passes_dimensions_for_v3_models(self) -> None:
        with patch("src.ingestion.embeddings.OpenAI") as mock_openai:
            create = mock_openai.return_value.embeddings.create
            create.return_value.data = [MagicMock(embedding=[0.1, 0.2, 0.3])]
            provider = OpenAIEmbeddingProvider(api_key="k", model="text-embedding-3-small", dimensions=3)

            assert provider.embed("Hello.") == [0.1, 0.2, 0.3]

        create.assert_called_once_with(input=["Hello."], model="text-embedding-3-small", dimensions=3)

    def test_no_dimensions_for_older_models(self) -> None:
        with patch("src.ingestion.embeddings.OpenAI") as mock_openai:
            create = mock_openai.return_value.embeddings.create
            create.return_value.data = [MagicMock(embedding=[0.1])]
            provider = OpenAIEmbeddingProvider(api_key="k", model="text-embedding-ada-002", dimensions=1536)
            provider.embed("Hello.")

        create.assert_called_once_with(input=["Hello."], model="text-embedding-ada-002")

    def test_api_error_becomes_provider_error(self) -> None:
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        with patch("src.ingestion.embeddings.OpenAI") as mock_openai:
            mock_openai.return_value.embeddings.create.side_effect = openai.APIConnectionError(request=request)
            provider = OpenAIEmbeddingProvider(api_key="k")
            with pytest.raises(ProviderError, match="OpenAI embedding request failed"):
                provider.embed("Hello.")

    def test_empty_response_is_provider_error(self) -> None:
        with patch("src.ingestion.embeddings.OpenAI") as mock_openai:
            mock_openai.return_value.embeddings.create.return_value.data = []
            provider = OpenAIEmbeddingProvider(api_key="k")
            with pytest.raises(ProviderError, match="no embedding data"):
                provider.embed("Hello.")


class TestGeminiProvider:
    def test_embed_document(self) -> None:
        with (
            patch("google.generativeai.configure") as mock_configure,
            patch("google.generativeai.embed_content", return_value={"embedding": [0.5, 0.25]}) as mock_embed,
        ):
            provider = GeminiEmbeddingProvider(api_key="g-key")
            assert provider.embed("Hello.") == [0.5, 0.25]

        mock_configure.assert_called_once_with(api_key="g-key")
        mock_embed.assert_called_once_with(
            model="models/text-embedding-004",
            content="Hello.",
            task_type="retrieval_document",
        )

    def test_query_purpose_uses_query_task_type(self) -> None:
        with (
            patch("google.generativeai.configure"),
            patch("google.generativeai.embed_content", return_value={"embedding": [0.5]}) as mock_embed,
        ):
            GeminiEmbeddingProvider(api_key="g-key", purpose="query").embed("What is PTO?")

        assert mock_embed.call_args.kwargs["task_type"] == "retrieval_query"

    def test_sdk_error_becomes_provider_error(self) -> None:
        with (
            patch("google.generativeai.configure"),
            patch("google.generativeai.embed_content", side_effect=RuntimeError("quota exceeded")),
        ):
            provider = GeminiEmbeddingProvider(api_key="g-key")
            with pytest.raises(ProviderError, match="quota exceeded"):
                provider.embed("Hello.")

    def test_missing_embedding_key(self) -> None:
        with (
            patch("google.generativeai.configure"),
            patch("google.generativeai.embed_content", return_value={}),
        ):
            provider = GeminiEmbeddingProvider(api_key="g-key")
            with pytest.raises(ProviderError, match="no embedding"):
                provider.embed("Hello.")


class TestProviderFactory:
    def test_openai_selected(self) -> None:
        with patch("src.ingestion.embeddings.OpenAI"):
            provider = get_embedding_provider(
                _settings(embedding_provider="openai", embedding_model="text-embedding-3-small")
            )
        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.model == "text-embedding-3-small"

    def test_openai_without_model_uses_openai_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Switching only the provider must not send a Gemini model name to OpenAI."""
        monkeypatch.delenv("EMBEDDING_MODEL", raising=False)
        with patch("src.ingestion.embeddings.OpenAI"):
            provider = get_embedding_provider(_settings(embedding_provider="openai"))
        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.model == "text-embedding-3-small"

    def test_explicit_model_overrides_default(self) -> None:
        with patch("google.generativeai.configure"):
            provider = get_embedding_provider(
                _settings(embedding_provider="gemini", embedding_model="gemini-embedding-001")
            )
        assert provider.model == "gemini-embedding-001"

    def test_gemini_selected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("EMBEDDING_MODEL", raising=False)
        with patch("google.generativeai.configure"):
            provider = get_embedding_provider(_settings(embedding_provider="gemini"))
        assert isinstance(provider, GeminiEmbeddingProvider)
        assert provider.model == "text-embedding-004"

    def test_unknown_provider_raises(self) -> None:
        with pytest.raises(ValueError):
            get_embedding_provider(_settings(embedding_provider="cohere"))
