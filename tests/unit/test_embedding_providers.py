"""Unit tests for embedding provider adapters - OpenAI, fastembed."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest

from docrag.config.settings import Settings
from docrag.utils.errors import EmbeddingUnavailableError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _response(items: list[tuple[int, list[float]]]) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(index=index, embedding=vector) for index, vector in items]
    response.usage = MagicMock(total_tokens=42)
    return response


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_provider_name_and_model_version(self, settings: Settings) -> None:
        from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        provider = OpenAIEmbeddingProvider(settings)
        assert provider.get_provider_name() == "openai_embedding"
        assert provider.get_model_version() == "openai:text-embedding-3-small"
        assert provider.get_dimension() == 1536

    def test_compatible_host_label(self) -> None:
        from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        provider = OpenAIEmbeddingProvider(_settings(openai_base_url="http://localhost:8001/v1"))
        assert provider.get_provider_name() == "openai-compatible_embedding"

    def test_is_available_without_key(self) -> None:
        from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        assert OpenAIEmbeddingProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_embed_batch_orders_by_index(self, settings: Settings) -> None:
        from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            return_value=_response([(1, [0.0, 1.0]), (0, [1.0, 0.0])])
        )

        with patch(
            "docrag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed_batch(["first", "second"])

        assert result == [[1.0, 0.0], [0.0, 1.0]]
        mock_client.embeddings.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_embed_single(self, settings: Settings) -> None:
        from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([(0, [0.5] * 8)]))

        with patch(
            "docrag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed("hello")

        assert result == [0.5] * 8

    @pytest.mark.asyncio
    async def test_empty_batch_makes_no_call(self, settings: Settings) -> None:
        from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        with patch(
            "docrag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            assert await provider.embed_batch([]) == []
        mock_client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_error_becomes_retryable_error(self, settings: Settings) -> None:
        from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        import openai

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(
                message="Rate limit",
                request=MagicMock(),
                body=None,
            )
        )

        with patch(
            "docrag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingUnavailableError) as exc_info:
                await provider.embed_batch(["test"])

        assert exc_info.value.retryable
        assert exc_info.value.step == "embedding"


# ======================================================================
# FastEmbed Embedding Provider
# ======================================================================


class TestFastEmbedEmbeddingProvider:
    def test_metadata(self) -> None:
        from docrag.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        provider = FastEmbedEmbeddingProvider()
        assert provider.get_dimension() == 384
        assert provider.get_provider_name() == "fastembed_bge-small-en-v1.5"
        assert provider.get_model_version() == "fastembed:BAAI/bge-small-en-v1.5"

    @pytest.mark.asyncio
    async def test_model_loaded_once_and_batched(self) -> None:
        from docrag.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        model = MagicMock()
        model.embed.side_effect = lambda batch: [np.full(3, float(len(t))) for t in batch]

        with patch("fastembed.TextEmbedding", return_value=model) as factory:
            provider = FastEmbedEmbeddingProvider(batch_size=2)
            first = await provider.embed_batch(["a", "bb", "ccc"])
            second = await provider.embed("dddd")

        assert factory.call_count == 1
        assert [call.args[0] for call in model.embed.call_args_list] == [["a", "bb"], ["ccc"], ["dddd"]]
        assert first == [[1.0] * 3, [2.0] * 3, [3.0] * 3]
        assert second == [4.0] * 3

    @pytest.mark.asyncio
    async def test_load_failure_is_unavailable(self) -> None:
        from docrag.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        with patch("fastembed.TextEmbedding", side_effect=OSError("no network")):
            provider = FastEmbedEmbeddingProvider()
            with pytest.raises(EmbeddingUnavailableError, match="Failed to load"):
                await provider.embed_batch(["text"])
