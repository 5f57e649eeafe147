from __future__ import annotations

import asyncio
import math
import unittest
from unittest.mock import AsyncMock, MagicMock

from opp_match import (
    CacheLayer,
    DimensionMismatchError,
    EmbeddingService,
    HashEmbeddingProvider,
    InvalidArgumentError,
    OpenAIEmbeddingProvider,
    ProviderUnavailableError,
)


def _openai_client(embedding: list[float]) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=embedding)]
    client = MagicMock()
    client.embeddings.create = AsyncMock(return_value=response)
    return client


class _FailingProvider:
    name = "failing"
    model = "none"
    dimension = 4

    async def embed(self, text: str) -> list[float]:
        raise RuntimeError("rate limited")


class _HangingProvider:
    name = "hanging"
    model = "none"
    dimension = 4

    async def embed(self, text: str) -> list[float]:
        await asyncio.sleep(5)
        return [0.0] * 4


class HashEmbeddingProviderTests(unittest.IsolatedAsyncioTestCase):
    async def test_deterministic_unit_vectors(self) -> None:
        provider = HashEmbeddingProvider(dimension=16)

        first = await provider.embed("cloud migration services")
        second = await provider.embed("cloud migration services")
        other = await provider.embed("janitorial services")

        self.assertEqual(first, second)
        self.assertNotEqual(first, other)
        self.assertEqual(len(first), 16)
        self.assertAlmostEqual(math.sqrt(sum(v * v for v in first)), 1.0, places=9)


class OpenAIEmbeddingProviderTests(unittest.IsolatedAsyncioTestCase):
    async def test_embed_calls_embeddings_api(self) -> None:
        client = _openai_client([0.1] * 1536)
        provider = OpenAIEmbeddingProvider(client=client)

        result = await provider.embed("Test text")

        self.assertEqual(len(result), 1536)
        client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-small",
            input="Test text",
        )

    async def test_reduced_dimensions_are_requested(self) -> None:
        client = _openai_client([0.1] * 256)
        provider = OpenAIEmbeddingProvider(client=client, dimension=256)

        await provider.embed("Test text")

        self.assertEqual(client.embeddings.create.call_args.kwargs["dimensions"], 256)

    def test_requires_api_key(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            OpenAIEmbeddingProvider(api_key=None)


class EmbeddingServiceTests(unittest.IsolatedAsyncioTestCase):
    async def test_rejects_blank_text(self) -> None:
        service = EmbeddingService(HashEmbeddingProvider(dimension=4))
        with self.assertRaises(InvalidArgumentError):
            await service.embed("   ")

    async def test_results_are_cached(self) -> None:
        client = _openai_client([0.5, 0.5, 0.5, 0.5])
        cache = CacheLayer()
        service = EmbeddingService(
            OpenAIEmbeddingProvider(client=client, dimension=4, model="custom-model"),
            cache=cache,
        )

        first = await service.embed("same text")
        second = await service.embed("same text")

        self.assertEqual(first, second)
        client.embeddings.create.assert_awaited_once()
        self.assertEqual(cache.get_stats()["entries"], {"embedding": 1})

    async def test_provider_failure_raises_retryable_error(self) -> None:
        service = EmbeddingService(_FailingProvider())
        with self.assertRaises(ProviderUnavailableError) as ctx:
            await service.embed("text")
        self.assertTrue(ctx.exception.retryable)

    async def test_provider_timeout_raises_provider_unavailable(self) -> None:
        service = EmbeddingService(_HangingProvider(), timeout=0.05)
        with self.assertRaises(ProviderUnavailableError):
            await service.embed("text")

    async def test_fallback_returns_hash_vector(self) -> None:
        cache = CacheLayer()
        service = EmbeddingService(_FailingProvider(), cache=cache, fallback_on_error=True)

        vector = await service.embed("text")

        self.assertEqual(vector, HashEmbeddingProvider(dimension=4).vector("text"))
        self.assertEqual(cache.get_stats()["total_entries"], 0)

    async def test_fallback_can_be_refused_per_call(self) -> None:
        service = EmbeddingService(_FailingProvider(), fallback_on_error=True)
        with self.assertRaises(ProviderUnavailableError):
            await service.embed("text", allow_fallback=False)

    async def test_wrong_output_dimension_is_rejected(self) -> None:
        client = _openai_client([0.1, 0.2])
        service = EmbeddingService(
            OpenAIEmbeddingProvider(client=client, dimension=2),
            dimension=3,
        )
        with self.assertRaises(DimensionMismatchError):
            await service.embed("text")


if __name__ == "__main__":
    unittest.main()
