from __future__ import annotations

import unittest

from opp_match import (
    CompanyProfile,
    HashEmbeddingProvider,
    InMemoryVectorStore,
    MatchingService,
    Opportunity,
    Settings,
    embedding_key,
)


class _DisconnectedStore(InMemoryVectorStore):
    def is_connected(self) -> bool:
        raise RuntimeError("connection refused")


def _settings(**overrides) -> Settings:  # noqa: ANN003
    values = {"vector_dimension": 8, "embed_provider": "hash", "match_check_interval_ms": 60_000}
    values.update(overrides)
    return Settings(**values)


class MatchingServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryVectorStore()
        self.service = MatchingService(_settings(), vector_store=self.store)

    async def asyncTearDown(self) -> None:
        await self.service.close()

    async def test_wiring_uses_settings(self) -> None:
        self.assertIs(self.service.store, self.store)
        self.assertIsInstance(self.service.embeddings.provider, HashEmbeddingProvider)
        self.assertEqual(self.service.engine.dimension, 8)
        self.assertEqual(self.service.matcher.config.check_interval_ms, 60_000)
        self.assertEqual(self.service.cache.ttl_for("search:x"), 600.0)

    async def test_ingest_query_and_match(self) -> None:
        profile = CompanyProfile(id="p1", entity_name="Cloud migration services")
        await self.service.add_company_profile(profile)
        await self.service.add_opportunities([Opportunity(id="o1", title="Cloud migration services")])

        response = await self.service.query("Cloud migration services")
        self.service.update_config(min_match_score=99.9)
        await self.service.start(profile)

        self.assertEqual([match.id for match in response.results], ["o1"])
        self.assertEqual([alert.opportunity_id for alert in self.service.get_alerts("p1")], ["o1"])
        self.assertEqual(self.service.get_stats()["running_profiles"], 1)

        alert_id = self.service.get_alerts("p1")[0].id
        self.assertTrue(self.service.mark_alert_as_read(alert_id, "p1"))
        self.assertTrue(self.service.mark_alert_action_taken(alert_id, "p1", "saved"))

        self.service.stop("p1")
        self.assertEqual(self.service.get_stats()["running_profiles"], 0)
        self.assertEqual(self.service.clear_alerts("p1"), 1)

    async def test_vector_store_status(self) -> None:
        await self.service.add_opportunities([Opportunity(id="o1", title="Cloud")])

        status = await self.service.vector_store_status()

        self.assertEqual(
            status,
            {"provider": "memory", "connected": True, "collections": ["opportunities"], "dimension": 8},
        )

    async def test_status_reports_unreachable_store(self) -> None:
        service = MatchingService(_settings(), vector_store=_DisconnectedStore())
        status = await service.vector_store_status()

        self.assertFalse(status["connected"])
        self.assertEqual(status["collections"], [])
        await service.close()

    async def test_cache_administration(self) -> None:
        await self.service.add_opportunities([Opportunity(id="o1", title="Cloud")])
        await self.service.query("Cloud")

        stats = self.service.cache_stats()
        self.assertEqual(stats["entries"], {"embedding": 1, "search": 1})

        self.assertEqual(self.service.clear_cache_by_prefix("search:"), 1)
        key = embedding_key("Cloud", "hash", HashEmbeddingProvider.model)
        self.assertTrue(self.service.delete_cache_key(key))
        self.service.clear_cache()
        self.assertEqual(self.service.cache_stats()["total_entries"], 0)

    async def test_delete_collection_recreates_on_next_write(self) -> None:
        await self.service.add_opportunities([Opportunity(id="o1", title="Cloud")])
        await self.service.query("Cloud")

        await self.service.delete_collection("opportunities")

        self.assertEqual(await self.service.list_collections(), [])
        self.assertEqual((await self.service.query("Cloud")).total_results, 0)
        await self.service.add_opportunities([Opportunity(id="o2", title="Cloud")])
        self.assertEqual(await self.service.list_collections(), ["opportunities"])

    async def test_rate_limit_check(self) -> None:
        decisions = [self.service.check_rate_limit("10.0.0.1", "chat") for _ in range(11)]
        self.assertTrue(decisions[9].allowed)
        self.assertFalse(decisions[10].allowed)


if __name__ == "__main__":
    unittest.main()
