"""Tests for the expiry reconciler."""

import pytest
from datetime import timedelta

from billsplit_core.backends import NO_EXPIRY
from billsplit_core.models.consent import ConsentPurpose
from billsplit_core.services.key_generator import CacheKeyGenerator


def legacy_record(user_id, record_id, category, created_at):
    """A record as written by code that never attached an expiration."""
    return {
        "id": record_id,
        "user_id": user_id,
        "category": category,
        "payload": {"text": "antigo"},
        "created_at": created_at.isoformat(),
        "expires_at": created_at.isoformat(),
        "consent_ref": f"consent:{user_id}:memory_retention",
    }


class TestExpiryReconciler:
    """Tests for ExpiryReconciler."""

    @pytest.mark.asyncio
    async def test_expiry_derived_from_created_at(self, reconciler, connected_memory_backend, clock):
        created = clock.now() - timedelta(days=30)
        key = CacheKeyGenerator.memory("u1", "legacy")
        connected_memory_backend.put_raw(key, legacy_record("u1", "legacy", "conversation", created))

        report = await reconciler.run()

        assert report.repaired == 1
        assert report.repaired_keys == [key]
        # 90 days from creation, 60 from now
        assert await connected_memory_backend.ttl(key) == 60 * 86400

    @pytest.mark.asyncio
    async def test_already_expired_is_deleted(self, reconciler, connected_memory_backend, clock):
        created = clock.now() - timedelta(days=200)
        key = CacheKeyGenerator.memory("u1", "old")
        connected_memory_backend.put_raw(key, legacy_record("u1", "old", "groupPattern", created))

        report = await reconciler.run()

        assert report.expired == 1
        assert await connected_memory_backend.exists(key) is False

    @pytest.mark.asyncio
    async def test_unparseable_gets_longest_window(self, reconciler, connected_memory_backend):
        key = CacheKeyGenerator.memory("u1", "garbage")
        connected_memory_backend.put_raw(key, "not a record")

        report = await reconciler.run()

        assert report.skipped == 1
        assert await connected_memory_backend.ttl(key) == 365 * 86400

    @pytest.mark.asyncio
    async def test_preferences_count_from_last_update(self, reconciler, connected_memory_backend, clock):
        updated = clock.now() - timedelta(days=5)
        connected_memory_backend.put_raw("preferences:u1", {
            "language_preference": "pt-BR",
            "created_at": (updated - timedelta(days=100)).isoformat(),
            "updated_at": updated.isoformat(),
        })

        report = await reconciler.run()

        assert report.repaired == 1
        assert await connected_memory_backend.ttl("preferences:u1") == 360 * 86400

    @pytest.mark.asyncio
    async def test_leaves_keys_with_expiry_alone(self, reconciler, store, grant, connected_memory_backend):
        await grant("u1", ConsentPurpose.MEMORY_RETENTION)
        record_id = await store.write("u1", "conversation", {"text": "oi"})
        key = CacheKeyGenerator.memory("u1", record_id)
        before = await connected_memory_backend.ttl(key)

        report = await reconciler.run()

        assert report.scanned == 1
        assert report.changed is False
        assert await connected_memory_backend.ttl(key) == before

    @pytest.mark.asyncio
    async def test_idempotent(self, reconciler, connected_memory_backend, clock):
        connected_memory_backend.put_raw(
            CacheKeyGenerator.memory("u1", "a"),
            legacy_record("u1", "a", "conversation", clock.now() - timedelta(days=10)),
        )
        connected_memory_backend.put_raw(
            CacheKeyGenerator.memory("u1", "b"),
            legacy_record("u1", "b", "conversation", clock.now() - timedelta(days=100)),
        )
        connected_memory_backend.put_raw(CacheKeyGenerator.memory("u1", "c"), ["junk"])

        first = await reconciler.run()
        second = await reconciler.run()

        assert (first.repaired, first.expired, first.skipped) == (1, 1, 1)
        assert second.changed is False
        assert second.scanned == 2
        for key in await connected_memory_backend.scan("memory:"):
            assert await connected_memory_backend.ttl(key) != NO_EXPIRY

    @pytest.mark.asyncio
    async def test_ignores_other_namespaces(self, reconciler, connected_memory_backend):
        connected_memory_backend.put_raw("consent:u1:analytics", {"granted": True})
        connected_memory_backend.put_raw("cache:BR:m:1", {"text": "x"})

        report = await reconciler.run()

        assert report.scanned == 0
        assert await connected_memory_backend.ttl("consent:u1:analytics") == NO_EXPIRY
