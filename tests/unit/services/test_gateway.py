"""Tests for the CoreGateway surface."""

import pytest

from billsplit_core.core.errors import ConsentDenied, NotFound
from billsplit_core.models.cache import RequestDescriptor
from billsplit_core.models.consent import ConsentPurpose, ConsentRecord
from billsplit_core.services.key_generator import CacheKeyGenerator


class TestCoreGateway:
    """End-to-end flows through the gateway on the in-memory backend."""

    @pytest.mark.asyncio
    async def test_cache_miss_then_hit(self, gateway):
        request = RequestDescriptor(region="SP", model="claude-3-haiku-20240307", message="Racha o rodízio")

        assert await gateway.get_cached(request) is None
        await gateway.put_cached(request, {"text": "R$ 80 cada"})
        assert await gateway.get_cached(request) == {"text": "R$ 80 cada"}

        analytics = await gateway.analytics()
        assert analytics.cache_hits == 1
        assert analytics.cache_misses == 1
        assert analytics.cache_sets == 1

    @pytest.mark.asyncio
    async def test_memory_lifecycle(self, gateway, clock):
        await gateway.set_consent(ConsentRecord(
            user_id="u1",
            purpose=ConsentPurpose.MEMORY_RETENTION,
            granted=True,
            granted_at=clock.now(),
            retention_days=365,
        ))

        record_id = await gateway.write_memory("u1", "conversation", {"text": "oi"})
        assert (await gateway.read_memory("u1", record_id)).payload == {"text": "oi"}

        await gateway.erase_user("u1")

        bundle = await gateway.export_user("u1")
        assert bundle.is_empty
        assert not (await gateway.get_consent("u1", "memory_retention")).granted
        with pytest.raises(NotFound):
            await gateway.read_memory("u1", record_id)

    @pytest.mark.asyncio
    async def test_delete_memory(self, gateway, clock):
        await gateway.set_consent(ConsentRecord(
            user_id="u1", purpose=ConsentPurpose.MEMORY_RETENTION, granted=True, granted_at=clock.now()
        ))
        record_id = await gateway.write_memory("u1", "conversation", {"text": "oi"})

        assert await gateway.delete_memory("u1", record_id) is True
        assert await gateway.delete_memory("u1", record_id) is False
        with pytest.raises(NotFound):
            await gateway.read_memory("u1", record_id)

    @pytest.mark.asyncio
    async def test_revocation_cascades(self, gateway, clock, connected_memory_backend):
        for purpose in ConsentPurpose:
            await gateway.set_consent(ConsentRecord(
                user_id="u1", purpose=purpose, granted=True, granted_at=clock.now(), retention_days=365
            ))
        conversation = await gateway.write_memory("u1", "conversation", {"text": "oi"})
        preference = await gateway.write_memory("u1", "preference", {"method": "igual"})
        await gateway.update_preferences("u1", {"payment_methods": ["pix"]})

        await gateway.set_consent(ConsentRecord(
            user_id="u1", purpose=ConsentPurpose.MEMORY_RETENTION, granted=False, granted_at=clock.now()
        ))

        with pytest.raises(NotFound):
            await gateway.read_memory("u1", conversation)
        assert (await gateway.read_memory("u1", preference)).payload == {"method": "igual"}
        assert await gateway.get_preferences("u1") is not None
        with pytest.raises(ConsentDenied):
            await gateway.write_memory("u1", "conversation", {"text": "de novo"})
        assert await connected_memory_backend.exists(CacheKeyGenerator.consent("u1", "memory_retention"))

    @pytest.mark.asyncio
    async def test_reconcile(self, gateway, connected_memory_backend):
        connected_memory_backend.put_raw("memory:u1:broken", "???")

        report = await gateway.reconcile()

        assert report.skipped == 1

    @pytest.mark.asyncio
    async def test_optimize_cost_reads_recorded_usage(self, gateway):
        await gateway.record_usage("u1", 1.95)

        advice = await gateway.optimize_cost("u1", "Dividir 90 reais", user_tier="premium")

        assert advice.use_fallback is True
        assert advice.use_cheaper_model is True

    @pytest.mark.asyncio
    async def test_device_advice(self, gateway):
        peak = await gateway.optimize_for_peak_hours("u1")
        mobile = await gateway.optimize_for_mobile("Mozilla/5.0 (Linux; Android 14) Mobile", "medium")

        assert peak.is_peak is False
        assert mobile.is_mobile is True
        assert mobile.use_faster_model is False

    @pytest.mark.asyncio
    async def test_memory_analytics(self, gateway, clock):
        await gateway.set_consent(ConsentRecord(
            user_id="u1", purpose=ConsentPurpose.ANALYTICS, granted=True, granted_at=clock.now()
        ))

        analytics = await gateway.memory_analytics("u1")

        assert analytics.total_records == 0
