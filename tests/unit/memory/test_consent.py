"""Tests for retention windows and the consent ledger."""

import pytest
from datetime import datetime, timedelta, timezone

from billsplit_core.core.config import Environment
from billsplit_core.core.errors import BackendUnavailable, ValidationError
from billsplit_core.models.consent import ConsentPurpose, ConsentRecord
from billsplit_core.models.memory import MemoryCategory
from billsplit_core.services.key_generator import CacheKeyGenerator
from billsplit_core.services.memory import ConsentLedger, retention


class TestRetention:
    """Tests for retention windows and consent gating."""

    def test_windows(self):
        assert retention.max_age(MemoryCategory.CONVERSATION) == timedelta(days=90)
        assert retention.max_age("preference") == timedelta(days=365)
        assert retention.max_age("groupPattern") == timedelta(days=180)
        assert retention.max_age("culturalContext") == timedelta(days=365)
        assert retention.max_age("analytics") == timedelta(days=90)

    def test_expires_at(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert retention.expires_at("conversation", created) == datetime(2024, 3, 31, tzinfo=timezone.utc)

    def test_unknown_category(self):
        with pytest.raises(ValidationError):
            retention.parse_category("shopping")
        with pytest.raises(ValidationError):
            retention.max_age("shopping")

    def test_gating(self):
        assert retention.gating_purpose(MemoryCategory.PREFERENCE) == ConsentPurpose.PREFERENCE_LEARNING
        assert set(retention.gated_categories(ConsentPurpose.MEMORY_RETENTION)) == {
            MemoryCategory.CONVERSATION,
            MemoryCategory.CULTURAL_CONTEXT,
            MemoryCategory.GROUP_PATTERN,
        }
        assert retention.gated_categories(ConsentPurpose.ANALYTICS) == []

    def test_longest_window(self):
        assert retention.RETENTION_DAYS[retention.CATEGORY_WITH_LONGEST_RETENTION] == 365


class TestConsentLedger:
    """Tests for ConsentLedger."""

    @pytest.mark.asyncio
    async def test_default_deny_in_production(self, ledger):
        consent = await ledger.get_consent("u1", "memory_retention")

        assert consent.granted is False
        assert consent.purpose == ConsentPurpose.MEMORY_RETENTION

    @pytest.mark.asyncio
    async def test_default_grant_only_under_test_environment(self, connected_memory_backend, clock):
        ledger = ConsentLedger(connected_memory_backend, clock, Environment.TEST)

        assert (await ledger.get_consent("u1", "analytics")).granted is True

    @pytest.mark.asyncio
    async def test_grant_then_read(self, ledger, connected_memory_backend):
        await ledger.grant("u1", "memory_retention", retention_days=30, data_categories=["conversation"])

        consent = await ledger.get_consent("u1", ConsentPurpose.MEMORY_RETENTION)

        assert consent.granted is True
        assert consent.data_categories == {"conversation"}
        assert await connected_memory_backend.ttl("consent:u1:memory_retention") == 30 * 86400

    @pytest.mark.asyncio
    async def test_later_write_supersedes(self, ledger, clock):
        await ledger.grant("u1", "analytics", retention_days=365, data_categories=["usage"])
        clock.advance(minutes=1)
        await ledger.set_consent(ConsentRecord(
            user_id="u1",
            purpose=ConsentPurpose.ANALYTICS,
            granted=True,
            granted_at=clock.now(),
        ))

        consent = await ledger.get_consent("u1", "analytics")

        # Replaced outright, nothing merged from the first record
        assert consent.data_categories == set()
        assert consent.granted_at == clock.now()

    @pytest.mark.asyncio
    async def test_revocation_kept_two_years(self, ledger, connected_memory_backend):
        await ledger.grant("u1", "memory_retention", retention_days=365)
        await ledger.revoke("u1", "memory_retention")

        assert (await ledger.get_consent("u1", "memory_retention")).granted is False
        assert await connected_memory_backend.ttl("consent:u1:memory_retention") == 730 * 86400

    @pytest.mark.asyncio
    async def test_grant_without_retention_has_no_expiry(self, ledger, connected_memory_backend):
        await ledger.grant("u1", "analytics")
        assert await connected_memory_backend.ttl("consent:u1:analytics") == -1

    @pytest.mark.asyncio
    async def test_expired_grant_falls_back_to_deny(self, ledger, clock):
        await ledger.grant("u1", "analytics", retention_days=1)
        clock.advance(days=1)

        assert await ledger.is_granted("u1", "analytics") is False

    @pytest.mark.asyncio
    async def test_list_consents(self, ledger):
        await ledger.grant("u1", "analytics", retention_days=10)

        consents = {c.purpose: c.granted for c in await ledger.list_consents("u1")}

        assert consents == {
            ConsentPurpose.MEMORY_RETENTION: False,
            ConsentPurpose.PREFERENCE_LEARNING: False,
            ConsentPurpose.ANALYTICS: True,
        }

    @pytest.mark.asyncio
    async def test_delete_all(self, ledger, connected_memory_backend):
        await ledger.grant("u1", "analytics", retention_days=10)
        await ledger.revoke("u1", "memory_retention")
        await ledger.grant("u2", "analytics", retention_days=10)

        assert await ledger.delete_all("u1") == 2
        assert await connected_memory_backend.exists(CacheKeyGenerator.consent("u2", "analytics"))

    @pytest.mark.asyncio
    async def test_unknown_purpose(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.get_consent("u1", "marketing")

    @pytest.mark.asyncio
    async def test_unreadable_record_is_denied(self, ledger, connected_memory_backend):
        connected_memory_backend.put_raw("consent:u1:analytics", {"granted": "maybe"})

        assert (await ledger.get_consent("u1", "analytics")).granted is False

    @pytest.mark.asyncio
    async def test_backend_failure_surfaces(self, broken_backend, clock):
        ledger = ConsentLedger(broken_backend, clock)

        with pytest.raises(BackendUnavailable):
            await ledger.get_consent("u1", "analytics")
