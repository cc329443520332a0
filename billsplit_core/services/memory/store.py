"""Consent-gated memory store with per-category retention.

Every write re-reads the gating consent, so a revocation takes effect on the
very next call. Records carry an absolute backend expiration equal to their
logical ``expires_at``; reads additionally refuse anything past that instant
in case physical expiry lags behind.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from billsplit_core.backends.base import ICacheBackend
from billsplit_core.core.errors import BackendUnavailable, ConsentDenied, NotFound, ValidationError
from billsplit_core.core.interfaces import IClock
from billsplit_core.core.logging import get_logger
from billsplit_core.models.consent import ConsentPurpose
from billsplit_core.models.memory import (
    ExportBundle,
    MemoryAnalytics,
    MemoryCategory,
    MemoryRecord,
    UserPreferences,
)
from billsplit_core.services.key_generator import CacheKeyGenerator
from billsplit_core.services.memory import retention
from billsplit_core.services.memory.consent import ConsentLedger

logger = get_logger(__name__)

_TIMESTAMP_FIELDS = {"created_at", "updated_at"}


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _require_user(user_id: str) -> None:
    if not user_id:
        raise ValidationError("User id is required", field="user_id")


class MemoryStore:
    """Stores conversation memory, cultural context, group patterns and preferences.

    Usage:
        store = MemoryStore(backend, ledger, clock)

        record_id = await store.write("u1", "conversation", {"text": "..."})
        record = await store.read("u1", record_id)
    """

    def __init__(self, backend: ICacheBackend, ledger: ConsentLedger, clock: IClock):
        self.backend = backend
        self.ledger = ledger
        self.clock = clock
        self._pending: Set[asyncio.Task] = set()

    async def _require_consent(self, user_id: str, purpose: ConsentPurpose) -> str:
        consent = await self.ledger.get_consent(user_id, purpose)
        if not consent.granted:
            logger.info(f"Consent '{purpose.value}' missing for {user_id}, refusing")
            raise ConsentDenied(user_id, purpose.value)
        return CacheKeyGenerator.consent(user_id, purpose.value)

    # =========================================================================
    # Records
    # =========================================================================

    async def write(
        self,
        user_id: str,
        category: Union[str, MemoryCategory],
        payload: Any,
        created_at: Optional[datetime] = None
    ) -> str:
        """Persist a memory record and return its id.

        Writing again with the same ``created_at`` targets the same id, so
        retries are idempotent.

        Raises:
            ValidationError: Unknown category, missing user, a ``created_at``
                in the future, or one already outside the retention window.
            ConsentDenied: The gating consent is not granted.
            BackendUnavailable: The backend could not be reached.
        """
        _require_user(user_id)
        category = retention.parse_category(category)
        now = self.clock.now()
        created_at = _aware(created_at) if created_at else now
        expires_at = retention.expires_at(category, created_at)

        if created_at > now:
            raise ValidationError(
                "Record cannot be created in the future",
                field="created_at",
                value=created_at.isoformat()
            )
        if expires_at <= now:
            raise ValidationError(
                "Record would already be past its retention window",
                field="created_at",
                value=created_at.isoformat()
            )

        consent_ref = await self._require_consent(user_id, retention.gating_purpose(category))

        record = MemoryRecord(
            id=CacheKeyGenerator.record_id(user_id, category.value, created_at),
            user_id=user_id,
            category=category,
            payload=payload,
            created_at=created_at,
            expires_at=expires_at,
            consent_ref=consent_ref,
        )
        key = CacheKeyGenerator.memory(user_id, record.id)
        await self.backend.set(key, record.model_dump(mode="json"), expire_at=expires_at)

        logger.debug(f"Stored {category.value} record {record.id} for {user_id} until {expires_at.isoformat()}")
        return record.id

    async def read(self, user_id: str, record_id: str) -> MemoryRecord:
        """Fetch a live record owned by ``user_id``.

        Raises:
            NotFound: Absent, owned by someone else, or expired.
            BackendUnavailable: The backend could not be reached.
        """
        _require_user(user_id)
        key = CacheKeyGenerator.memory(user_id, record_id)

        stored = await self.backend.get(key)
        if stored is None:
            raise NotFound(record_id)

        try:
            record = MemoryRecord.model_validate(stored)
        except PydanticValidationError as e:
            logger.error(f"Unreadable memory record at {key}: {e}")
            raise NotFound(record_id) from e

        if record.user_id != user_id:
            raise NotFound(record_id)

        if self.clock.now() >= record.expires_at:
            self._schedule_delete(key)
            raise NotFound(record_id)

        return record

    async def delete(self, user_id: str, record_id: str) -> bool:
        """Delete one record of ``user_id``, live or already expired.

        Returns:
            True if something was deleted, False if nothing was stored.

        Raises:
            NotFound: The stored record belongs to another user.
            BackendUnavailable: The backend could not be reached.
        """
        _require_user(user_id)
        key = CacheKeyGenerator.memory(user_id, record_id)

        stored = await self.backend.get(key)
        if stored is None:
            return False

        try:
            owner = MemoryRecord.model_validate(stored).user_id
        except PydanticValidationError:
            logger.warning(f"Deleting unreadable memory record at {key}")
            owner = user_id

        if owner != user_id:
            raise NotFound(record_id)

        deleted = await self.backend.delete(key)
        logger.info(f"Deleted record {record_id} for {user_id}")
        return deleted

    def _schedule_delete(self, key: str) -> None:
        task = asyncio.create_task(self._delete_expired(key))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _delete_expired(self, key: str) -> None:
        try:
            await self.backend.delete(key)
            logger.debug(f"Deleted expired record {key}")
        except BackendUnavailable as e:
            # The backend expiration or the reconciler will get it later
            logger.warning(f"Deferred deletion of expired record {key} failed: {e.message}")

    async def drain(self) -> None:
        """Wait for scheduled deletions to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _records(self, user_id: str) -> List[Tuple[str, Optional[MemoryRecord]]]:
        """Every stored record key for ``user_id`` with its parsed record (None if unreadable)."""
        found = []
        for key in await self.backend.scan(CacheKeyGenerator.memory_prefix(user_id)):
            stored = await self.backend.get(key)
            if stored is None:
                continue
            try:
                record = MemoryRecord.model_validate(stored)
            except PydanticValidationError:
                logger.warning(f"Skipping unreadable memory record at {key}")
                record = None
            found.append((key, record))
        return found

    async def _live_records(self, user_id: str) -> List[MemoryRecord]:
        now = self.clock.now()
        return sorted(
            (
                record for _, record in await self._records(user_id)
                if record is not None and record.user_id == user_id and now < record.expires_at
            ),
            key=lambda record: record.created_at,
        )

    # =========================================================================
    # Data subject rights
    # =========================================================================

    async def export_all(self, user_id: str) -> ExportBundle:
        """Everything held about ``user_id``: live records, consents, preferences."""
        _require_user(user_id)
        return ExportBundle(
            user_id=user_id,
            exported_at=self.clock.now(),
            records=await self._live_records(user_id),
            consents=await self.ledger.list_consents(user_id),
            preferences=await self.get_preferences(user_id),
        )

    async def delete_all(self, user_id: str) -> int:
        """Erase every record, the preferences and every consent decision of ``user_id``."""
        _require_user(user_id)
        deleted = 0

        for key in await self.backend.scan(CacheKeyGenerator.memory_prefix(user_id)):
            if await self.backend.delete(key):
                deleted += 1
        if await self.backend.delete(CacheKeyGenerator.preferences(user_id)):
            deleted += 1
        deleted += await self.ledger.delete_all(user_id)

        logger.info(f"Erased {deleted} keys for {user_id}")
        return deleted

    async def purge_purpose(self, user_id: str, purpose: Union[str, ConsentPurpose]) -> int:
        """Delete what a purpose authorized; used when it is revoked."""
        _require_user(user_id)
        purpose = retention.parse_purpose(purpose)
        categories = set(retention.gated_categories(purpose))
        deleted = 0

        if categories:
            for key, record in await self._records(user_id):
                if record is not None and record.category in categories:
                    if await self.backend.delete(key):
                        deleted += 1

        if purpose == ConsentPurpose.PREFERENCE_LEARNING:
            if await self.backend.delete(CacheKeyGenerator.preferences(user_id)):
                deleted += 1

        logger.info(f"Purged {deleted} keys for {user_id} after '{purpose.value}' revocation")
        return deleted

    # =========================================================================
    # Preferences
    # =========================================================================

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        stored = await self.backend.get(CacheKeyGenerator.preferences(user_id))
        if stored is None:
            return None
        try:
            return UserPreferences.model_validate(stored)
        except PydanticValidationError as e:
            logger.error(f"Unreadable preferences for {user_id}: {e}")
            return None

    async def update_preferences(
        self,
        user_id: str,
        changes: Union[Dict[str, Any], UserPreferences]
    ) -> UserPreferences:
        """Merge ``changes`` into the stored preferences, field by field.

        Nested privacy settings merge the same way. Each update keeps the
        preferences for another full retention window.

        Raises:
            ValidationError: Unknown field or invalid value.
            ConsentDenied: preference_learning is not granted.
        """
        _require_user(user_id)
        if isinstance(changes, UserPreferences):
            changes = changes.model_dump(exclude_unset=True)

        unknown = (set(changes) - set(UserPreferences.model_fields)) | (set(changes) & _TIMESTAMP_FIELDS)
        if unknown:
            raise ValidationError("Unknown preference fields", field="changes", value=sorted(unknown))

        await self._require_consent(user_id, ConsentPurpose.PREFERENCE_LEARNING)

        now = self.clock.now()
        current = await self.get_preferences(user_id)
        merged = current.model_dump() if current else UserPreferences().model_dump()

        for field, value in changes.items():
            if field == "privacy_settings" and isinstance(value, dict):
                merged[field] = {**merged[field], **value}
            else:
                merged[field] = value
        merged["created_at"] = merged.get("created_at") or now
        merged["updated_at"] = now

        try:
            preferences = UserPreferences.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid preferences: {e.errors()[0]['msg']}", field="changes") from e

        await self.backend.set(
            CacheKeyGenerator.preferences(user_id),
            preferences.model_dump(mode="json"),
            expire_at=retention.expires_at(MemoryCategory.PREFERENCE, now),
        )
        return preferences

    # =========================================================================
    # Analytics
    # =========================================================================

    async def memory_analytics(self, user_id: str) -> MemoryAnalytics:
        """Counts of live records per category.

        Raises:
            ConsentDenied: analytics is not granted.
        """
        _require_user(user_id)
        await self._require_consent(user_id, ConsentPurpose.ANALYTICS)

        per_category = {category.value: 0 for category in MemoryCategory}
        records = await self._live_records(user_id)
        for record in records:
            per_category[record.category.value] += 1

        return MemoryAnalytics(
            total_records=len(records),
            records_per_category=per_category,
            retention_days=dict(retention.RETENTION_DAYS),
        )
