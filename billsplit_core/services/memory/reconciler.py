"""Repairs stored memory that lacks a backend expiration.

Keys written before absolute expirations were attached, or by tools that
bypass the store, can sit in the backend forever. The sweep gives each one
the expiration its own timestamp implies, never one counted from the sweep.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from billsplit_core.backends.base import ICacheBackend, NO_EXPIRY
from billsplit_core.core.interfaces import IClock
from billsplit_core.core.logging import get_logger
from billsplit_core.models.memory import ReconcileReport
from billsplit_core.services.key_generator import CacheKeyGenerator
from billsplit_core.services.memory import retention

logger = get_logger(__name__)

_DATETIME = TypeAdapter(datetime)


def _parse_instant(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        moment = _DATETIME.validate_python(value)
    except PydanticValidationError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _written_at(key: str, stored: Any) -> Optional[datetime]:
    """Instant the retention window counts from.

    Preferences are refreshed on every update, so they count from the last
    update; memory records from their creation.
    """
    if not isinstance(stored, dict):
        return None
    if key.startswith(CacheKeyGenerator.PREFERENCES_PREFIX + ":"):
        return _parse_instant(stored.get("updated_at") or stored.get("created_at"))
    return _parse_instant(stored.get("created_at"))


class ExpiryReconciler:
    """Attaches missing expirations to memory and preference keys.

    Running it twice in a row changes nothing the second time. It takes no
    locks; a key deleted mid-sweep is simply skipped.
    """

    NAMESPACES = (
        CacheKeyGenerator.MEMORY_PREFIX + ":",
        CacheKeyGenerator.PREFERENCES_PREFIX + ":",
    )

    def __init__(self, backend: ICacheBackend, clock: IClock):
        self.backend = backend
        self.clock = clock

    async def run(self) -> ReconcileReport:
        """Sweep every namespace once.

        Raises:
            BackendUnavailable: The backend could not be reached.
        """
        report = ReconcileReport()
        now = self.clock.now()

        for prefix in self.NAMESPACES:
            for key in await self.backend.scan(prefix):
                report.scanned += 1
                await self._reconcile(key, now, report)

        if report.changed:
            logger.info(
                f"Expiry reconciliation: scanned={report.scanned} repaired={report.repaired} "
                f"expired={report.expired} skipped={report.skipped}"
            )
        return report

    async def _reconcile(self, key: str, now: datetime, report: ReconcileReport) -> None:
        if await self.backend.ttl(key) != NO_EXPIRY:
            return

        stored = await self.backend.get(key)
        if stored is None:
            return

        category = retention.category_for_key(key, stored if isinstance(stored, dict) else None)
        written_at = _written_at(key, stored)

        if category is None or written_at is None:
            # Unknown age: keep it no longer than the longest window from now
            fallback = now + retention.max_age(retention.CATEGORY_WITH_LONGEST_RETENTION)
            await self.backend.expire_at(key, fallback)
            report.skipped += 1
            logger.warning(f"Unparseable record at {key}, expiring at {fallback.isoformat()}")
            return

        expires_at = retention.expires_at(category, written_at)
        if expires_at <= now:
            await self.backend.delete(key)
            report.expired += 1
            return

        await self.backend.expire_at(key, expires_at)
        report.repaired += 1
        report.repaired_keys.append(key)
