"""LGPD consent ledger.

One backend key per (user, purpose) holding the current decision. Writes are
a single SET, so a newer decision replaces the older one outright and
concurrent grant/revoke calls settle last-write-wins.
"""

from datetime import timedelta
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from billsplit_core.backends.base import ICacheBackend
from billsplit_core.core.config import Environment
from billsplit_core.core.errors import ValidationError
from billsplit_core.core.interfaces import IClock
from billsplit_core.core.logging import get_logger
from billsplit_core.models.consent import ConsentPurpose, ConsentRecord
from billsplit_core.services.key_generator import CacheKeyGenerator
from billsplit_core.services.memory.retention import REVOKED_CONSENT_DAYS, parse_purpose

logger = get_logger(__name__)


class ConsentLedger:
    """Reads and writes consent decisions.

    Backend failures are surfaced as ``BackendUnavailable``; a consent check
    that cannot be answered must not be treated as a grant.
    """

    def __init__(
        self,
        backend: ICacheBackend,
        clock: IClock,
        environment: Environment = Environment.PRODUCTION
    ):
        self.backend = backend
        self.clock = clock
        self.environment = environment

    def _default(self, user_id: str, purpose: ConsentPurpose) -> ConsentRecord:
        granted = self.environment == Environment.TEST
        return ConsentRecord(
            user_id=user_id,
            purpose=purpose,
            granted=granted,
            granted_at=self.clock.now(),
            retention_days=0,
            purpose_description="Test environment default" if granted else "No consent given",
        )

    async def get_consent(self, user_id: str, purpose: Union[str, ConsentPurpose]) -> ConsentRecord:
        """Current decision for ``purpose``.

        Without a stored decision this is a denial, except under
        ``Environment.TEST`` where a grant is synthesized.

        Raises:
            ValidationError: Unknown purpose.
            BackendUnavailable: The ledger could not be read.
        """
        purpose = parse_purpose(purpose)
        key = CacheKeyGenerator.consent(user_id, purpose.value)

        stored = await self.backend.get(key)
        if stored is None:
            return self._default(user_id, purpose)

        try:
            return ConsentRecord.model_validate(stored)
        except PydanticValidationError as e:
            logger.error(f"Unreadable consent record at {key}, treating as denied: {e}")
            return ConsentRecord(
                user_id=user_id,
                purpose=purpose,
                granted=False,
                granted_at=self.clock.now(),
                purpose_description="Unreadable consent record",
            )

    async def is_granted(self, user_id: str, purpose: Union[str, ConsentPurpose]) -> bool:
        return (await self.get_consent(user_id, purpose)).granted

    def _ttl_for(self, record: ConsentRecord) -> Optional[int]:
        if not record.granted:
            return int(timedelta(days=REVOKED_CONSENT_DAYS).total_seconds())
        if record.retention_days > 0:
            return int(timedelta(days=record.retention_days).total_seconds())
        return None

    async def set_consent(self, record: ConsentRecord) -> ConsentRecord:
        """Persist ``record``, replacing any earlier decision for its purpose.

        Granted decisions live for ``retention_days`` (indefinitely when 0);
        revocations are kept for two years.
        """
        key = CacheKeyGenerator.consent(record.user_id, record.purpose.value)
        await self.backend.set(key, record.model_dump(mode="json"), ttl=self._ttl_for(record))
        logger.info(
            f"Consent '{record.purpose.value}' for {record.user_id} "
            f"{'granted' if record.granted else 'revoked'}"
        )
        return record

    async def grant(
        self,
        user_id: str,
        purpose: Union[str, ConsentPurpose],
        retention_days: int = 0,
        data_categories: Optional[Iterable[str]] = None,
        purpose_description: str = ""
    ) -> ConsentRecord:
        return await self.set_consent(ConsentRecord(
            user_id=user_id,
            purpose=parse_purpose(purpose),
            granted=True,
            granted_at=self.clock.now(),
            retention_days=retention_days,
            data_categories=set(data_categories or ()),
            purpose_description=purpose_description,
        ))

    async def revoke(self, user_id: str, purpose: Union[str, ConsentPurpose]) -> ConsentRecord:
        return await self.set_consent(ConsentRecord(
            user_id=user_id,
            purpose=parse_purpose(purpose),
            granted=False,
            granted_at=self.clock.now(),
            purpose_description="Consent revoked",
        ))

    async def list_consents(self, user_id: str) -> List[ConsentRecord]:
        """Current decision for every purpose, defaults included."""
        return [await self.get_consent(user_id, purpose) for purpose in ConsentPurpose]

    async def delete_all(self, user_id: str) -> int:
        """Remove every stored decision for ``user_id``."""
        if not user_id:
            raise ValidationError("User id is required", field="user_id")

        deleted = 0
        for key in await self.backend.scan(CacheKeyGenerator.consent_prefix(user_id)):
            if await self.backend.delete(key):
                deleted += 1
        return deleted
