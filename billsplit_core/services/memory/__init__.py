"""LGPD-aware memory: consent ledger, retention windows, store and reconciler."""

from billsplit_core.services.memory.consent import ConsentLedger
from billsplit_core.services.memory.reconciler import ExpiryReconciler
from billsplit_core.services.memory.retention import RETENTION_DAYS, REVOKED_CONSENT_DAYS
from billsplit_core.services.memory.store import MemoryStore

__all__ = [
    "ConsentLedger",
    "ExpiryReconciler",
    "MemoryStore",
    "RETENTION_DAYS",
    "REVOKED_CONSENT_DAYS",
]
