"""
AuditLog — Append-only collection of AuditTrail entries.

Entries are kept in insertion order and can be listed most-recent-first
for display. There is no API to modify or remove an entry.
"""
import logging
import threading
from collections.abc import Iterator

from .models import AuditAction, AuditTrail

logger = logging.getLogger("compliance_vault.audit")


class AuditLog:
    """Append-only audit trail, safe to share between threads."""

    def __init__(self) -> None:
        self._entries: list[AuditTrail] = []
        self._ids: set[str] = set()
        self._lock = threading.Lock()

    def append(self, entry: AuditTrail) -> AuditTrail:
        """Record an entry.

        Raises:
            ValueError: If an entry with the same id was already recorded.
        """
        with self._lock:
            if entry.id in self._ids:
                raise ValueError(f"Audit entry {entry.id} already recorded")
            self._ids.add(entry.id)
            self._entries.append(entry)
        logger.info(
            "Audit %s on document=%s by user=%s (%s)",
            entry.action.value, entry.document_id, entry.user, entry.user_role,
        )
        return entry

    def recent(self) -> list[AuditTrail]:
        """Entries most-recent-first."""
        with self._lock:
            return list(reversed(self._entries))

    def for_document(self, document_id: str) -> list[AuditTrail]:
        """Entries for one document, in insertion order."""
        with self._lock:
            return [e for e in self._entries if e.document_id == document_id]

    def by_action(self, action: AuditAction) -> list[AuditTrail]:
        with self._lock:
            return [e for e in self._entries if e.action == action]

    def __iter__(self) -> Iterator[AuditTrail]:
        with self._lock:
            entries = list(self._entries)
        return iter(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._ids
