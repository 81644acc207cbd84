"""DocumentRegistry — the caller's session record of stored documents.

Holds StorageMetadata by content id for the lifetime of a user session.
Entries are immutable; the registry only ever adds.
"""
import logging
from datetime import datetime
from typing import Optional
from collections.abc import Iterable, Iterator, Mapping

import orjson

from .models import StorageMetadata, utc_now

logger = logging.getLogger("compliance_vault.registry")


class DocumentRegistry(Mapping[str, StorageMetadata]):
    """Read-mostly mapping of document id to StorageMetadata."""

    def __init__(self, documents: Optional[Iterable[StorageMetadata]] = None) -> None:
        self._documents: dict[str, StorageMetadata] = {}
        for metadata in documents or ():
            self.add(metadata)

    def __repr__(self) -> str:
        return f'<DocumentRegistry documents={list(self._documents)!r}>'

    # --- Mapping ---

    def __getitem__(self, document_id: str) -> StorageMetadata:
        return self._documents[document_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    # --- Registry ---

    def add(self, metadata: StorageMetadata) -> None:
        """Register a document.

        Adding the same record twice is a no-op.

        Raises:
            ValueError: If a different record already uses this id.
        """
        current = self._documents.get(metadata.id)
        if current is not None:
            if current != metadata:
                raise ValueError(
                    f"Document {metadata.id} is already registered with "
                    "different metadata"
                )
            return
        self._documents[metadata.id] = metadata
        logger.debug("Registered document %s", metadata.id)

    def search(self, term: str) -> list[StorageMetadata]:
        """Documents whose file name or regulation contains term (case-insensitive)."""
        term = term.strip().lower()
        return [
            doc for doc in self._documents.values()
            if term in doc.file_name.lower()
            or term in doc.compliance.regulation.value.lower()
        ]

    def active(self, now: Optional[datetime] = None) -> list[StorageMetadata]:
        """Documents still inside their retention window."""
        now = now or utc_now()
        return [doc for doc in self._documents.values() if doc.retention_active(now)]

    def expired(self, now: Optional[datetime] = None) -> list[StorageMetadata]:
        """Documents whose retention window has ended."""
        now = now or utc_now()
        return [doc for doc in self._documents.values() if not doc.retention_active(now)]

    def encode(self) -> bytes:
        """encode.

            Serialize all records to JSON (camelCase keys).
        """
        return orjson.dumps([
            doc.model_dump(mode="json", by_alias=True)
            for doc in self._documents.values()
        ])

    @classmethod
    def decode(cls, data: bytes | str) -> "DocumentRegistry":
        """decode.

            Rebuild a registry from ``encode`` output.
        Raises:
            ValueError: If the data is not valid registry JSON.
        """
        items = orjson.loads(data)
        if not isinstance(items, list):
            raise ValueError("Registry data must be a JSON list")
        return cls(StorageMetadata.model_validate(item) for item in items)
