"""
Storage backends — The content-addressed store sealed documents go to.

Only the interface the service needs is defined here. Network transport,
payments and retries belong to concrete backend implementations.
``InMemoryStorage`` is a reference backend for local use and tests.
"""
import hashlib
import logging
from typing import Any, NamedTuple, Protocol, runtime_checkable
from collections.abc import Mapping

from .exceptions import StorageError

logger = logging.getLogger("compliance_vault.storage")


class PutResult(NamedTuple):
    content_id: str
    provider_id: str


@runtime_checkable
class StorageBackend(Protocol):
    """Content-addressed blob store carrying string-valued metadata."""

    async def put(self, data: bytes, metadata: Mapping[str, str]) -> PutResult:
        ...

    async def get(self, content_id: str, prefer_cdn: bool = False) -> bytes:
        ...

    async def get_provider_info(self) -> Any:
        ...


class InMemoryStorage:
    """Dict-backed StorageBackend with sha256 content addresses."""

    def __init__(self, provider_id: str = "memory-0") -> None:
        self.provider_id = provider_id
        self._blobs: dict[str, bytes] = {}
        self._metadata: dict[str, dict[str, str]] = {}

    @staticmethod
    def _content_id(data: bytes) -> str:
        return "sha256-" + hashlib.sha256(data).hexdigest()

    async def put(self, data: bytes, metadata: Mapping[str, str]) -> PutResult:
        bad = [key for key, value in metadata.items() if not isinstance(value, str)]
        if bad:
            raise StorageError(
                f"Metadata values must be strings: {', '.join(bad)}"
            )
        content_id = self._content_id(data)
        self._blobs[content_id] = bytes(data)
        self._metadata[content_id] = dict(metadata)
        logger.debug("Stored %d bytes as %s", len(data), content_id)
        return PutResult(content_id=content_id, provider_id=self.provider_id)

    async def get(self, content_id: str, prefer_cdn: bool = False) -> bytes:
        try:
            return self._blobs[content_id]
        except KeyError:
            raise StorageError(f"Unknown content id: {content_id}") from None

    async def get_metadata(self, content_id: str) -> dict[str, str]:
        try:
            return dict(self._metadata[content_id])
        except KeyError:
            raise StorageError(f"Unknown content id: {content_id}") from None

    async def get_provider_info(self) -> dict[str, Any]:
        return {
            "providerId": self.provider_id,
            "backend": "memory",
            "objects": len(self._blobs),
        }

    def replace(self, content_id: str, data: bytes) -> None:
        """Overwrite a stored blob in place, keeping its content id.

        Simulates at-rest corruption or tampering.
        """
        if content_id not in self._blobs:
            raise StorageError(f"Unknown content id: {content_id}")
        self._blobs[content_id] = bytes(data)
