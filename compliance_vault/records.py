"""
Compliance records — StorageMetadata assembly and the string metadata map.

The storage network only carries string-valued metadata, so every field
attached to an uploaded blob is encoded here and parsed back with the same
conventions: integers as decimal strings, datetimes as ISO-8601, binary
key material as lowercase hex, structured values as JSON (orjson).

The retention window is computed from the local clock when the record is
built, not from the time the storage backend confirmed the upload. Both
are within seconds of each other and retention is counted in whole days.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from collections.abc import Iterable, Mapping

import orjson
from pydantic import BaseModel, ConfigDict

from .models import (
    ComplianceRequirement,
    FileInfo,
    SealedPayload,
    StorageMetadata,
    utc_now,
)

logger = logging.getLogger("compliance_vault.records")

REQUIRED_METADATA_KEYS = (
    "fileName",
    "fileSize",
    "mimeType",
    "compliance",
    "retention",
    "encryptionHash",
    "encryptionIv",
    "encryptionSalt",
)


class ParsedMetadata(BaseModel):
    """Typed view of a metadata map read back from storage."""

    model_config = ConfigDict(frozen=True)

    file_info: FileInfo
    compliance: ComplianceRequirement
    upload_date: Optional[datetime] = None
    encryption_hash: str
    hash_algorithm: str = "sha256"


class ComplianceRecordBuilder:
    """Assembles the metadata bundle attached to a stored document.

    Pure assembly: no network access and no randomness. The clock is
    injectable so retention arithmetic can be pinned in tests.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    def build(
        self,
        file_info: FileInfo,
        compliance: ComplianceRequirement,
        sealed: SealedPayload,
        plaintext_hash: str,
        storage_id: str,
        provider_ids: Iterable[str],
        upload_date: Optional[datetime] = None,
    ) -> StorageMetadata:
        """Create the immutable StorageMetadata for an uploaded document.

        Args:
            file_info: Name, plaintext size and MIME type.
            compliance: Regulatory profile.
            sealed: Payload that was uploaded.
            plaintext_hash: Digest of the plaintext before encryption.
            storage_id: Content address returned by the storage backend.
            provider_ids: Providers holding the blob.
            upload_date: Defaults to the current time.

        Returns:
            StorageMetadata with ``retention_end_date`` = ``upload_date`` +
            ``retention_period_days``.

        Raises:
            MalformedSealedPayload: If the sealed payload lacks IV or salt.
        """
        sealed.ensure_complete()
        upload_date = upload_date or self.now()
        return StorageMetadata(
            id=storage_id,
            file_name=file_info.name,
            file_size=file_info.size,
            mime_type=file_info.mime_type,
            upload_date=upload_date,
            compliance=compliance,
            retention_end_date=upload_date + timedelta(
                days=compliance.retention_period_days
            ),
            encryption_hash=plaintext_hash,
            encryption_iv=sealed.iv_hex,
            encryption_salt=sealed.salt_hex,
            encryption_algorithm=sealed.algorithm,
            encryption_kdf=sealed.kdf,
            encryption_kdf_params=sealed.kdf_params,
            encryption_version=sealed.version,
            storage_providers=frozenset(provider_ids),
        )

    def metadata_map(
        self,
        file_info: FileInfo,
        compliance: ComplianceRequirement,
        sealed: SealedPayload,
        plaintext_hash: str,
        upload_date: datetime,
        hash_algorithm: str = "sha256",
    ) -> dict[str, str]:
        """Encode the upload metadata as a flat string-to-string map."""
        sealed.ensure_complete()
        compliance_json = orjson.dumps(
            compliance.model_dump(mode="json", by_alias=True)
        ).decode("utf-8")
        return {
            "fileName": file_info.name,
            "fileSize": str(file_info.size),
            "mimeType": file_info.mime_type,
            "compliance": compliance_json,
            "retention": str(compliance.retention_period_days),
            "uploadDate": upload_date.isoformat(),
            "encryptionHash": plaintext_hash,
            "encryptionHashAlgorithm": hash_algorithm,
            "encryptionIv": sealed.iv_hex,
            "encryptionSalt": sealed.salt_hex,
            "encryptionAlgorithm": sealed.algorithm,
            "encryptionKdf": sealed.kdf,
            "encryptionKdfParams": orjson.dumps(sealed.kdf_params).decode("utf-8"),
            "encryptionVersion": str(sealed.version),
        }

    @staticmethod
    def parse_metadata_map(mapping: Mapping[str, str]) -> ParsedMetadata:
        """Decode a metadata map written by ``metadata_map``.

        Raises:
            ValueError: If required keys are missing or values do not parse.
        """
        missing = [key for key in REQUIRED_METADATA_KEYS if key not in mapping]
        if missing:
            raise ValueError(f"Metadata map is missing keys: {', '.join(missing)}")
        compliance = ComplianceRequirement.model_validate(
            orjson.loads(mapping["compliance"])
        )
        if int(mapping["retention"]) != compliance.retention_period_days:
            raise ValueError(
                "Metadata retention does not match the compliance profile: "
                f"{mapping['retention']} != {compliance.retention_period_days}"
            )
        upload_date = mapping.get("uploadDate")
        return ParsedMetadata(
            file_info=FileInfo(
                name=mapping["fileName"],
                size=int(mapping["fileSize"]),
                mime_type=mapping["mimeType"],
            ),
            compliance=compliance,
            upload_date=datetime.fromisoformat(upload_date) if upload_date else None,
            encryption_hash=mapping["encryptionHash"],
            hash_algorithm=mapping.get("encryptionHashAlgorithm") or "sha256",
        )

    def restore(
        self,
        storage_id: str,
        mapping: Mapping[str, str],
        provider_ids: Iterable[str] = (),
    ) -> StorageMetadata:
        """Rebuild StorageMetadata from a metadata map read back from storage.

        Raises:
            ValueError: If the map is incomplete or carries no upload date.
            MalformedSealedPayload: If the stored key material is not decodable.
        """
        parsed = self.parse_metadata_map(mapping)
        if parsed.upload_date is None:
            raise ValueError("Metadata map carries no uploadDate")
        sealed = SealedPayload.from_metadata(b"", mapping)
        logger.debug("Restored metadata for document %s", storage_id)
        return self.build(
            parsed.file_info,
            parsed.compliance,
            sealed,
            parsed.encryption_hash,
            storage_id,
            provider_ids,
            upload_date=parsed.upload_date,
        )
