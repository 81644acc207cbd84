"""
Data model for compliance-bound documents.

Pydantic models for the compliance profile attached to a document, the
sealed (encrypted) payload, the metadata recorded at upload and the
append-only audit trail written on retrieval. All models are frozen:
once attached to a stored object they do not change.
"""
import mimetypes
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional
from collections.abc import Mapping

import orjson
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .exceptions import MalformedSealedPayload

SEALED_PAYLOAD_VERSION = 1

_FROZEN = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


def utc_now() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def payload_header(version: int, algorithm: str, kdf: str) -> bytes:
    """Associated data binding the algorithm tag to the ciphertext."""
    return f"cv{version}|{algorithm}|{kdf}".encode("utf-8")


class Regulation(str, Enum):
    HIPAA = "HIPAA"
    GDPR = "GDPR"
    SOX = "SOX"
    SEC = "SEC"
    FINRA = "FINRA"


# 7 years for HIPAA, 10 years for every other framework.
DEFAULT_RETENTION_DAYS = {
    Regulation.HIPAA: 2555,
    Regulation.GDPR: 3650,
    Regulation.SOX: 3650,
    Regulation.SEC: 3650,
    Regulation.FINRA: 3650,
}


class ComplianceRequirement(BaseModel):
    """Regulatory profile of a stored document."""

    model_config = _FROZEN

    regulation: Regulation
    retention_period_days: int = Field(..., gt=0)
    access_logging: bool = True
    encryption_required: bool = True
    audit_trail_required: bool = True

    @classmethod
    def for_regulation(cls, regulation: Regulation | str) -> "ComplianceRequirement":
        """Default profile for a regulation, with every safeguard enabled."""
        regulation = Regulation(regulation)
        return cls(
            regulation=regulation,
            retention_period_days=DEFAULT_RETENTION_DAYS[regulation],
        )


class SealedPayload(BaseModel):
    """Ciphertext plus everything needed to decrypt it, except the passphrase.

    ``iv`` and ``salt`` are optional only so that a payload rebuilt from
    incomplete stored metadata can be represented; opening such a payload
    fails with MalformedSealedPayload.
    """

    model_config = ConfigDict(frozen=True)

    ciphertext: bytes
    iv: Optional[bytes] = None
    salt: Optional[bytes] = None
    algorithm: str = "aes-256-gcm"
    kdf: str = "pbkdf2-sha256"
    kdf_params: dict[str, int] = Field(default_factory=dict)
    version: int = SEALED_PAYLOAD_VERSION

    @property
    def iv_hex(self) -> str:
        return self.iv.hex() if self.iv else ""

    @property
    def salt_hex(self) -> str:
        return self.salt.hex() if self.salt else ""

    @property
    def header(self) -> bytes:
        return payload_header(self.version, self.algorithm, self.kdf)

    def ensure_complete(self) -> None:
        """Raise MalformedSealedPayload if the IV or salt is missing."""
        missing = [name for name in ("iv", "salt") if not getattr(self, name)]
        if missing:
            raise MalformedSealedPayload(
                f"Sealed payload is missing {', '.join(missing)}"
            )

    @classmethod
    def from_metadata(
        cls, ciphertext: bytes, metadata: Mapping[str, str]
    ) -> "SealedPayload":
        """Rebuild a sealed payload from the string metadata stored with it.

        Raises:
            MalformedSealedPayload: If the stored IV, salt or KDF parameters
                cannot be decoded.
        """
        # pydantic ValidationError subclasses ValueError.
        try:
            return cls(
                ciphertext=ciphertext,
                iv=bytes.fromhex(metadata.get("encryptionIv") or "") or None,
                salt=bytes.fromhex(metadata.get("encryptionSalt") or "") or None,
                algorithm=metadata.get("encryptionAlgorithm") or "aes-256-gcm",
                kdf=metadata.get("encryptionKdf") or "pbkdf2-sha256",
                kdf_params=orjson.loads(metadata.get("encryptionKdfParams") or "{}"),
                version=int(metadata.get("encryptionVersion") or SEALED_PAYLOAD_VERSION),
            )
        except ValueError as err:
            raise MalformedSealedPayload(
                f"Stored encryption metadata is not decodable: {err}"
            ) from err


class FileInfo(BaseModel):
    """Name, size and type of the plaintext file being stored."""

    model_config = _FROZEN

    name: str = Field(..., min_length=1)
    size: int = Field(..., ge=0)
    mime_type: str = "application/octet-stream"

    @classmethod
    def from_bytes(
        cls, name: str, data: bytes, mime_type: Optional[str] = None
    ) -> "FileInfo":
        if not mime_type:
            mime_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        return cls(name=name, size=len(data), mime_type=mime_type)


class StorageMetadata(BaseModel):
    """Record of a successfully stored document.

    Created once at upload and never modified. ``retention_end_date`` is
    always ``upload_date`` plus the retention period in whole days.
    """

    model_config = _FROZEN

    id: str = Field(..., min_length=1)
    file_name: str
    file_size: int = Field(..., ge=0)
    mime_type: str
    upload_date: datetime
    compliance: ComplianceRequirement
    retention_end_date: datetime
    encryption_hash: str
    encryption_iv: str
    encryption_salt: str
    encryption_algorithm: str = "aes-256-gcm"
    encryption_kdf: str = "pbkdf2-sha256"
    encryption_kdf_params: dict[str, int] = Field(default_factory=dict)
    encryption_version: int = SEALED_PAYLOAD_VERSION
    storage_providers: frozenset[str] = frozenset()

    @model_validator(mode="after")
    def validate_retention_window(self) -> "StorageMetadata":
        expected = self.upload_date + timedelta(
            days=self.compliance.retention_period_days
        )
        if self.retention_end_date != expected:
            raise ValueError(
                "retention_end_date must equal upload_date plus "
                f"{self.compliance.retention_period_days} days"
            )
        return self

    def retention_active(self, now: Optional[datetime] = None) -> bool:
        """True while the document must remain available."""
        return (now or utc_now()) < self.retention_end_date

    def sealed_payload(self, ciphertext: bytes) -> SealedPayload:
        """Pair downloaded ciphertext with the key material recorded here."""
        try:
            iv = bytes.fromhex(self.encryption_iv) or None
            salt = bytes.fromhex(self.encryption_salt) or None
        except ValueError as err:
            raise MalformedSealedPayload(
                f"Recorded IV or salt is not valid hex: {err}"
            ) from err
        return SealedPayload(
            ciphertext=ciphertext,
            iv=iv,
            salt=salt,
            algorithm=self.encryption_algorithm,
            kdf=self.encryption_kdf,
            kdf_params=self.encryption_kdf_params,
            version=self.encryption_version,
        )


class AuditAction(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    AUDIT_ACCESS = "AUDIT_ACCESS"


class AuditContext(BaseModel):
    """Who is retrieving a document, why, and under which framework."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    auditor: str = Field(..., min_length=1)
    purpose: str = Field(..., min_length=1)
    compliance_type: str = Field(..., min_length=1)


class AuditTrail(BaseModel):
    """One append-only audit log entry."""

    model_config = _FROZEN

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    document_id: str
    action: AuditAction
    timestamp: datetime = Field(default_factory=utc_now)
    user: str
    user_role: str
    ip_address: Optional[str] = None
    compliance_proof: Optional[str] = None

    @property
    def proof(self) -> Optional[dict[str, Any]]:
        """The compliance proof parsed back into a dict, if any."""
        if self.compliance_proof is None:
            return None
        return orjson.loads(self.compliance_proof)
