"""
ComplianceStorageService — Upload and audit-retrieval pipelines.

Provides the public API callers (UI, CLI) drive:
- ``store_compliant_document(...)`` — hash → seal → metadata map → put → StorageMetadata
- ``retrieve_for_audit(...)`` — get → open → digest re-check → compliance proof → AuditTrail

The service is an explicitly constructed context object: the caller owns
its lifecycle through ``initialize()``/``close()`` or ``async with``.
Nothing is shared at module level.

Security Note:
    Never log plaintext, ciphertext or passphrases. Only log document ids,
    sizes, regulations and outcomes.
"""
import asyncio
import logging
from typing import Any, NamedTuple, Optional, Union
from collections.abc import Mapping

from .audit_log import AuditLog
from .exceptions import IntegrityMismatch
from .models import (
    AuditAction,
    AuditContext,
    AuditTrail,
    ComplianceRequirement,
    FileInfo,
    StorageMetadata,
)
from .proof import AuditProofGenerator
from .records import ComplianceRecordBuilder
from .registry import DocumentRegistry
from .storage import StorageBackend
from .vault import CryptoConfig, EncryptionEngine

logger = logging.getLogger("compliance_vault.service")

DEFAULT_AUDITOR_ROLE = "compliance-auditor"
DEFAULT_OWNER_ROLE = "document-owner"


class AuditRetrieval(NamedTuple):
    data: bytes
    audit_trail: AuditTrail


class ComplianceStorageService:
    """Seals documents into a storage backend and retrieves them for audit.

    Sealing and opening run in a worker thread (``asyncio.to_thread``) so
    key derivation over large payloads does not block the event loop.
    """

    def __init__(
        self,
        storage: StorageBackend,
        config: Optional[CryptoConfig] = None,
        *,
        audit_log: Optional[AuditLog] = None,
        registry: Optional[DocumentRegistry] = None,
        record_builder: Optional[ComplianceRecordBuilder] = None,
        proof_generator: Optional[AuditProofGenerator] = None,
    ):
        self._storage = storage
        self._config = config
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self.registry = registry
        self._records = record_builder or ComplianceRecordBuilder()
        self._proofs = proof_generator
        self._engine: Optional[EncryptionEngine] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Resolve configuration and build the encryption engine.

        Reads ``CryptoConfig.from_env()`` when no config was given.
        """
        config = self._config or CryptoConfig.from_env()
        self._config = config
        self._engine = EncryptionEngine(config)
        if self._proofs is None:
            self._proofs = AuditProofGenerator(config.proof_key)
        logger.info(
            "Compliance storage service initialized (cipher=%s, kdf=%s, hash=%s)",
            config.cipher_backend, config.kdf, self._engine.hasher.name,
        )

    async def close(self) -> None:
        self._engine = None
        logger.debug("Compliance storage service closed")

    async def __aenter__(self) -> "ComplianceStorageService":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> EncryptionEngine:
        if self._engine is None:
            raise RuntimeError(
                "ComplianceStorageService not initialized. Call initialize() first."
            )
        return self._engine

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def store_compliant_document(
        self,
        data: bytes,
        file_name: str,
        compliance: ComplianceRequirement,
        passphrase: str,
        *,
        mime_type: Optional[str] = None,
        user: str = "uploader",
        user_role: str = DEFAULT_OWNER_ROLE,
    ) -> StorageMetadata:
        """Seal a document and store it with its compliance metadata.

        Args:
            data: Plaintext document bytes.
            file_name: Original file name.
            compliance: Regulatory profile to attach.
            passphrase: Secret the document key is derived from.
            mime_type: Overrides the type guessed from the file name.
            user: Identity recorded on the CREATE audit entry.
            user_role: Role recorded on the CREATE audit entry.

        Returns:
            StorageMetadata for the stored document.

        Raises:
            KeyDerivationError: If the passphrase is empty.
            StorageError: If the backend rejects the upload.
        """
        engine = self.engine
        file_info = FileInfo.from_bytes(file_name, data, mime_type)
        plaintext_hash = await asyncio.to_thread(engine.digest, data)
        sealed = await asyncio.to_thread(engine.seal, data, passphrase)

        upload_date = self._records.now()
        metadata_map = self._records.metadata_map(
            file_info, compliance, sealed, plaintext_hash, upload_date,
            hash_algorithm=engine.hasher.name,
        )
        result = await self._storage.put(sealed.ciphertext, metadata_map)

        metadata = self._records.build(
            file_info,
            compliance,
            sealed,
            plaintext_hash,
            result.content_id,
            [result.provider_id],
            upload_date=upload_date,
        )
        if self.registry is not None:
            self.registry.add(metadata)
        if compliance.audit_trail_required:
            self.audit_log.append(AuditTrail(
                document_id=metadata.id,
                action=AuditAction.CREATE,
                user=user,
                user_role=user_role,
            ))
        logger.info(
            "Stored %s document %s (%d bytes, retention until %s)",
            compliance.regulation.value, metadata.id, metadata.file_size,
            metadata.retention_end_date.date().isoformat(),
        )
        return metadata

    # ------------------------------------------------------------------
    # Audit retrieval
    # ------------------------------------------------------------------

    async def retrieve_for_audit(
        self,
        metadata: StorageMetadata,
        audit_context: Union[AuditContext, Mapping[str, str]],
        passphrase: str,
        *,
        user_role: str = DEFAULT_AUDITOR_ROLE,
        prefer_cdn: bool = True,
        allow_integrity_mismatch: bool = False,
    ) -> AuditRetrieval:
        """Download, decrypt and verify a document for an authorized audit.

        Decryption failures propagate without an audit entry. A digest
        mismatch is recorded with an ``integrity-failed`` proof and then
        re-raised, unless ``allow_integrity_mismatch`` is set.

        Args:
            metadata: Record returned at upload.
            audit_context: Auditor, purpose and compliance type.
            passphrase: Passphrase used at upload.
            user_role: Role recorded on the AUDIT_ACCESS entry.
            prefer_cdn: Passed through to the storage backend.
            allow_integrity_mismatch: Return mismatched content instead of
                raising.

        Returns:
            AuditRetrieval with the decrypted bytes and the recorded entry.

        Raises:
            MalformedSealedPayload: If the recorded IV or salt is missing.
            CipherError: Wrong passphrase or corrupted ciphertext.
            IntegrityMismatch: Decrypted content differs from the recorded
                digest.
            StorageError: If the backend cannot return the blob.
        """
        engine = self.engine
        if not isinstance(audit_context, AuditContext):
            audit_context = AuditContext.model_validate(audit_context)

        ciphertext = await self._storage.get(metadata.id, prefer_cdn=prefer_cdn)
        sealed = metadata.sealed_payload(ciphertext)

        mismatch: Optional[IntegrityMismatch] = None
        try:
            data = await asyncio.to_thread(
                engine.open, sealed, passphrase, metadata.encryption_hash,
            )
        except IntegrityMismatch as err:
            mismatch = err
            data = err.plaintext

        provider_info = await self._storage.get_provider_info()
        proof = self._proofs.generate(
            metadata.id, audit_context, mismatch is None, provider_info,
        )
        entry = self.audit_log.append(AuditTrail(
            document_id=metadata.id,
            action=AuditAction.AUDIT_ACCESS,
            user=audit_context.auditor,
            user_role=user_role,
            compliance_proof=proof,
        ))
        if mismatch is not None:
            logger.warning(
                "Document %s failed integrity verification for auditor %s",
                metadata.id, audit_context.auditor,
            )
            if not allow_integrity_mismatch:
                raise mismatch
        return AuditRetrieval(data=data, audit_trail=entry)

    async def provider_info(self) -> Any:
        return await self._storage.get_provider_info()
