"""Compliance Vault.

Client-side sealing of documents for compliance-bound storage, with
integrity re-verification and audit proofs on retrieval.
"""
from .version import __version__
from .exceptions import (
    ComplianceVaultError,
    KeyDerivationError,
    CipherError,
    IntegrityMismatch,
    MalformedSealedPayload,
    StorageError,
)
from .models import (
    Regulation,
    ComplianceRequirement,
    SealedPayload,
    FileInfo,
    StorageMetadata,
    AuditAction,
    AuditContext,
    AuditTrail,
)
from .vault import EncryptionEngine, CryptoConfig
from .records import ComplianceRecordBuilder
from .proof import AuditProofGenerator
from .audit_log import AuditLog
from .registry import DocumentRegistry
from .storage import StorageBackend, InMemoryStorage, PutResult
from .service import ComplianceStorageService, AuditRetrieval

__all__ = [
    "__version__",
    "ComplianceVaultError",
    "KeyDerivationError",
    "CipherError",
    "IntegrityMismatch",
    "MalformedSealedPayload",
    "StorageError",
    "Regulation",
    "ComplianceRequirement",
    "SealedPayload",
    "FileInfo",
    "StorageMetadata",
    "AuditAction",
    "AuditContext",
    "AuditTrail",
    "EncryptionEngine",
    "CryptoConfig",
    "ComplianceRecordBuilder",
    "AuditProofGenerator",
    "AuditLog",
    "DocumentRegistry",
    "StorageBackend",
    "InMemoryStorage",
    "PutResult",
    "ComplianceStorageService",
    "AuditRetrieval",
]
