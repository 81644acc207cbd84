"""Compliance Vault crypto core — Sealing and opening of document payloads.

Security Note (Threat Model):
    Plaintext and derived keys exist in process memory while a document is
    sealed or opened. The passphrase is never stored; losing it makes the
    document unrecoverable. The plaintext digest is a public SHA-256
    fingerprint unless a hash key is configured, in which case it is an
    HMAC only key holders can recompute.
"""

from .engine import EncryptionEngine
from .crypto import IntegrityHasher, SymmetricCipher, derive_key
from .config import CryptoConfig, generate_secret_key, load_secret_key

__all__ = [
    "EncryptionEngine",
    "IntegrityHasher",
    "SymmetricCipher",
    "derive_key",
    "CryptoConfig",
    "generate_secret_key",
    "load_secret_key",
]
