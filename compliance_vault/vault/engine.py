"""
EncryptionEngine — Seals documents before upload and opens them on retrieval.

Sealing:  salt → derive_key(passphrase, salt) → AEAD(key, fresh IV) → SealedPayload
Opening:  derive_key(passphrase, sealed.salt) → AEAD decrypt → digest re-check

The digest of the plaintext is not part of the sealed payload; the caller
records it (see ``digest``) and hands it back to ``open``. Decryption and
verification are also exposed as separate steps so that a caller can
decrypt without a recorded digest, or verify content obtained elsewhere.

Security Note:
    Never log passphrases, keys, plaintext or ciphertext values.
    Only log sizes, algorithm tags and outcomes.
"""
import logging
from typing import Optional

from .config import CryptoConfig
from .crypto import CIPHERS, IntegrityHasher, SymmetricCipher, derive_key
from ..exceptions import CipherError, IntegrityMismatch, MalformedSealedPayload
from ..models import SEALED_PAYLOAD_VERSION, SealedPayload, payload_header

logger = logging.getLogger("compliance_vault.vault")


class EncryptionEngine:
    """Passphrase-based sealing of byte payloads.

    Every call to ``seal`` draws its own random salt and IV; the engine
    keeps no per-document state, so one instance can serve concurrent
    seal/open calls for different documents.

    Payloads are opened with the algorithm and KDF parameters recorded in
    the payload itself, not the current configuration, so documents sealed
    under older settings remain decryptable.
    """

    def __init__(
        self,
        config: Optional[CryptoConfig] = None,
        hasher: Optional[IntegrityHasher] = None,
    ):
        self.config = config or CryptoConfig()
        self.hasher = hasher or IntegrityHasher(self.config.hash_key)
        # Every seal derives a new key from a new salt.
        self._ciphers = {
            name: SymmetricCipher(name, track_nonces=False) for name in CIPHERS
        }

    def _cipher(self, algorithm: str) -> SymmetricCipher:
        try:
            return self._ciphers[algorithm]
        except KeyError:
            raise CipherError(f"Unsupported cipher algorithm: {algorithm}") from None

    def digest(self, plaintext: bytes) -> str:
        """Integrity digest of plaintext, recorded by the caller at upload."""
        return self.hasher.digest(plaintext)

    def seal(self, plaintext: bytes, passphrase: str) -> SealedPayload:
        """Encrypt plaintext under a key derived from passphrase.

        Args:
            plaintext: Document bytes.
            passphrase: User secret; never stored.

        Returns:
            SealedPayload with ciphertext, IV, salt and algorithm tags.

        Raises:
            KeyDerivationError: If the passphrase is empty.
        """
        config = self.config
        key, salt = derive_key(
            passphrase,
            kdf=config.kdf,
            params=config.kdf_params,
            salt_size=config.salt_size,
        )
        header = payload_header(SEALED_PAYLOAD_VERSION, config.cipher_backend, config.kdf)
        ciphertext, iv = self._cipher(config.cipher_backend).encrypt(
            plaintext, key, aad=header,
        )
        logger.debug(
            "Sealed %d bytes with %s/%s", len(plaintext), config.cipher_backend, config.kdf,
        )
        return SealedPayload(
            ciphertext=ciphertext,
            iv=iv,
            salt=salt,
            algorithm=config.cipher_backend,
            kdf=config.kdf,
            kdf_params=config.kdf_params,
            version=SEALED_PAYLOAD_VERSION,
        )

    def decrypt(self, sealed: SealedPayload, passphrase: str) -> bytes:
        """Decrypt a sealed payload without checking its digest.

        Raises:
            MalformedSealedPayload: If the IV or salt is missing, or the
                payload version is unknown.
            KeyDerivationError: If the passphrase is empty.
            CipherError: If authentication fails (wrong passphrase or
                corrupted ciphertext, indistinguishable here).
        """
        sealed.ensure_complete()
        if sealed.version != SEALED_PAYLOAD_VERSION:
            raise MalformedSealedPayload(
                f"Unsupported sealed payload version: {sealed.version}"
            )
        cipher = self._cipher(sealed.algorithm)
        key, _ = derive_key(
            passphrase, sealed.salt, kdf=sealed.kdf, params=sealed.kdf_params,
        )
        try:
            return cipher.decrypt(sealed.ciphertext, key, sealed.iv, aad=sealed.header)
        except CipherError as err:
            logger.warning("Decryption failed (%s): %s", sealed.algorithm, err)
            raise

    def verify(self, plaintext: bytes, expected_hash: str) -> None:
        """Re-check decrypted content against its recorded digest.

        Raises:
            IntegrityMismatch: If the digests differ.
        """
        if not self.hasher.verify(plaintext, expected_hash):
            actual = self.hasher.digest(plaintext)
            logger.warning(
                "Integrity mismatch: expected %s, got %s", expected_hash, actual,
            )
            raise IntegrityMismatch(expected_hash, actual, plaintext)

    def open(self, sealed: SealedPayload, passphrase: str, expected_hash: str) -> bytes:
        """Decrypt a sealed payload and verify the result.

        Args:
            sealed: Payload produced by ``seal``.
            passphrase: Passphrase used at sealing.
            expected_hash: Digest recorded for the original plaintext.

        Returns:
            Original plaintext bytes.

        Raises:
            MalformedSealedPayload: If the IV or salt is missing.
            CipherError: If decryption fails.
            IntegrityMismatch: If the decrypted content's digest differs.
        """
        plaintext = self.decrypt(sealed, passphrase)
        self.verify(plaintext, expected_hash)
        return plaintext
