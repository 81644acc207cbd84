"""
Vault Crypto Core — Key derivation, encryption/decryption and integrity hashing.

Implements the primitives a document is sealed with before upload:
- Key derivation: PBKDF2-HMAC-SHA256 or scrypt(passphrase, salt) → 32-byte key
- Symmetric cipher: AES-256-GCM or ChaCha20-Poly1305 with a random 96-bit nonce
- Integrity hash: SHA-256 (public) or HMAC-SHA256 (keyed) hex digest of plaintext

Security Note:
    Never log passphrases, keys, plaintext or ciphertext values.
    Nonces are random 96-bit; the cipher additionally refuses to reuse
    a (key, nonce) pair it has already encrypted under.
"""
import os
import hmac
import hashlib
import logging
import threading
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..exceptions import CipherError, KeyDerivationError

logger = logging.getLogger("compliance_vault.vault")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # 256-bit keys
MIN_SALT_SIZE = 16  # 128-bit salt
DEFAULT_SALT_SIZE = 16

DEFAULT_PBKDF2_ITERATIONS = 600_000
DEFAULT_SCRYPT_N = 2 ** 15
SCRYPT_R = 8
SCRYPT_P = 1

CIPHERS = {
    "aes-256-gcm": AESGCM,
    "chacha20-poly1305": ChaCha20Poly1305,
}


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(
    passphrase: str,
    salt: Optional[bytes] = None,
    *,
    kdf: str = "pbkdf2-sha256",
    params: Optional[dict[str, int]] = None,
    salt_size: int = DEFAULT_SALT_SIZE,
) -> tuple[bytes, bytes]:
    """Derive a 32-byte encryption key from a passphrase.

    When no salt is given a fresh random salt of ``salt_size`` bytes is
    generated; it is returned with the key so the caller can store it next
    to the ciphertext.

    Args:
        passphrase: User-supplied secret.
        salt: Stored salt, or None to generate one.
        kdf: ``pbkdf2-sha256`` or ``scrypt``.
        params: ``{"iterations": N}`` for PBKDF2, ``{"n": N}`` for scrypt.
        salt_size: Length of a generated salt in bytes.

    Returns:
        Tuple of (key, salt).

    Raises:
        KeyDerivationError: If the passphrase is empty, the salt is shorter
            than 128 bits, or the KDF name or parameters are invalid.
    """
    if not passphrase:
        raise KeyDerivationError("Passphrase cannot be empty")
    if salt is None:
        if salt_size < MIN_SALT_SIZE:
            raise KeyDerivationError(
                f"Salt size must be at least {MIN_SALT_SIZE} bytes, got {salt_size}"
            )
        salt = os.urandom(salt_size)
    elif len(salt) < MIN_SALT_SIZE:
        raise KeyDerivationError(
            f"Salt too short: {len(salt)} bytes (minimum {MIN_SALT_SIZE})"
        )
    params = params or {}
    try:
        if kdf == "pbkdf2-sha256":
            derivation = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=KEY_LENGTH,
                salt=salt,
                iterations=int(params.get("iterations", DEFAULT_PBKDF2_ITERATIONS)),
            )
        elif kdf == "scrypt":
            derivation = Scrypt(
                salt=salt,
                length=KEY_LENGTH,
                n=int(params.get("n", DEFAULT_SCRYPT_N)),
                r=SCRYPT_R,
                p=SCRYPT_P,
            )
        else:
            raise KeyDerivationError(f"Unsupported key derivation function: {kdf}")
        key = derivation.derive(passphrase.encode("utf-8"))
    except (ValueError, TypeError) as err:
        raise KeyDerivationError(f"Invalid {kdf} parameters: {err}") from err
    return key, salt


# ---------------------------------------------------------------------------
# Symmetric cipher
# ---------------------------------------------------------------------------

class SymmetricCipher:
    """AEAD cipher with fresh-nonce generation and nonce-reuse refusal.

    Both supported algorithms are authenticated, so ``decrypt`` detects a
    wrong key and a modified ciphertext/IV by itself. It cannot tell those
    two cases apart.

    With ``track_nonces`` on, the (key, nonce) fingerprints used for
    encryption are kept behind a lock, so one instance can be shared
    between threads without a nonce ever being encrypted under twice with
    the same key. It can be turned off for keys that are
    derived fresh for every message.
    """

    def __init__(self, algorithm: str = "aes-256-gcm", track_nonces: bool = True):
        if algorithm not in CIPHERS:
            raise CipherError(f"Unsupported cipher algorithm: {algorithm}")
        self.algorithm = algorithm
        self._cipher_cls = CIPHERS[algorithm]
        self.track_nonces = track_nonces
        self._used: set[bytes] = set()
        self._lock = threading.Lock()

    @property
    def tracked_nonces(self) -> int:
        """Number of (key, nonce) pairs recorded so far."""
        with self._lock:
            return len(self._used)

    def _aead(self, key: bytes):
        if len(key) != KEY_LENGTH:
            raise CipherError(
                f"Key must be {KEY_LENGTH} bytes, got {len(key)}"
            )
        return self._cipher_cls(key)

    def _claim_nonce(self, key: bytes, iv: bytes) -> None:
        fingerprint = hashlib.sha256(key + iv).digest()
        with self._lock:
            if fingerprint in self._used:
                raise CipherError("IV already used with this key")
            self._used.add(fingerprint)

    def encrypt(
        self,
        plaintext: bytes,
        key: bytes,
        iv: Optional[bytes] = None,
        aad: Optional[bytes] = None,
    ) -> tuple[bytes, bytes]:
        """Encrypt plaintext under key.

        Args:
            plaintext: Data to encrypt.
            key: 32-byte symmetric key.
            iv: Optional 12-byte nonce; a random one is generated if omitted.
            aad: Optional associated data authenticated with the ciphertext.

        Returns:
            Tuple of (ciphertext with 16-byte tag, iv).

        Raises:
            CipherError: If key or IV have the wrong length, or the IV was
                already used with this key.
        """
        aead = self._aead(key)
        if iv is None:
            iv = os.urandom(NONCE_SIZE)
        elif len(iv) != NONCE_SIZE:
            raise CipherError(
                f"IV must be {NONCE_SIZE} bytes, got {len(iv)}"
            )
        if self.track_nonces:
            self._claim_nonce(key, iv)
        ciphertext = aead.encrypt(iv, plaintext, aad)
        return ciphertext, iv

    def decrypt(
        self,
        ciphertext: bytes,
        key: bytes,
        iv: bytes,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """Decrypt and authenticate ciphertext.

        Args:
            ciphertext: Encrypted payload including the 16-byte tag.
            key: 32-byte symmetric key.
            iv: 12-byte nonce used at encryption.
            aad: Associated data given at encryption.

        Returns:
            Decrypted plaintext bytes.

        Raises:
            CipherError: If lengths are inconsistent or authentication fails
                (wrong passphrase or corrupted data).
        """
        if len(iv) != NONCE_SIZE:
            raise CipherError(
                f"IV must be {NONCE_SIZE} bytes, got {len(iv)}"
            )
        if len(ciphertext) < TAG_SIZE:
            raise CipherError(
                f"Ciphertext too short: {len(ciphertext)} bytes "
                f"(minimum {TAG_SIZE})"
            )
        aead = self._aead(key)
        try:
            return aead.decrypt(iv, ciphertext, aad)
        except InvalidTag as err:
            raise CipherError(
                "Authentication failed: wrong passphrase or corrupted ciphertext"
            ) from err


# ---------------------------------------------------------------------------
# Integrity hashing
# ---------------------------------------------------------------------------

class IntegrityHasher:
    """SHA-256 content digest, optionally keyed as HMAC-SHA256.

    Without a key the digest is a public fingerprint anyone can recompute.
    With a key it also proves the digest was produced by a key holder.
    """

    def __init__(self, key: Optional[bytes] = None):
        self._key = key

    @property
    def keyed(self) -> bool:
        return self._key is not None

    @property
    def name(self) -> str:
        return "hmac-sha256" if self._key is not None else "sha256"

    def digest(self, payload: bytes) -> str:
        """Return the lowercase hex digest of payload."""
        if self._key is not None:
            return hmac.new(self._key, payload, hashlib.sha256).hexdigest()
        return hashlib.sha256(payload).hexdigest()

    def verify(self, payload: bytes, expected: str) -> bool:
        """Compare the digest of payload against expected in constant time."""
        return hmac.compare_digest(
            self.digest(payload).encode("ascii"),
            expected.strip().lower().encode("utf-8"),
        )
