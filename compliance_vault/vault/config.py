"""
Vault Configuration — Cipher, key-derivation and integrity settings.

Reads optional overrides from environment variables:
    COMPLIANCE_CIPHER_BACKEND = aes-256-gcm | chacha20-poly1305
    COMPLIANCE_KDF = pbkdf2-sha256 | scrypt
    COMPLIANCE_KDF_ITERATIONS = <integer>
    COMPLIANCE_SCRYPT_N = <power of two>
    COMPLIANCE_SALT_SIZE = <bytes>
    COMPLIANCE_HASH_KEY = <base64-encoded key, >= 32 bytes>
    COMPLIANCE_PROOF_KEY = <base64-encoded key, >= 32 bytes>

Security Note:
    Never log key material. Only log algorithm names and parameters.
"""
import os
import base64
import secrets
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("compliance_vault.vault")

CIPHER_BACKENDS = ("aes-256-gcm", "chacha20-poly1305")
KDF_ALGORITHMS = ("pbkdf2-sha256", "scrypt")

MIN_SECRET_KEY_LENGTH = 32


def load_secret_key(name: str) -> Optional[bytes]:
    """Load an optional base64-encoded secret key from the environment.

    Args:
        name: Environment variable name.

    Returns:
        Raw key bytes, or None if the variable is not set.

    Raises:
        ValueError: If the key is not valid base64 or decodes to fewer
            than 32 bytes.
    """
    value = os.environ.get(name)
    if not value:
        return None
    try:
        key_bytes = base64.b64decode(value, validate=True)
    except ValueError as err:
        raise ValueError(f"{name} is not valid base64") from err
    if len(key_bytes) < MIN_SECRET_KEY_LENGTH:
        raise ValueError(
            f"{name} must decode to at least {MIN_SECRET_KEY_LENGTH} bytes, "
            f"got {len(key_bytes)}"
        )
    logger.debug("Loaded secret key from %s", name)
    return key_bytes


def generate_secret_key() -> str:
    """Generate a random 32-byte key and return it as a base64 string.

    Utility for operators provisioning COMPLIANCE_HASH_KEY or
    COMPLIANCE_PROOF_KEY.

    Returns:
        Base64-encoded 32-byte key string.
    """
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


class CryptoConfig(BaseModel):
    """Validated crypto configuration."""

    cipher_backend: str = Field(default="aes-256-gcm")
    kdf: str = Field(default="pbkdf2-sha256")
    kdf_iterations: int = Field(default=600_000, ge=1000)
    scrypt_n: int = Field(default=2 ** 15, ge=2 ** 10)
    salt_size: int = Field(default=16, ge=16, le=64)
    hash_key: Optional[bytes] = None
    proof_key: Optional[bytes] = None

    model_config = {"frozen": True}

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        if v not in CIPHER_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("kdf")
    @classmethod
    def validate_kdf(cls, v: str) -> str:
        """Validate key-derivation function is supported."""
        if v not in KDF_ALGORITHMS:
            raise ValueError(f"Unsupported key derivation function: {v}")
        return v

    @field_validator("scrypt_n")
    @classmethod
    def validate_scrypt_n(cls, v: int) -> int:
        """Scrypt cost parameter must be a power of two."""
        if v & (v - 1):
            raise ValueError(f"scrypt_n must be a power of two, got {v}")
        return v

    @model_validator(mode="after")
    def validate_key_lengths(self) -> "CryptoConfig":
        """Ensure optional secret keys are long enough."""
        for name in ("hash_key", "proof_key"):
            key = getattr(self, name)
            if key is not None and len(key) < MIN_SECRET_KEY_LENGTH:
                raise ValueError(
                    f"{name} must be at least {MIN_SECRET_KEY_LENGTH} bytes"
                )
        return self

    @property
    def kdf_params(self) -> dict[str, int]:
        """Parameters recorded alongside a payload sealed with this config."""
        if self.kdf == "scrypt":
            return {"n": self.scrypt_n}
        return {"iterations": self.kdf_iterations}

    @classmethod
    def from_env(cls) -> "CryptoConfig":
        """Create CryptoConfig by loading values from environment.

        Returns:
            Populated CryptoConfig instance.
        """
        values: dict = {}
        cipher_backend = os.environ.get("COMPLIANCE_CIPHER_BACKEND")
        if cipher_backend:
            values["cipher_backend"] = cipher_backend.lower()
        kdf = os.environ.get("COMPLIANCE_KDF")
        if kdf:
            values["kdf"] = kdf.lower()
        for env_name, field in (
            ("COMPLIANCE_KDF_ITERATIONS", "kdf_iterations"),
            ("COMPLIANCE_SCRYPT_N", "scrypt_n"),
            ("COMPLIANCE_SALT_SIZE", "salt_size"),
        ):
            raw = os.environ.get(env_name)
            if raw:
                values[field] = int(raw)
        values["hash_key"] = load_secret_key("COMPLIANCE_HASH_KEY")
        values["proof_key"] = load_secret_key("COMPLIANCE_PROOF_KEY")
        config = cls(**values)
        logger.debug(
            "Crypto config: cipher=%s kdf=%s params=%s keyed_hash=%s signed_proofs=%s",
            config.cipher_backend, config.kdf, config.kdf_params,
            config.hash_key is not None, config.proof_key is not None,
        )
        return config
