"""
Error taxonomy for sealing, opening and auditing documents.

Every failure is local and recoverable by the caller; none of them is
downgraded to a generic error so a wrong passphrase, corrupted data and
missing key material stay distinguishable.
"""


class ComplianceVaultError(Exception):
    """Base class for all compliance vault errors."""


class KeyDerivationError(ComplianceVaultError):
    """Passphrase or salt cannot be turned into a key (empty passphrase, short salt)."""


class CipherError(ComplianceVaultError):
    """Key, IV and ciphertext do not validate together.

    With an authenticated cipher a wrong passphrase and a corrupted
    ciphertext are indistinguishable; both end up here.
    """


class MalformedSealedPayload(ComplianceVaultError):
    """A sealed payload is missing its IV or salt."""


class IntegrityMismatch(ComplianceVaultError):
    """Decrypted content does not hash to the recorded digest.

    The decrypted bytes are kept on the exception so the caller can decide
    to proceed with a warning; they are never part of the message.
    """

    def __init__(self, expected: str, actual: str, plaintext: bytes = b""):
        self.expected = expected
        self.actual = actual
        self.plaintext = plaintext
        super().__init__(
            f"Integrity check failed: expected digest {expected}, got {actual}"
        )


class StorageError(ComplianceVaultError):
    """The storage collaborator could not satisfy a request."""
