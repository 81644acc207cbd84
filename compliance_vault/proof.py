"""
Audit proofs — Structured evidence of what was checked on an audit retrieval.

A proof is a JSON document with a fixed field set and order:

    documentId, auditContext, integrityVerified, providerInfo,
    timestamp, complianceStatus

External audit tooling parses these fields; renaming, reordering or
removing one is a breaking change. When a proof key is configured a
trailing ``signature`` field (HMAC-SHA256 over the preceding fields,
hex) is appended.
"""
import hmac
import hashlib
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Union
from collections.abc import Mapping

import orjson
from pydantic import BaseModel

from .models import AuditContext, utc_now

logger = logging.getLogger("compliance_vault.audit")

PROOF_FIELDS = (
    "documentId",
    "auditContext",
    "integrityVerified",
    "providerInfo",
    "timestamp",
    "complianceStatus",
)
SIGNATURE_FIELD = "signature"

STATUS_VERIFIED = "verified"
STATUS_INTEGRITY_FAILED = "integrity-failed"


def _encode_opaque(obj: Any) -> Any:
    """orjson fallback for provider info of unknown shape."""
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if isinstance(obj, bytes):
        return obj.hex()
    return str(obj)


class AuditProofGenerator:
    """Builds (and optionally signs) compliance proofs."""

    def __init__(
        self,
        signing_key: Optional[bytes] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._signing_key = signing_key
        self._clock = clock or utc_now

    @property
    def signed(self) -> bool:
        return self._signing_key is not None

    def _sign(self, body: bytes) -> str:
        return hmac.new(self._signing_key, body, hashlib.sha256).hexdigest()

    def generate(
        self,
        document_id: str,
        audit_context: Union[AuditContext, Mapping[str, str]],
        integrity_verified: bool,
        provider_info: Any = None,
    ) -> str:
        """Produce the proof for one audit retrieval.

        Args:
            document_id: Content address of the retrieved document.
            audit_context: Auditor, purpose and compliance type.
            integrity_verified: Whether the decrypted content matched its
                recorded digest.
            provider_info: Opaque storage-provider description.

        Returns:
            JSON string with the stable field order.
        """
        if not isinstance(audit_context, AuditContext):
            audit_context = AuditContext.model_validate(audit_context)
        proof = {
            "documentId": document_id,
            "auditContext": audit_context.model_dump(by_alias=True),
            "integrityVerified": bool(integrity_verified),
            "providerInfo": provider_info,
            "timestamp": self._clock().isoformat(),
            "complianceStatus": (
                STATUS_VERIFIED if integrity_verified else STATUS_INTEGRITY_FAILED
            ),
        }
        body = orjson.dumps(
            proof, default=_encode_opaque, option=orjson.OPT_NON_STR_KEYS,
        )
        if self._signing_key is not None:
            proof = orjson.loads(body)
            proof[SIGNATURE_FIELD] = self._sign(body)
            body = orjson.dumps(proof, option=orjson.OPT_NON_STR_KEYS)
        logger.info(
            "Compliance proof for document %s: %s",
            document_id, proof["complianceStatus"],
        )
        return body.decode("utf-8")

    def verify(self, proof: str) -> bool:
        """Check a proof's field set, status consistency and signature.

        Unsigned proofs fail verification when this generator has a key.
        """
        try:
            data = orjson.loads(proof)
        except orjson.JSONDecodeError:
            return False
        if not isinstance(data, dict):
            return False
        signature = data.pop(SIGNATURE_FIELD, None)
        if tuple(data) != PROOF_FIELDS:
            return False
        expected_status = (
            STATUS_VERIFIED if data["integrityVerified"] is True
            else STATUS_INTEGRITY_FAILED
        )
        if data["complianceStatus"] != expected_status:
            return False
        if self._signing_key is None:
            return True
        if not isinstance(signature, str):
            return False
        return hmac.compare_digest(
            self._sign(orjson.dumps(data)).encode("ascii"),
            signature.encode("utf-8"),
        )
