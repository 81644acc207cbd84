"""
Tests for ComplianceRecordBuilder and the string metadata map.

Tests cover:
- StorageMetadata assembly and retention arithmetic
- Metadata map encoding (all values are strings) and parsing back
- Restoring StorageMetadata from a stored metadata map
- Default compliance profiles
"""
from datetime import timedelta

import orjson
import pytest
from pydantic import ValidationError

from compliance_vault.exceptions import MalformedSealedPayload
from compliance_vault.models import (
    ComplianceRequirement,
    FileInfo,
    Regulation,
    SealedPayload,
    StorageMetadata,
)
from compliance_vault.records import ComplianceRecordBuilder



@pytest.fixture
def builder(clock):
    return ComplianceRecordBuilder(clock=clock)


@pytest.fixture
def hipaa():
    return ComplianceRequirement.for_regulation(Regulation.HIPAA)


@pytest.fixture
def sealed(engine):
    return engine.seal(b"helloworld", "p@ss1")


@pytest.fixture
def file_info():
    return FileInfo.from_bytes("report.txt", b"helloworld")


# --- Compliance profiles ---

class TestComplianceRequirement:
    """Tests for ComplianceRequirement."""

    def test_hipaa_default(self, hipaa):
        assert hipaa.retention_period_days == 2555
        assert hipaa.access_logging is True
        assert hipaa.encryption_required is True
        assert hipaa.audit_trail_required is True

    @pytest.mark.parametrize("regulation", ["GDPR", "SOX", "SEC", "FINRA"])
    def test_other_defaults(self, regulation):
        assert ComplianceRequirement.for_regulation(regulation).retention_period_days == 3650

    def test_retention_must_be_positive(self):
        with pytest.raises(ValidationError):
            ComplianceRequirement(regulation="GDPR", retention_period_days=0)

    def test_unknown_regulation(self):
        with pytest.raises(ValueError):
            ComplianceRequirement.for_regulation("PCI")

    def test_immutable(self, hipaa):
        with pytest.raises(ValidationError):
            hipaa.retention_period_days = 1

    def test_camel_case_aliases(self):
        requirement = ComplianceRequirement.model_validate({
            "regulation": "SOX",
            "retentionPeriodDays": 30,
            "accessLogging": False,
        })
        assert requirement.retention_period_days == 30
        assert requirement.access_logging is False


# --- Building StorageMetadata ---

class TestBuild:
    """Tests for ComplianceRecordBuilder.build."""

    def test_hipaa_scenario(self, builder, hipaa, sealed, file_info, fixed_now):
        """A 10-byte HIPAA upload retains for exactly 2555 days."""
        metadata = builder.build(
            file_info, hipaa, sealed, "ab" * 32, "sha256-doc", ["provider-1"],
        )
        assert metadata.upload_date == fixed_now
        assert metadata.retention_end_date == fixed_now + timedelta(days=2555)
        assert (metadata.retention_end_date - metadata.upload_date).days == 2555
        assert metadata.file_size == 10

    def test_fields(self, builder, hipaa, sealed, file_info):
        metadata = builder.build(
            file_info, hipaa, sealed, "ab" * 32, "sha256-doc", ["p1", "p2", "p1"],
        )
        assert metadata.id == "sha256-doc"
        assert metadata.file_name == "report.txt"
        assert metadata.mime_type == "text/plain"
        assert metadata.encryption_hash == "ab" * 32
        assert metadata.encryption_iv == sealed.iv.hex()
        assert metadata.encryption_salt == sealed.salt.hex()
        assert metadata.encryption_algorithm == sealed.algorithm
        assert metadata.storage_providers == frozenset({"p1", "p2"})
        assert metadata.compliance == hipaa

    def test_sealed_payload_round_trip(self, builder, hipaa, sealed, file_info):
        """Recorded key material rebuilds the original sealed payload."""
        metadata = builder.build(file_info, hipaa, sealed, "ab" * 32, "id", ["p"])
        assert metadata.sealed_payload(sealed.ciphertext) == sealed

    def test_refuses_payload_without_salt(self, builder, hipaa, sealed, file_info):
        with pytest.raises(MalformedSealedPayload):
            builder.build(
                file_info, hipaa, sealed.model_copy(update={"salt": None}),
                "ab" * 32, "id", ["p"],
            )

    def test_retention_window_is_enforced(self, builder, hipaa, sealed, file_info):
        metadata = builder.build(file_info, hipaa, sealed, "ab" * 32, "id", ["p"])
        data = metadata.model_dump()
        data["retention_end_date"] += timedelta(seconds=1)
        with pytest.raises(ValidationError):
            StorageMetadata(**data)

    def test_retention_active(self, builder, hipaa, sealed, file_info, fixed_now):
        metadata = builder.build(file_info, hipaa, sealed, "ab" * 32, "id", ["p"])
        assert metadata.retention_active(fixed_now + timedelta(days=2554))
        assert not metadata.retention_active(fixed_now + timedelta(days=2555))

    def test_uses_current_time_by_default(self, hipaa, sealed, file_info):
        metadata = ComplianceRecordBuilder().build(
            file_info, hipaa, sealed, "ab" * 32, "id", ["p"],
        )
        assert metadata.upload_date.tzinfo is not None


# --- Metadata map ---

class TestMetadataMap:
    """Tests for the string metadata map sent to storage."""

    def test_all_values_are_strings(self, builder, hipaa, sealed, file_info, fixed_now):
        mapping = builder.metadata_map(file_info, hipaa, sealed, "ab" * 32, fixed_now)
        assert all(isinstance(v, str) for v in mapping.values())

    def test_required_keys(self, builder, hipaa, sealed, file_info, fixed_now):
        mapping = builder.metadata_map(file_info, hipaa, sealed, "ab" * 32, fixed_now)
        for key in (
            "fileName", "fileSize", "mimeType", "compliance", "retention",
            "encryptionHash", "encryptionIv", "encryptionSalt",
        ):
            assert key in mapping
        assert mapping["fileSize"] == "10"
        assert mapping["retention"] == "2555"
        assert mapping["encryptionIv"] == sealed.iv.hex()

    def test_compliance_is_json(self, builder, hipaa, sealed, file_info, fixed_now):
        mapping = builder.metadata_map(file_info, hipaa, sealed, "ab" * 32, fixed_now)
        assert orjson.loads(mapping["compliance"]) == {
            "regulation": "HIPAA",
            "retentionPeriodDays": 2555,
            "accessLogging": True,
            "encryptionRequired": True,
            "auditTrailRequired": True,
        }

    def test_parse_back(self, builder, hipaa, sealed, file_info, fixed_now):
        mapping = builder.metadata_map(file_info, hipaa, sealed, "ab" * 32, fixed_now)
        parsed = builder.parse_metadata_map(mapping)
        assert parsed.file_info == file_info
        assert parsed.compliance == hipaa
        assert parsed.upload_date == fixed_now
        assert parsed.encryption_hash == "ab" * 32
        assert SealedPayload.from_metadata(sealed.ciphertext, mapping) == sealed

    def test_parse_missing_keys(self, builder, hipaa, sealed, file_info, fixed_now):
        mapping = builder.metadata_map(file_info, hipaa, sealed, "ab" * 32, fixed_now)
        del mapping["encryptionSalt"]
        with pytest.raises(ValueError, match="encryptionSalt"):
            builder.parse_metadata_map(mapping)

    def test_parse_inconsistent_retention(self, builder, hipaa, sealed, file_info, fixed_now):
        mapping = builder.metadata_map(file_info, hipaa, sealed, "ab" * 32, fixed_now)
        mapping["retention"] = "30"
        with pytest.raises(ValueError):
            builder.parse_metadata_map(mapping)

    def test_restore(self, builder, hipaa, sealed, file_info, fixed_now):
        """StorageMetadata rebuilt from the map equals the one built at upload."""
        original = builder.build(
            file_info, hipaa, sealed, "ab" * 32, "sha256-doc", ["p1"],
        )
        mapping = builder.metadata_map(file_info, hipaa, sealed, "ab" * 32, fixed_now)
        assert builder.restore("sha256-doc", mapping, ["p1"]) == original

    def test_restore_requires_upload_date(self, builder, hipaa, sealed, file_info, fixed_now):
        mapping = builder.metadata_map(file_info, hipaa, sealed, "ab" * 32, fixed_now)
        del mapping["uploadDate"]
        with pytest.raises(ValueError):
            builder.restore("sha256-doc", mapping)

    def test_restore_undecodable_key_material(self, builder, hipaa, sealed, file_info, fixed_now):
        mapping = builder.metadata_map(file_info, hipaa, sealed, "ab" * 32, fixed_now)
        mapping["encryptionKdfParams"] = '{"iterations": "many"}'
        with pytest.raises(MalformedSealedPayload):
            builder.restore("sha256-doc", mapping)

    def test_file_info_guesses_mime_type(self):
        assert FileInfo.from_bytes("scan.pdf", b"%PDF").mime_type == "application/pdf"
        assert FileInfo.from_bytes("blob", b"x").mime_type == "application/octet-stream"
        assert FileInfo.from_bytes("a.pdf", b"x", "text/plain").mime_type == "text/plain"
