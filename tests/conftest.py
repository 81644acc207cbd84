"""Shared fixtures: a cheap key-derivation config and a pinned clock."""
from datetime import datetime, timezone

import pytest

from compliance_vault.vault import CryptoConfig, EncryptionEngine

FIXED_NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fast_config():
    """PBKDF2 with the minimum iteration count, so tests stay fast."""
    return CryptoConfig(kdf_iterations=1000)


@pytest.fixture
def engine(fast_config):
    return EncryptionEngine(fast_config)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def fixed_now():
    return FIXED_NOW
