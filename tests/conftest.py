"""
Shared fixtures.

Generating 4096-bit RSA keys is slow, so the common authority and leaf are
issued once per session. Tests that issue many throwaway certificates use
`fast_keys` to drop to 2048-bit keys.
"""

from datetime import datetime, timezone

import pytest

from tlscert.core import keys
from tlscert.core.issuance import create_ca_cert, create_cert
from tlscert.core.specs import AuthoritySpec, LeafSpec
from tlscert.core.subject import Subject

FIXED_NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    """A clock frozen at FIXED_NOW."""
    return fixed_clock


@pytest.fixture
def fast_keys(monkeypatch):
    """Issue with 2048-bit keys to keep slow tests fast."""
    monkeypatch.setattr(keys, "KEY_SIZE", 2048)


@pytest.fixture(scope="session")
def ca_spec() -> AuthoritySpec:
    return AuthoritySpec(
        serial=1,
        valid_for_years=1,
        subject=Subject(common_name="Test CA", country="US", organization="Test Org"),
    )


@pytest.fixture(scope="session")
def leaf_spec() -> LeafSpec:
    return LeafSpec(
        serial=2,
        valid_for_years=1,
        subject=Subject(common_name="test.example.com", country="US", organization="Test Org"),
        dns_names=["test.example.com", "", "www.test.example.com"],
    )


@pytest.fixture(scope="session")
def ca_material(ca_spec):
    return create_ca_cert(ca_spec)


@pytest.fixture(scope="session")
def leaf_material(leaf_spec, ca_material):
    return create_cert(leaf_spec, ca_material.private_key, ca_material.certificate)


@pytest.fixture(scope="session")
def other_ca_material():
    """An unrelated authority that happens to use the same subject as the test CA."""
    return create_ca_cert(AuthoritySpec(
        serial=1,
        valid_for_years=1,
        subject=Subject(common_name="Test CA", country="US", organization="Test Org"),
    ))
