"""
End-to-end issuance and verification through the public API.

These tests use real 4096-bit keys and the wall clock, exactly as the
command line does.
"""

import pytest
from cryptography import x509

from tlscert.core.chain import verify_certificate_chain
from tlscert.core.codec import load_certificate, load_private_key
from tlscert.core.errors import ChainError, SubjectError
from tlscert.core.issuance import create_ca_cert, create_cert
from tlscert.core.specs import AuthoritySpec, LeafSpec
from tlscert.core.subject import Subject


def test_full_issue_and_verify_workflow():
    """Issue a CA and a leaf, then verify the leaf against trusted and untrusted CAs.

    Steps:
        1. Issue a self-signed "Test CA" (US, one year).
        2. Issue "test.example.com" signed by it, with two DNS names.
        3. Verify the leaf against the CA certificate.
        4. Verify the leaf against an unrelated, freshly issued CA.

    Ensures:
        - The leaf chains to the CA that issued it.
        - An authority that did not sign the leaf is never trusted for it.
    """
    # --- Issue the authority and one leaf ---
    ca = create_ca_cert(AuthoritySpec(
        serial=1,
        valid_for_years=1,
        subject=Subject(common_name="Test CA", country="US"),
    ))
    leaf = create_cert(
        LeafSpec(
            serial=2,
            valid_for_years=1,
            subject=Subject(common_name="test.example.com"),
            dns_names=["test.example.com", "www.test.example.com"],
        ),
        ca.private_key,
        ca.certificate,
    )

    # --- Check what was issued ---
    ca_cert = load_certificate(ca.certificate)
    leaf_cert = load_certificate(leaf.certificate)
    assert load_private_key(leaf.private_key).key_size == 4096
    assert leaf_cert.issuer == ca_cert.subject
    san = leaf_cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    assert san.get_values_for_type(x509.DNSName) == ["test.example.com", "www.test.example.com"]

    # --- Trusted authority ---
    result = verify_certificate_chain(leaf.certificate, ca.certificate)
    assert result.paths

    # --- Unrelated authority ---
    stranger = create_ca_cert(AuthoritySpec(
        serial=1,
        valid_for_years=1,
        subject=Subject(common_name="Test CA", country="US"),
    ))
    with pytest.raises(ChainError) as exc:
        verify_certificate_chain(leaf.certificate, stranger.certificate)
    assert exc.value.reason == ChainError.NO_VALID_PATH


def test_invalid_subject_stops_before_key_generation(ca_material, monkeypatch):
    """Subject validation runs first; no key is generated for a bad spec."""
    from tlscert.core import keys

    def unexpected(**kwargs):
        raise AssertionError("key generated for an invalid subject")

    monkeypatch.setattr(keys.rsa, "generate_private_key", unexpected)

    with pytest.raises(SubjectError):
        create_cert(
            LeafSpec(serial=3, valid_for_years=1, subject=Subject(common_name="bad", country="USA")),
            ca_material.private_key,
            ca_material.certificate,
        )


def test_leaf_cannot_sign_other_leaves(leaf_material, ca_material, fast_keys):
    """A leaf key and certificate can technically sign, but the result never verifies."""
    grandchild = create_cert(
        LeafSpec(serial=9, valid_for_years=1, subject=Subject(common_name="grandchild.example.com")),
        leaf_material.private_key,
        leaf_material.certificate,
    )

    with pytest.raises(ChainError) as exc:
        verify_certificate_chain(grandchild.certificate, leaf_material.certificate)
    assert exc.value.reason == ChainError.NO_VALID_PATH

    with pytest.raises(ChainError):
        verify_certificate_chain(grandchild.certificate, ca_material.certificate)
