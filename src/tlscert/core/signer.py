"""
Turn templates into signed certificates.

issue_authority self-signs a CA template with the CA's own key.
issue_leaf signs a leaf template with an existing authority, given as the
PEM encoded key and certificate that create_ca_cert produced earlier.

Both return DER bytes; PEM encoding is left to the codec.
"""

from __future__ import annotations

from dataclasses import dataclass

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509 import AuthorityKeyIdentifier, SubjectKeyIdentifier

from . import codec
from .errors import ParseError, SigningError
from .keys import KeyPair, private_key_to_der
from .template import CertTemplate


@dataclass(frozen=True)
class SignedCert:
    """DER certificate bytes plus the DER (PKCS#1) private key it was issued for."""
    certificate: bytes
    private_key: bytes


def _sign(builder: x509.CertificateBuilder, signing_key: rsa.RSAPrivateKey) -> bytes:
    try:
        cert = builder.sign(private_key=signing_key, algorithm=hashes.SHA256())
    except (ValueError, TypeError) as e:
        raise SigningError(f"failed to sign certificate: {e}") from e
    return cert.public_bytes(Encoding.DER)


def issue_authority(template: CertTemplate, key_pair: KeyPair) -> SignedCert:
    """
    Self-sign an authority template.

    Args:
        template (CertTemplate): A CA template (is_ca must be True).
        key_pair (KeyPair): The authority's fresh key pair.

    Returns:
        SignedCert: DER certificate whose issuer equals its subject, and the DER key.

    Raises:
        SigningError: If the template is not a CA template or signing fails.
    """
    if not template.is_ca:
        raise SigningError("failed to create CA certificate: template is not a CA template")

    builder = (
        template.to_builder()
        .issuer_name(template.subject)      # Self-signed: issuer == subject
        .public_key(key_pair.public_key)
        .add_extension(SubjectKeyIdentifier.from_public_key(key_pair.public_key), critical=False)
    )
    der = _sign(builder, key_pair.private_key)
    return SignedCert(certificate=der, private_key=private_key_to_der(key_pair.private_key))


def _authority_key_identifier(ca_cert: x509.Certificate) -> AuthorityKeyIdentifier:
    """Prefer the CA's own SKI, fall back to hashing its public key."""
    try:
        ski = ca_cert.extensions.get_extension_for_class(SubjectKeyIdentifier).value
        return AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski)
    except x509.ExtensionNotFound:
        return AuthorityKeyIdentifier.from_issuer_public_key(ca_cert.public_key())


def issue_leaf(
    template: CertTemplate,
    key_pair: KeyPair,
    ca_key_pem: bytes,
    ca_cert_pem: bytes,
) -> SignedCert:
    """
    Sign a leaf template with an authority's private key.

    Args:
        template (CertTemplate): A leaf template.
        key_pair (KeyPair): The leaf's fresh key pair.
        ca_key_pem (bytes): PEM encoded RSA private key of the authority.
        ca_cert_pem (bytes): PEM encoded certificate of the authority.

    Returns:
        SignedCert: DER leaf certificate (issuer = authority subject) and the DER key.

    Raises:
        SigningError: If the template is a CA template, the authority key or
            certificate cannot be parsed, the key does not belong to the
            certificate, or signing fails.
    """
    if template.is_ca:
        raise SigningError("failed to create certificate: template is a CA template")

    try:
        ca_key = codec.load_private_key(ca_key_pem)
    except ParseError as e:
        raise SigningError(f"failed to parse CA key: {e}") from e
    try:
        ca_cert = codec.load_certificate(ca_cert_pem)
    except ParseError as e:
        raise SigningError(f"failed to parse CA certificate: {e}") from e

    ca_public = ca_cert.public_key()
    if not isinstance(ca_public, rsa.RSAPublicKey) or (
        ca_key.public_key().public_numbers() != ca_public.public_numbers()
    ):
        raise SigningError("CA key does not match the CA certificate public key")

    builder = (
        template.to_builder()
        .issuer_name(ca_cert.subject)       # Issued by the authority
        .public_key(key_pair.public_key)
        .add_extension(SubjectKeyIdentifier.from_public_key(key_pair.public_key), critical=False)
        .add_extension(_authority_key_identifier(ca_cert), critical=False)
    )
    der = _sign(builder, ca_key)
    return SignedCert(certificate=der, private_key=private_key_to_der(key_pair.private_key))
