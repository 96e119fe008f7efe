"""
End-to-end issuance: validate, build template, generate key, sign, encode.

create_ca_cert and create_cert are what callers normally use. They return
PEM bytes and write nothing; persisting the result is up to the caller.
Errors propagate unchanged; callers issuing several certificates wrap them
in IssuanceError to say which one failed.
"""

from __future__ import annotations

import logging

from . import codec
from .keys import generate_key_pair
from .signer import SignedCert, issue_authority, issue_leaf
from .specs import AuthoritySpec, IssuedMaterial, LeafSpec
from .template import Clock, build_authority_template, build_leaf_template, utc_now

LOGGER = logging.getLogger("tlscert.issuance")


def _encode(signed: SignedCert) -> IssuedMaterial:
    return IssuedMaterial(
        private_key=codec.encode_private_key(signed.private_key),
        certificate=codec.encode_certificate(signed.certificate),
    )


def create_ca_cert(spec: AuthoritySpec, clock: Clock = utc_now) -> IssuedMaterial:
    """
    Issue a self-signed certificate authority.

    Args:
        spec (AuthoritySpec): Serial, validity and subject of the authority.
        clock (Clock, optional): Source of "now" for the validity window.

    Returns:
        IssuedMaterial: PEM private key and PEM certificate.

    Raises:
        SubjectError: If the subject is invalid.
        TemplateError: If the serial, validity or subject cannot be encoded.
        KeyGenerationError: If key generation fails.
        SigningError: If signing fails.
    """
    spec.subject.validate()
    template = build_authority_template(spec, clock)
    key_pair = generate_key_pair()
    material = _encode(issue_authority(template, key_pair))
    LOGGER.info("issued CA certificate serial=%d cn=%s", spec.serial, spec.subject.common_name)
    return material


def create_cert(
    spec: LeafSpec,
    ca_key: bytes,
    ca_cert: bytes,
    clock: Clock = utc_now,
) -> IssuedMaterial:
    """
    Issue a leaf certificate signed by an existing authority.

    Args:
        spec (LeafSpec): Serial, validity, subject and DNS names of the leaf.
        ca_key (bytes): PEM private key of the signing authority.
        ca_cert (bytes): PEM certificate of the signing authority.
        clock (Clock, optional): Source of "now" for the validity window.

    Returns:
        IssuedMaterial: PEM private key and PEM certificate of the leaf.

    Raises:
        SubjectError: If the subject is invalid.
        TemplateError: If a spec value cannot be encoded.
        KeyGenerationError: If key generation fails.
        SigningError: If the authority material is unusable or signing fails.
    """
    spec.subject.validate()
    template = build_leaf_template(spec, clock)
    key_pair = generate_key_pair()
    material = _encode(issue_leaf(template, key_pair, ca_key, ca_cert))
    LOGGER.info(
        "issued certificate serial=%d cn=%s dns=%s",
        spec.serial, spec.subject.common_name, ",".join(template.dns_names) or "-",
    )
    return material
