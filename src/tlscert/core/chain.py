"""
Verify that a leaf certificate chains to a trusted authority.

The trust store is built fresh from the caller's PEM bytes on every call.
A leaf is accepted when at least one trust path validates; every valid
path is returned so callers can report on them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from . import codec
from .errors import ChainError, ParseError
from .template import Clock, utc_now

LOGGER = logging.getLogger("tlscert.chain")

Path = Tuple[x509.Certificate, ...]


# ---------- helpers ----------

def common_name(name: x509.Name) -> str:
    """Return the first CN of a name, or an empty string when there is none."""
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    return str(attrs[0].value) if attrs else ""


def _is_ca(cert: x509.Certificate) -> bool:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except x509.ExtensionNotFound:
        return False


def _valid_at(cert: x509.Certificate, at: datetime) -> bool:
    return cert.not_valid_before_utc <= at <= cert.not_valid_after_utc


def _allows_server_auth(cert: x509.Certificate) -> bool:
    """No EKU extension means any usage; otherwise serverAuth (or anyExtendedKeyUsage) must be listed."""
    try:
        usages = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    except x509.ExtensionNotFound:
        return True
    return ExtendedKeyUsageOID.SERVER_AUTH in usages or ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE in usages


def _signed_by(leaf: x509.Certificate, authority: x509.Certificate) -> bool:
    """
    Check issuer/subject linkage and the signature of leaf against authority.

    Args:
        leaf (x509.Certificate): The certificate being verified.
        authority (x509.Certificate): Candidate issuer from the trust store.

    Returns:
        bool: True if authority is a CA whose subject is leaf's issuer and whose
              public key verifies leaf's signature.
    """
    if leaf.issuer != authority.subject:
        return False
    if not _is_ca(authority):
        LOGGER.debug("%s is not a CA, cannot issue certificates", common_name(authority.subject))
        return False
    try:
        leaf.verify_directly_issued_by(authority)
    except (InvalidSignature, ValueError, TypeError, UnsupportedAlgorithm) as e:
        LOGGER.debug("signature check against %s failed: %r", common_name(authority.subject), e)
        return False
    return True


# ---------- trust store ----------

@dataclass(frozen=True)
class TrustStore:
    """Trusted authority certificates for a single verification call."""
    certificates: Tuple[x509.Certificate, ...]

    @classmethod
    def from_pem(cls, data: bytes) -> "TrustStore":
        """
        Load every parsable CERTIFICATE block of data.

        Blocks that do not parse are skipped, mirroring how PEM bundles with
        stray entries are usually consumed.

        Raises:
            ChainError: "untrusted authority material" when nothing could be loaded.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        certs: List[x509.Certificate] = []
        for label, block in codec.iter_blocks(data):
            if label != codec.CERTIFICATE_LABEL:
                continue
            try:
                certs.append(codec.load_certificate_pem(block))
            except ParseError as e:
                LOGGER.debug("skipping unparsable authority block: %s", e)
        if not certs:
            raise ChainError(ChainError.UNTRUSTED_AUTHORITY, "failed to parse CA certificate")
        return cls(tuple(certs))

    def paths_for(self, leaf: x509.Certificate, at: datetime) -> List[Path]:
        """Return every valid path from leaf to a member of this store."""
        paths: List[Path] = []
        if not _valid_at(leaf, at):
            LOGGER.debug("%s is outside its validity window at %s", common_name(leaf.subject), at)
            return paths
        if not _allows_server_auth(leaf):
            LOGGER.debug("%s is not valid for server authentication", common_name(leaf.subject))
            return paths
        for authority in self.certificates:
            if not _valid_at(authority, at) or not _allows_server_auth(authority):
                continue
            if leaf == authority:       # The leaf itself is trusted
                paths.append((leaf,))
            elif _signed_by(leaf, authority):
                paths.append((leaf, authority))
        return paths


# ---------- results ----------

@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of a successful verification.

    Attributes:
        leaf (x509.Certificate): The verified certificate.
        verified_at (datetime): The instant validity windows were checked against.
        paths (tuple[Path, ...]): Every valid trust path, leaf first.
    """
    leaf: x509.Certificate
    verified_at: datetime
    paths: Tuple[Path, ...]

    def describe(self) -> List[str]:
        """One line per certificate of every path, for diagnostics."""
        lines = []
        for i, path in enumerate(self.paths):
            for j, cert in enumerate(path):
                lines.append(
                    f"Chain {i} Certificate {j}: Subject: {common_name(cert.subject)}, "
                    f"Issuer: {common_name(cert.issuer)}"
                )
        return lines


# ---------- public API ----------

def verify_certificate_chain(
    cert_pem: bytes,
    ca_cert_pem: bytes,
    *,
    at: Optional[datetime] = None,
    clock: Clock = utc_now,
) -> VerificationResult:
    """
    Verify that a leaf certificate was issued by one of the given authorities.

    Args:
        cert_pem (bytes): PEM bytes of the leaf. Only the first CERTIFICATE block is used.
        ca_cert_pem (bytes): PEM bytes of one or more trusted authority certificates.
        at (datetime | None, optional): Verification instant. Defaults to clock().
        clock (Clock, optional): Source of "now" when `at` is not given.

    Returns:
        VerificationResult: The leaf and all valid trust paths.

    Raises:
        ChainError: With reason "untrusted authority material", "malformed leaf"
            or "no valid path".
    """
    store = TrustStore.from_pem(ca_cert_pem)

    try:
        leaf = codec.load_certificate(cert_pem)
    except ParseError as e:
        raise ChainError(ChainError.MALFORMED_LEAF, f"failed to parse certificate PEM: {e}") from e

    when = at if at is not None else clock()
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    paths = store.paths_for(leaf, when)
    if not paths:
        raise ChainError(
            ChainError.NO_VALID_PATH,
            f"{common_name(leaf.subject)!r} does not chain to any of {len(store.certificates)} "
            f"trusted certificate(s)",
        )

    result = VerificationResult(leaf=leaf, verified_at=when, paths=tuple(paths))
    for line in result.describe():
        LOGGER.debug(line)
    return result
