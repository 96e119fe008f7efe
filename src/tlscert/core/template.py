"""
Unsigned certificate templates for authorities and leaves.

A CertTemplate holds everything that goes into a certificate except the
public key, issuer and signature, which the signer fills in. Templates are
plain values; nothing here touches key material.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Tuple

from cryptography import x509
from cryptography.x509 import (
    BasicConstraints, DNSName, ExtendedKeyUsage, KeyUsage, Name, NameAttribute,
    SubjectAlternativeName,
)
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from dateutil.relativedelta import relativedelta

from .errors import TemplateError
from .specs import AuthoritySpec, LeafSpec
from .subject import Subject

Clock = Callable[[], datetime]

# X.509 serial numbers are at most 20 octets and must be positive.
MAX_SERIAL_BITS = 159

SERVER_CLIENT_EKU = (ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.SERVER_AUTH)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CertTemplate:
    """
    Unsigned certificate descriptor.

    Attributes:
        serial (int): Serial number.
        subject (x509.Name): Subject distinguished name.
        not_before (datetime): Start of the validity window (UTC).
        not_after (datetime): End of the validity window (UTC).
        is_ca (bool): Whether the certificate may sign other certificates.
        key_usage (x509.KeyUsage): KeyUsage extension value.
        extended_key_usage (tuple): ExtendedKeyUsage OIDs.
        dns_names (tuple[str, ...]): subjectAltName DNS entries, possibly empty.
    """
    serial: int
    subject: Name
    not_before: datetime
    not_after: datetime
    is_ca: bool
    key_usage: KeyUsage
    extended_key_usage: Tuple[x509.ObjectIdentifier, ...]
    dns_names: Tuple[str, ...] = ()

    def to_builder(self) -> x509.CertificateBuilder:
        """
        Start a CertificateBuilder carrying every field of this template.

        Issuer name and public key are left for the signer.
        """
        builder = (
            x509.CertificateBuilder()
            .subject_name(self.subject)
            .serial_number(self.serial)
            .not_valid_before(self.not_before)
            .not_valid_after(self.not_after)
            .add_extension(BasicConstraints(ca=self.is_ca, path_length=None), critical=True)
            .add_extension(self.key_usage, critical=True)
            .add_extension(ExtendedKeyUsage(list(self.extended_key_usage)), critical=False)
        )
        if self.dns_names:     # No SAN extension at all when there are no names
            builder = builder.add_extension(
                SubjectAlternativeName([DNSName(d) for d in self.dns_names]),
                critical=False,
            )
        return builder


# ---------- helpers ----------

def _non_empty(values: List[str]) -> List[str]:
    return [v for v in values if v != ""]


def subject_to_name(subject: Subject) -> Name:
    """
    Build an x509.Name from a Subject.

    Each field turns into zero or one attribute: empty strings are left out
    rather than encoded as empty values.

    Raises:
        TemplateError: If an attribute value is rejected by the encoder
            (for example a common name longer than 64 characters).
    """
    fields = [
        (NameOID.COUNTRY_NAME, subject.country),
        (NameOID.STATE_OR_PROVINCE_NAME, subject.province),
        (NameOID.LOCALITY_NAME, subject.locality),
        (NameOID.STREET_ADDRESS, subject.street_address),
        (NameOID.POSTAL_CODE, subject.postal_code),
        (NameOID.ORGANIZATION_NAME, subject.organization),
        (NameOID.ORGANIZATIONAL_UNIT_NAME, subject.organizational_unit),
        (NameOID.COMMON_NAME, subject.common_name),
        (NameOID.SERIAL_NUMBER, subject.serial_number),
    ]
    try:
        return Name([NameAttribute(oid, value) for oid, value in fields if value != ""])
    except ValueError as e:
        raise TemplateError(f"invalid subject attribute: {e}") from e


def _check_serial(serial: int) -> int:
    if isinstance(serial, bool) or not isinstance(serial, int):
        raise TemplateError(f"serial must be an integer, got {type(serial).__name__}")
    if serial <= 0:
        raise TemplateError("serial must be positive")
    if serial.bit_length() > MAX_SERIAL_BITS:
        raise TemplateError(f"serial must fit in {MAX_SERIAL_BITS} bits")
    return serial


def _validity(valid_for_years: int, clock: Clock) -> Tuple[datetime, datetime]:
    if isinstance(valid_for_years, bool) or not isinstance(valid_for_years, int):
        raise TemplateError("validity must be a whole number of years")
    if valid_for_years < 1:
        raise TemplateError("validity must be at least one year")
    now = clock()
    if now.tzinfo is None:
        raise TemplateError("clock must return a timezone-aware datetime")
    now = now.astimezone(timezone.utc)
    return now, now + relativedelta(years=valid_for_years)


def _check_dns_names(names: List[str]) -> Tuple[str, ...]:
    for name in names:
        try:
            DNSName(name)
        except ValueError as e:
            raise TemplateError(f"invalid DNS name {name!r}: {e}") from e
    return tuple(names)


# ---------- builders ----------

def build_authority_template(spec: AuthoritySpec, clock: Clock = utc_now) -> CertTemplate:
    """
    Build the template of a self-signed certificate authority.

    Args:
        spec (AuthoritySpec): Serial, validity and subject of the authority.
        clock (Clock, optional): Source of "now". Defaults to the UTC wall clock.

    Returns:
        CertTemplate: CA template with keyCertSign + digitalSignature usage and
        client/server authentication EKUs.

    Raises:
        TemplateError: If the serial, validity or subject cannot be encoded.
    """
    not_before, not_after = _validity(spec.valid_for_years, clock)
    return CertTemplate(
        serial=_check_serial(spec.serial),
        subject=subject_to_name(spec.subject),
        not_before=not_before,
        not_after=not_after,
        is_ca=True,
        key_usage=KeyUsage(
            digital_signature=True,
            content_commitment=False,
            key_encipherment=False,
            data_encipherment=False,
            key_agreement=False,
            key_cert_sign=True,     # Can be used to sign other certificates
            crl_sign=False,
            encipher_only=False,
            decipher_only=False,
        ),
        extended_key_usage=SERVER_CLIENT_EKU,
    )


def build_leaf_template(spec: LeafSpec, clock: Clock = utc_now) -> CertTemplate:
    """
    Build the template of an end-entity certificate.

    Args:
        spec (LeafSpec): Serial, validity, subject and DNS names of the leaf.
        clock (Clock, optional): Source of "now". Defaults to the UTC wall clock.

    Returns:
        CertTemplate: Non-CA template with digitalSignature usage, client/server
        authentication EKUs and the non-empty DNS names.

    Raises:
        TemplateError: If the serial, validity, subject or a DNS name cannot be encoded.
    """
    not_before, not_after = _validity(spec.valid_for_years, clock)
    return CertTemplate(
        serial=_check_serial(spec.serial),
        subject=subject_to_name(spec.subject),
        not_before=not_before,
        not_after=not_after,
        is_ca=False,
        key_usage=KeyUsage(
            digital_signature=True,
            content_commitment=False,
            key_encipherment=False,
            data_encipherment=False,
            key_agreement=False,
            key_cert_sign=False,
            crl_sign=False,
            encipher_only=False,
            decipher_only=False,
        ),
        extended_key_usage=SERVER_CLIENT_EKU,
        dns_names=_check_dns_names(_non_empty(list(spec.dns_names))),
    )
