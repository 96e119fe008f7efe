"""
Issuance inputs and outputs.

AuthoritySpec and LeafSpec are built by the caller (usually from the YAML
configuration) and consumed once by issuance. IssuedMaterial is the only
thing issuance hands back; the engine keeps no state of its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .subject import Subject


@dataclass(frozen=True)
class AuthoritySpec:
    """
    Description of a self-signed certificate authority.

    Attributes:
        serial (int): Certificate serial number. Uniqueness is up to the caller.
        valid_for_years (int): Validity period in whole years.
        subject (Subject): Distinguished name of the authority.
    """
    serial: int
    valid_for_years: int
    subject: Subject


@dataclass(frozen=True)
class LeafSpec:
    """
    Description of an end-entity certificate signed by an authority.

    Attributes:
        serial (int): Certificate serial number.
        valid_for_years (int): Validity period in whole years.
        subject (Subject): Distinguished name of the certificate holder.
        dns_names (list[str]): subjectAltName DNS entries; empty strings are dropped.
    """
    serial: int
    valid_for_years: int
    subject: Subject
    dns_names: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class IssuedMaterial:
    """PEM encoded private key and certificate produced by one issuance."""
    private_key: bytes
    certificate: bytes
