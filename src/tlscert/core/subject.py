"""
Certificate subject (distinguished name) model and validation.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidCountryChars, InvalidCountryLength, MissingCommonName


@dataclass(frozen=True)
class Subject:
    """
    Distinguished-name attributes of a certificate subject.

    An empty string means the attribute is absent. Only common_name is
    required; country must be a two-letter code when present.
    """
    common_name: str = ""
    country: str = ""
    organization: str = ""
    organizational_unit: str = ""
    locality: str = ""
    province: str = ""
    street_address: str = ""
    postal_code: str = ""
    serial_number: str = ""

    def validate(self) -> None:
        """Raise a SubjectError if any field violates its constraints."""
        validate_subject(self)


def _is_ascii_letter(ch: str) -> bool:
    return ("A" <= ch <= "Z") or ("a" <= ch <= "z")


def validate_subject(subject: Subject) -> None:
    """
    Check the structural constraints of a subject.

    Args:
        subject (Subject): The subject to check.

    Raises:
        MissingCommonName: If common_name is empty.
        InvalidCountryLength: If country is set and is not exactly 2 characters.
        InvalidCountryChars: If country is set and contains a non ASCII letter.
    """
    if subject.common_name == "":
        raise MissingCommonName()

    if subject.country != "":
        if len(subject.country) != 2:
            raise InvalidCountryLength(subject.country)
        if not all(_is_ascii_letter(ch) for ch in subject.country):
            raise InvalidCountryChars(subject.country)
