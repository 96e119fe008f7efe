"""
Error taxonomy for certificate issuance and chain verification.

Every error raised by tlscert derives from CertError so that callers can
catch the whole family at once. Input-data errors additionally derive from
ValueError, matching how the rest of the code base reports bad input.
"""

from __future__ import annotations

from typing import Optional


class CertError(Exception):
    """Base class for all tlscert errors."""


# ---------- subject validation ----------

class SubjectError(CertError, ValueError):
    """A distinguished-name field failed validation (always caller-fixable)."""


class MissingCommonName(SubjectError):
    def __init__(self) -> None:
        super().__init__("common name is required")


class InvalidCountryLength(SubjectError):
    def __init__(self, country: str) -> None:
        super().__init__("country code must be ISO 3166-1 alpha-2 format (2 letters)")
        self.country = country


class InvalidCountryChars(SubjectError):
    def __init__(self, country: str) -> None:
        super().__init__("country code must contain only letters")
        self.country = country


# ---------- issuance ----------

class TemplateError(CertError, ValueError):
    """A spec value cannot be encoded into a certificate template."""


class KeyGenerationError(CertError):
    """Key pair generation failed. Fatal and not retryable."""


class SigningError(CertError):
    """Signing a certificate failed. The underlying cause is chained."""


class ParseError(CertError, ValueError):
    """Transport (PEM) or binary (DER) material could not be decoded."""


# ---------- verification ----------

class ChainError(CertError):
    """
    Chain verification failed.

    Attributes:
        reason (str): One of UNTRUSTED_AUTHORITY, MALFORMED_LEAF or NO_VALID_PATH.
        detail (str | None): Optional extra context for diagnostics.
    """

    UNTRUSTED_AUTHORITY = "untrusted authority material"
    MALFORMED_LEAF = "malformed leaf"
    NO_VALID_PATH = "no valid path"

    def __init__(self, reason: str, detail: Optional[str] = None) -> None:
        message = f"certificate verification failed: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.reason = reason
        self.detail = detail


# ---------- collaborators ----------

class ConfigError(CertError):
    """
    Loading the YAML configuration failed.

    Attributes:
        stage (str): "path resolution", "reading", "parsing" or "validation".
        path (str): The configuration file path involved.
    """

    def __init__(self, stage: str, path: str, err: object) -> None:
        super().__init__(f"configuration {stage} failed for {path}: {err}")
        self.stage = stage
        self.path = path
        self.err = err


class StorageError(CertError):
    """Reading or writing key/certificate files failed."""


class IssuanceError(CertError):
    """
    Issuing one configured certificate failed. The underlying error is
    chained as __cause__.

    Attributes:
        name (str): The configuration key of the failing spec.
        common_name (str): The subject common name of the failing spec.
    """

    def __init__(self, name: str, common_name: str, err: BaseException) -> None:
        super().__init__(f"issuing {name!r} (CN={common_name!r}) failed: {err}")
        self.name = name
        self.common_name = common_name
        self.__cause__ = err
