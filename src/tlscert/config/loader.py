"""
Load the declarative YAML document describing an authority and its leaves.

Example document:

    caCert:
      serial: 1
      validForYears: 10
      subject:
        country: US
        organization: Example Org
        commonName: Example CA
    certs:
      www.example.test:
        serial: 2
        validForYears: 1
        subject:
          commonName: www.example.test
        dnsNames: [www.example.test, example.test]

Unknown keys are ignored. Subject values are validated later, at issuance.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..core.errors import ConfigError
from ..core.specs import AuthoritySpec, LeafSpec
from ..core.subject import Subject

DEFAULT_CONFIG_PATH = "tls.yaml"
CONFIG_ENV_VAR = "TLSCERT_CONFIG"

# YAML key -> Subject field
_SUBJECT_KEYS = {
    "country": "country",
    "organization": "organization",
    "organizationalUnit": "organizational_unit",
    "locality": "locality",
    "province": "province",
    "streetAddress": "street_address",
    "postalCode": "postal_code",
    "serialNumber": "serial_number",
    "commonName": "common_name",
}


@dataclass
class Config:
    """
    Parsed configuration.

    Attributes:
        path (str): Where the document was loaded from (used in error messages).
        ca_cert (AuthoritySpec | None): The authority to issue.
        certs (dict[str, LeafSpec]): Leaves keyed by their configuration name.
    """
    path: str
    ca_cert: Optional[AuthoritySpec] = None
    certs: Dict[str, LeafSpec] = field(default_factory=dict)

    def validate(self) -> None:
        """
        Raises:
            ConfigError: If the authority is missing or no leaf is configured.
        """
        if self.ca_cert is None:
            raise ConfigError("validation", self.path, "CA certificate configuration is missing")
        if not self.certs:
            raise ConfigError("validation", self.path, "no certificates configured")

    def leaf(self, name: str) -> LeafSpec:
        """Return the leaf configured under name, or raise ConfigError."""
        try:
            return self.certs[name]
        except KeyError:
            known = ", ".join(sorted(self.certs)) or "none"
            raise ConfigError("lookup", self.path, f"no cert named {name!r} (known: {known})") from None


# ---------- field parsing ----------

def _mapping(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{where} must be a mapping")
    return value


def _integer(value: Any, where: str) -> int:
    # YAML may hand back big serials as strings when quoted
    if isinstance(value, bool):
        raise ValueError(f"{where} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"{where} must be an integer")


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _subject(data: Any, where: str) -> Subject:
    raw = _mapping(data, where)
    return Subject(**{attr: _text(raw.get(key)) for key, attr in _SUBJECT_KEYS.items()})


def _authority(data: Any, where: str) -> AuthoritySpec:
    raw = _mapping(data, where)
    return AuthoritySpec(
        serial=_integer(raw.get("serial"), f"{where}.serial"),
        valid_for_years=_integer(raw.get("validForYears"), f"{where}.validForYears"),
        subject=_subject(raw.get("subject"), f"{where}.subject"),
    )


def _leaf(data: Any, where: str) -> LeafSpec:
    raw = _mapping(data, where)
    dns = raw.get("dnsNames") or []
    if not isinstance(dns, list):
        raise ValueError(f"{where}.dnsNames must be a list")
    return LeafSpec(
        serial=_integer(raw.get("serial"), f"{where}.serial"),
        valid_for_years=_integer(raw.get("validForYears"), f"{where}.validForYears"),
        subject=_subject(raw.get("subject"), f"{where}.subject"),
        dns_names=[_text(d) for d in dns],
    )


# ---------- public API ----------

def parse_config(text: str, path: str = "<string>") -> Config:
    """
    Parse and validate a YAML configuration document.

    Args:
        text (str): YAML source.
        path (str, optional): Origin of the text, used in error messages.

    Returns:
        Config: The parsed configuration.

    Raises:
        ConfigError: On YAML errors ("parsing"), wrong shapes or types ("parsing"),
            or a missing authority / empty cert list ("validation").
    """
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError("parsing", path, e) from e

    try:
        root = _mapping(doc, "document")
        ca = root.get("caCert")
        certs = _mapping(root.get("certs"), "certs")
        config = Config(
            path=path,
            ca_cert=_authority(ca, "caCert") if ca is not None else None,
            certs={str(name): _leaf(spec, f"certs.{name}") for name, spec in certs.items()},
        )
    except ValueError as e:
        raise ConfigError("parsing", path, e) from e

    config.validate()
    return config


def resolve_config_path(path: Optional[str] = None) -> Path:
    """
    Pick the configuration file: explicit path, then $TLSCERT_CONFIG, then tls.yaml.

    Raises:
        ConfigError: If the path cannot be made absolute.
    """
    chosen = path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    try:
        return Path(chosen).expanduser().resolve()
    except (OSError, RuntimeError) as e:
        raise ConfigError("path resolution", chosen, e) from e


def load_config(path: Optional[str] = None) -> Config:
    """
    Read and parse the configuration file.

    Args:
        path (str | None, optional): File to load. See resolve_config_path for defaults.

    Returns:
        Config: The parsed, validated configuration.

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    resolved = resolve_config_path(path)
    try:
        text = resolved.read_text()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError("reading", str(resolved), e) from e
    return parse_config(text, str(resolved))
