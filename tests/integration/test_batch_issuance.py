"""Tests for issue_all(): one authority, many concurrently issued leaves."""

import pytest

from tlscert.batch import issue_all
from tlscert.config.loader import Config, parse_config
from tlscert.core.chain import verify_certificate_chain
from tlscert.core.codec import load_certificate
from tlscert.core.errors import ConfigError, InvalidCountryLength, IssuanceError

CONFIG = """
caCert:
  serial: 1
  validForYears: 1
  subject: {commonName: Batch CA, country: US}
certs:
  web:
    serial: 2
    validForYears: 1
    subject: {commonName: web.example.com}
    dnsNames: [web.example.com]
  api:
    serial: 3
    validForYears: 1
    subject: {commonName: api.example.com}
    dnsNames: [api.example.com, ""]
  broken:
    serial: 4
    validForYears: 1
    subject: {commonName: broken.example.com, country: USA}
"""


def test_issue_all_collects_failures(fast_keys, clock):
    """Good leaves are issued and verify; a bad leaf is reported without stopping the rest."""
    result = issue_all(parse_config(CONFIG), clock=clock, max_workers=2)

    assert sorted(result.certs) == ["api", "web"]
    assert not result.ok

    err = result.failures["broken"]
    assert isinstance(err, IssuanceError)
    assert err.name == "broken"
    assert err.common_name == "broken.example.com"
    assert isinstance(err.__cause__, InvalidCountryLength)

    for name, material in result.certs.items():
        verify_certificate_chain(material.certificate, result.ca.certificate, at=clock())
        assert load_certificate(material.certificate).serial_number in (2, 3)


def test_issue_all_clean(fast_keys, clock, now):
    config = parse_config(CONFIG)
    del config.certs["broken"]

    result = issue_all(config, clock=clock)

    assert result.ok
    assert load_certificate(result.ca.certificate).not_valid_before_utc == now


def test_authority_failure_is_fatal(fast_keys):
    config = parse_config(CONFIG.replace("country: US}", "country: U1}"))

    with pytest.raises(IssuanceError) as exc:
        issue_all(config)
    assert exc.value.name == "ca"
    assert exc.value.common_name == "Batch CA"


def test_unvalidated_config_rejected():
    with pytest.raises(ConfigError, match="CA certificate configuration is missing"):
        issue_all(Config(path="inline"))
