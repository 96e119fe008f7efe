"""Tests for authority and leaf certificate templates."""

from datetime import datetime, timezone

import pytest
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from tlscert.core.errors import TemplateError
from tlscert.core.specs import AuthoritySpec, LeafSpec
from tlscert.core.subject import Subject
from tlscert.core.template import (
    build_authority_template, build_leaf_template, subject_to_name,
)


def _authority(**overrides):
    values = dict(serial=1, valid_for_years=1, subject=Subject(common_name="Test CA", country="US"))
    values.update(overrides)
    return AuthoritySpec(**values)


def _leaf(**overrides):
    values = dict(
        serial=2,
        valid_for_years=1,
        subject=Subject(common_name="test.example.com"),
        dns_names=["test.example.com"],
    )
    values.update(overrides)
    return LeafSpec(**values)


class TestAuthorityTemplate:
    """Self-signed authority templates."""

    def test_ca_flags(self, clock):
        template = build_authority_template(_authority(), clock)

        assert template.is_ca is True
        assert template.key_usage.key_cert_sign is True
        assert template.key_usage.digital_signature is True
        assert template.key_usage.key_encipherment is False
        assert template.extended_key_usage == (
            ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.SERVER_AUTH,
        )
        assert template.dns_names == ()

    def test_validity_window(self, clock, now):
        template = build_authority_template(_authority(valid_for_years=10), clock)

        assert template.not_before == now
        assert template.not_after == now.replace(year=now.year + 10)

    def test_clock_converted_to_utc(self):
        from datetime import timedelta

        plus_two = timezone(timedelta(hours=2))
        template = build_authority_template(
            _authority(), lambda: datetime(2025, 3, 1, 14, 0, tzinfo=plus_two),
        )
        assert template.not_before == datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert template.not_before.utcoffset().total_seconds() == 0

    def test_naive_clock_rejected(self):
        with pytest.raises(TemplateError, match="timezone-aware"):
            build_authority_template(_authority(), lambda: datetime(2025, 3, 1))


class TestLeafTemplate:
    """End-entity templates."""

    def test_leaf_flags(self, clock):
        template = build_leaf_template(_leaf(), clock)

        assert template.is_ca is False
        assert template.key_usage.digital_signature is True
        assert template.key_usage.key_cert_sign is False
        assert ExtendedKeyUsageOID.SERVER_AUTH in template.extended_key_usage

    def test_empty_dns_names_dropped(self, clock):
        """Empty entries are dropped while the order of the rest is kept."""
        template = build_leaf_template(
            _leaf(dns_names=["", "a.example.com", "", "b.example.com"]), clock,
        )
        assert template.dns_names == ("a.example.com", "b.example.com")

    def test_only_empty_dns_names(self, clock):
        template = build_leaf_template(_leaf(dns_names=["", ""]), clock)
        assert template.dns_names == ()

    def test_non_ascii_dns_name_rejected(self, clock):
        with pytest.raises(TemplateError, match="invalid DNS name"):
            build_leaf_template(_leaf(dns_names=["bücher.example"]), clock)


class TestSubjectName:
    """Mapping Subject fields onto X.509 name attributes."""

    def test_empty_fields_absent(self):
        name = subject_to_name(Subject(common_name="Test CA", country="US"))

        assert {attr.oid for attr in name} == {NameOID.COMMON_NAME, NameOID.COUNTRY_NAME}
        assert name.get_attributes_for_oid(NameOID.ORGANIZATION_NAME) == []

    def test_all_fields_present(self):
        subject = Subject(
            common_name="Test CA", country="US", organization="Test Org",
            organizational_unit="Ops", locality="Springfield", province="IL",
            street_address="1 Main St", postal_code="62701", serial_number="42",
        )
        name = subject_to_name(subject)

        assert len(list(name)) == 9
        assert name.get_attributes_for_oid(NameOID.POSTAL_CODE)[0].value == "62701"
        assert name.get_attributes_for_oid(NameOID.SERIAL_NUMBER)[0].value == "42"

    def test_overlong_common_name(self):
        with pytest.raises(TemplateError, match="invalid subject attribute"):
            subject_to_name(Subject(common_name="x" * 65))


class TestRejectedValues:
    """Values that cannot be encoded into a certificate."""

    @pytest.mark.parametrize("serial", [0, -1, 2 ** 159])
    def test_bad_serial(self, serial, clock):
        with pytest.raises(TemplateError, match="serial"):
            build_authority_template(_authority(serial=serial), clock)

    def test_largest_serial_accepted(self, clock):
        template = build_leaf_template(_leaf(serial=2 ** 159 - 1), clock)
        assert template.serial == 2 ** 159 - 1

    @pytest.mark.parametrize("years", [0, -5])
    def test_bad_validity(self, years, clock):
        with pytest.raises(TemplateError, match="at least one year"):
            build_leaf_template(_leaf(valid_for_years=years), clock)

    def test_template_errors_are_value_errors(self, clock):
        with pytest.raises(ValueError):
            build_authority_template(_authority(serial=True), clock)
