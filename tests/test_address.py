"""Тесты адреса целиком: формы, дайджесты, сравнение и проверка."""

import logging
import time

import pytest

from addrkit.config import Config
from addrkit.modules.address import Address
from addrkit.modules.rewriter import Rewriter

USER_SHA1 = "63a710569261a24b3766275b7000ce8d7b32e2f7"
USER_MD5 = "b58996c504c5638798eb6b511e6f49af"


def make(raw, **overrides) -> Address:
    return Address(raw, Config(dns_lookup="off", **overrides))


def test_normal_and_canonical_forms() -> None:
    address = make("  User+tag@Example.com ")

    assert address.normal == "user+tag@example.com"
    assert str(address) == "user+tag@example.com"
    assert address.canonical == "user@example.com"
    assert address.base == "user@example.com"
    assert address.mailbox == "user"
    assert address.tag == "tag"
    assert address.original == "  User+tag@Example.com "
    assert not address.is_canonical()
    assert make("user@example.com").is_canonical()


def test_gmail_canonical_removes_dots() -> None:
    address = make("First.Last+tag@gmail.com")

    assert address.provider == "google"
    assert address.normal == "first.last+tag@gmail.com"
    assert address.canonical == "firstlast@gmail.com"


def test_empty_address() -> None:
    address = make("")

    assert address.normal == ""
    assert address.canonical == ""
    assert not address.is_valid()
    assert address.redact() == "{da39a3ee5e6b4b0d3255bfef95601890afd80709}"
    assert make(None).normal == ""


@pytest.mark.parametrize(
    "raw",
    ["User+tag@Example.com", "First.Last@gmail.com", "user@[10.0.0.1]", "(c)john@example.org", "å@å.com"],
)
def test_normal_is_idempotent(raw: str) -> None:
    once = make(raw, local_encoding="unicode").normal

    assert make(once, local_encoding="unicode").normal == once


def test_ip_literal_forbidden() -> None:
    address = make("user@[127.0.0.1]")

    assert not address.is_valid()
    assert address.error_kind == "ip_address_forbidden"
    assert address.error == "IP Addresses are not allowed"
    assert make("user@[127.0.0.1]", locale="ru").error == "IP-адреса не допускаются"


def test_valid_address_has_no_error() -> None:
    address = make("user@example.com")

    assert address.is_valid()
    assert address.error is None
    assert address.error_kind is None


def test_local_error_comes_first() -> None:
    address = make("first..last@[127.0.0.1]")

    assert not address.is_valid()
    assert address.error_kind == "invalid_mailbox"


def test_exceeds_size() -> None:
    long_host = ".".join(["a" * 63, "b" * 63, "c" * 63, "com"])
    address = make("x" * 64 + "@" + long_host)

    assert not address.is_valid()
    assert address.error_kind == "exceeds_size"
    assert not make("user@example.com", address_size=(3, 10)).is_valid()


def test_custom_address_validator() -> None:
    validator = lambda normal: not normal.startswith("spam")  # noqa: E731

    assert make("user@example.com", address_validation=validator).is_valid()

    rejected = make("spam@example.com", address_validation=validator)
    assert not rejected.is_valid()
    assert rejected.error_kind == "not_allowed"


def test_unknown_validation_mode_raises() -> None:
    with pytest.raises(ValueError):
        make("user@example.com", address_validation="bogus").is_valid()


def test_redact_uses_canonical_sha1() -> None:
    redacted = make("User+tag@example.com").redact()

    assert redacted == "{" + USER_SHA1 + "}@example.com"
    assert make(redacted).redact() == redacted
    assert make(redacted).is_redacted()
    assert make(redacted).is_valid()


def test_redact_digests_and_secret() -> None:
    address = make("user@example.com")

    assert address.redact("md5") == "{" + USER_MD5 + "}@example.com"
    assert len(address.redact("sha256")) == 64 + 2 + len("@example.com")
    assert make("user@example.com", sha1_secret="pepper").redact() != address.redact()
    with pytest.raises(ValueError):
        address.redact("crc32")


def test_same_as_redacted() -> None:
    address = make("User+tag@example.com")

    assert address.same_as("{" + USER_SHA1 + "}@example.com")
    assert address.same_as(make("user+other@example.com"))
    assert not address.same_as("someone@example.com")


def test_reference_is_md5_of_base() -> None:
    assert make("user@example.com").reference() == USER_MD5
    assert make("User+tag@Example.com").reference() == USER_MD5
    assert make("user@example.com").reference("normal") == USER_MD5
    with pytest.raises(ValueError):
        make("user@example.com").reference("bogus")


def test_munge() -> None:
    assert make("user@example.com").munge() == "us*****@ex*****"


def test_equality_ordering_and_hash() -> None:
    first = make("User@Example.com")
    second = make("user@example.com")

    assert first == second
    assert first == "user@example.com"
    assert hash(first) == hash(second)
    assert len({first, second}) == 1
    assert sorted([make("b@example.com"), make("a@example.com")])[0].normal == "a@example.com"
    assert first != 42


def test_matches_address_glob() -> None:
    address = make("user01+tag@gmail.com")

    assert address.matches("user*@gmail*") == "user*@gmail*"
    assert address.matches("user0*@") == "user0*@"
    assert address.matches(["yahoo", "google"]) == "google"
    assert address.matches("root@*.com") is None


def test_replace_parts() -> None:
    address = make("user+tag@example.com")

    assert address.replace_local("Jane").normal == "jane@example.com"
    assert address.replace_host("Example.ORG").normal == "user+tag@example.org"
    assert address.normal == "user+tag@example.com"


def test_srs_input_is_decoded() -> None:
    config = Config(dns_lookup="off", srs_secret="s3cret")
    encoded = Rewriter(config, clock=time.time).srs("user", "example.com", "forwarder.net")

    address = Address(encoded, config)

    assert address.rewrite_scheme == "srs"
    assert address.rewrite_error is None
    assert address.normal == "user@example.com"
    assert address.original == encoded
    assert Address(encoded, config, skip_rewrite=True).rewrite_scheme is None


def test_prvs_input_is_decoded() -> None:
    config = Config(dns_lookup="off", srs_secret="s3cret")
    signed = make("user@example.com", srs_secret="s3cret").batv_prvs()

    address = Address(signed, config)

    assert address.rewrite_scheme == "prvs"
    assert address.normal == "user@example.com"


def test_forwarding_helpers() -> None:
    address = make("user@example.com", srs_secret="s3cret")

    assert address.srs("forwarder.net").endswith("=example.com=user@forwarder.net")
    assert address.verp("jane@example.org") == "user+jane=example.org@example.com"


def test_ip_literal_base_keeps_brackets() -> None:
    first = make("User+tag@[1.2.3.4]", host_allow_ip=True)
    second = make("user@[5.6.7.8]", host_allow_ip=True)

    assert first.base == "user@[1.2.3.4]"
    assert first.reference() != second.reference()
    assert not first.same_as(second)


def test_verp_custom_at_char() -> None:
    address = make("bounces@lists.example.org")

    assert address.verp("jane@example.com", at_char="%") == "bounces+jane%example.com@lists.example.org"
    assert address.verp("jane@example.com", "-", "%") == "bounces-jane%example.com@lists.example.org"


def test_decoded_input_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    config = Config(dns_lookup="off", srs_secret="s3cret")
    encoded = Rewriter(config, clock=time.time).srs("user", "example.com", "forwarder.net")
    caplog.set_level(logging.DEBUG, logger="addrkit.address")

    Address(encoded, config)

    assert "Decoded srs address" in caplog.text
