"""Тесты обёртки над dnspython."""

from __future__ import annotations

from types import SimpleNamespace
from typing import List

import dns.exception
import dns.resolver

from addrkit.config import Config
from addrkit.modules.dns_client import DnsClient
from dns_fakes import a, fake_client, mx, txt


class SequenceResolver:
    """Резолвер, который отвечает по очереди; запоминает, какие серверы ему назначили."""

    def __init__(self, responses: List[object]) -> None:
        self._responses = responses
        self.nameservers: List[str] = []
        self.seen_nameservers: List[List[str]] = []
        self.timeout = 0.0
        self.lifetime = 0.0

    def resolve(self, name: str, record_type: str) -> object:
        self.seen_nameservers.append(list(self.nameservers))
        value = self._responses.pop(0)
        if isinstance(value, Exception):
            raise value
        return value


def test_falls_back_to_system_resolver() -> None:
    resolver = SequenceResolver([dns.exception.Timeout(), mx("mx.example.com")])
    client = DnsClient(timeout=0.5, nameservers=("1.1.1.1", " "), resolver=resolver)  # type: ignore[arg-type]

    answer = client.mx("example.com")

    assert answer.found
    assert answer.records == [("mx.example.com", 10)]
    assert resolver.seen_nameservers[0] == ["1.1.1.1"]
    assert resolver.timeout == 0.5


def test_all_resolvers_failing_is_unavailable() -> None:
    resolver = SequenceResolver([dns.exception.Timeout(), OSError("network down")])
    client = DnsClient(nameservers=("1.1.1.1",), resolver=resolver)  # type: ignore[arg-type]

    answer = client.query("example.com", "MX")

    assert answer.status == "unavailable"
    assert answer.unavailable
    assert "network down" in answer.error


def test_nxdomain_and_no_answer() -> None:
    client, _ = fake_client({("empty.example", "MX"): dns.resolver.NoAnswer()})

    assert client.query("gone.example", "MX").status == "missing"
    assert client.query("empty.example", "MX").status == "empty"
    assert client.query("", "MX").status == "missing"


def test_null_mx_is_dropped() -> None:
    client, _ = fake_client({("nomail.example", "MX"): [SimpleNamespace(exchange=".", preference=0)]})

    assert client.mx("nomail.example").status == "empty"


def test_addresses_fall_back_to_aaaa() -> None:
    client, _ = fake_client(
        {
            ("v6.example", "A"): dns.resolver.NoAnswer(),
            ("v6.example", "AAAA"): a("2001:db8::1"),
        }
    )

    assert client.addresses("v6.example").records == ["2001:db8::1"]
    assert client.first_address("v6.example") == "2001:db8::1"
    assert client.first_address("gone.example") is None


def test_txt_joins_strings() -> None:
    client, _ = fake_client(
        {("example.com", "TXT"): [SimpleNamespace(strings=[b"v=spf1 ", b"-all"])] + txt("other")}
    )

    assert client.txt("example.com").records == ["v=spf1 -all", "other"]


def test_from_config() -> None:
    client = DnsClient.from_config(Config(dns_timeout=1.5, dns_resolvers=("8.8.8.8",)))

    assert client._timeout == 1.5
    assert client._resolvers_order == [("8.8.8.8",), ()]
