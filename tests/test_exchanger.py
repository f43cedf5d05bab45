"""Тесты MX-серверов, определения провайдера и LRU-кэша."""

from __future__ import annotations

import threading

import dns.exception
import pytest

from addrkit.config import DEFAULT_PROVIDERS, Config, ProviderRule
from addrkit.modules.exchanger import Exchanger, LRUCache, get_exchanger_cache
from dns_fakes import a, fake_client, mx


def test_lru_evicts_least_recently_used() -> None:
    cache: LRUCache[str, int] = LRUCache(3)
    for index, key in enumerate(["a.com", "b.com", "c.com"]):
        cache.set(key, index)

    assert cache.get("a.com") == 0  # a.com становится самым свежим
    cache.set("d.com", 3)

    assert "b.com" not in cache
    assert cache.keys() == ["c.com", "a.com", "d.com"]
    assert len(cache) == 3


def test_lru_overwrite_does_not_evict() -> None:
    cache: LRUCache[str, int] = LRUCache(2)
    cache.set("a.com", 1)
    cache.set("b.com", 2)
    cache.set("a.com", 10)

    assert cache.keys() == ["b.com", "a.com"]
    assert cache.get("a.com") == 10
    assert cache.get("missing.com") is None


def test_lru_get_or_create_calls_factory_once() -> None:
    cache: LRUCache[str, object] = LRUCache(2)
    calls = []

    def factory() -> object:
        calls.append(1)
        return object()

    first = cache.get_or_create("a.com", factory)
    second = cache.get_or_create("a.com", factory)

    assert first is second
    assert len(calls) == 1


def test_lru_is_safe_under_threads() -> None:
    cache: LRUCache[str, int] = LRUCache(50)

    def worker(offset: int) -> None:
        for index in range(200):
            cache.set(f"host{offset}-{index}.com", index)
            cache.get(f"host{offset}-{index // 2}.com")

    threads = [threading.Thread(target=worker, args=(offset,)) for offset in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(cache) == 50


def test_shared_cache_uses_env_capacity(monkeypatch: pytest.MonkeyPatch) -> None:
    from addrkit.config import get_settings

    monkeypatch.setenv("ADDRKIT_CACHE_SIZE", "5")
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_exchanger_cache.cache_clear()  # type: ignore[attr-defined]

    assert get_exchanger_cache().maxsize == 5
    assert get_exchanger_cache() is get_exchanger_cache()


def test_cached_reuses_instances() -> None:
    cache = LRUCache(2)
    config = Config()

    first = Exchanger.cached("Example.com", config, cache=cache)
    second = Exchanger.cached("example.com", config, cache=cache)
    Exchanger.cached("b.com", config, cache=cache)
    Exchanger.cached("c.com", config, cache=cache)

    assert first is second
    assert len(cache) == 2
    assert Exchanger.cached("example.com", config, cache=cache) is not first


def test_cache_key_includes_lookup_settings() -> None:
    cache = LRUCache(10)

    plain = Exchanger.cached("example.com", Config(), cache=cache)
    custom = Exchanger.cached("example.com", Config(dns_resolvers=("9.9.9.9",)), cache=cache)
    slow = Exchanger.cached("example.com", Config(dns_timeout=5.0), cache=cache)

    assert plain is not custom
    assert plain is not slow
    assert Exchanger.cached("example.com", Config(locale="ru"), cache=cache) is plain


def test_disabled_lookup_is_not_shared() -> None:
    cache = LRUCache(10)
    client, _ = fake_client({("corp.example", "MX"): mx("mx.corp.example"), ("mx.corp.example", "A"): a("192.0.2.7")})

    offline = Exchanger.cached("corp.example", Config(dns_lookup="off"), dns_client=client, cache=cache)
    assert offline.lookup().status == "disabled"
    assert len(cache) == 0

    online = Exchanger.cached("corp.example", Config(), dns_client=client, cache=cache)
    assert online.lookup().status == "found"
    assert online.accepting_ips() == ["192.0.2.7"]


def test_outage_is_retried() -> None:
    answers = {("example.com", "MX"): dns.exception.Timeout()}
    client, resolver = fake_client(answers)
    exchanger = Exchanger("example.com", Config(), dns_client=client)

    assert exchanger.lookup().status == "unavailable"
    assert not exchanger.looked_up

    answers[("example.com", "MX")] = mx("mx.example.com")
    answers[("mx.example.com", "A")] = a("192.0.2.1")
    assert exchanger.lookup().status == "found"
    assert resolver.calls.count(("example.com", "MX")) == 2


def test_provider_uses_callers_registry() -> None:
    client, _ = fake_client({("corp.example", "MX"): mx("mx1.acme-mail.net"), ("mx1.acme-mail.net", "A"): a("192.0.2.9")})
    exchanger = Exchanger("corp.example", Config(), dns_client=client)
    registry = DEFAULT_PROVIDERS.with_rule("acme", ProviderRule(exchanger_match=("acme-mail.net",)))

    assert exchanger.provider() == "default"
    assert exchanger.provider(registry) == "acme"
    assert exchanger.provider() == "default"


def test_lookup_collects_records() -> None:
    client, resolver = fake_client(
        {
            ("example.com", "MX"): mx("mx1.example.com", "mx2.example.com"),
            ("mx1.example.com", "A"): a("192.0.2.1"),
            ("mx2.example.com", "AAAA"): a("2001:db8::25"),
            ("mx2.example.com", "A"): [],
        }
    )
    exchanger = Exchanger("example.com", Config(), dns_client=client)

    assert not exchanger.looked_up
    result = exchanger.lookup()

    assert result.status == "found"
    assert [record.host for record in result.records] == ["mx1.example.com", "mx2.example.com"]
    assert exchanger.mx_ips() == ["192.0.2.1", "2001:db8::25"]
    assert exchanger.lookup() is result
    assert resolver.calls.count(("example.com", "MX")) == 1


def test_lookup_distinguishes_outage_from_missing() -> None:
    client, _ = fake_client({("down.example", "MX"): dns.exception.Timeout()})

    down = Exchanger("down.example", Config(), dns_client=client).lookup()
    missing = Exchanger("gone.example", Config(), dns_client=client).lookup()

    assert down.status == "unavailable"
    assert down.records == ()
    assert missing.status == "missing"
    assert missing.records == ()


def test_lookup_disabled_without_dns() -> None:
    client, resolver = fake_client({})
    exchanger = Exchanger("example.com", Config(dns_lookup="off"), dns_client=client)

    assert exchanger.lookup().status == "disabled"
    assert resolver.calls == []
    assert exchanger.provider() == "default"


@pytest.mark.parametrize(
    "exchange, provider",
    [
        ("aspmx.l.google.com", "google"),
        ("example-com.mail.protection.outlook.com", "msn"),
        ("mta5.am0.yahoodns.net", "yahoo"),
        ("mx.example.com", "default"),
    ],
)
def test_provider_inferred_from_mx(exchange: str, provider: str) -> None:
    client, _ = fake_client({("example.com", "MX"): mx(exchange), (exchange, "A"): a("192.0.2.5")})

    assert Exchanger("example.com", Config(), dns_client=client).provider() == provider


def test_matches_by_cidr_and_suffix() -> None:
    client, _ = fake_client({("example.com", "MX"): mx("mx.example.net"), ("mx.example.net", "A"): a("10.9.8.7")})
    exchanger = Exchanger("example.com", Config(), dns_client=client)

    assert exchanger.matches("10.9.8.0/24") == "10.9.8.0/24"
    assert exchanger.matches("example.net") == "example.net"
    assert exchanger.matches(["2001:db8::/32", "other.net"]) is None
    assert exchanger.in_cidr("10.0.0.0/8")
    assert not exchanger.in_cidr("192.168.0.0/16")


def test_domains_are_registration_domains() -> None:
    client, _ = fake_client(
        {
            ("example.com", "MX"): mx("alt1.aspmx.l.google.com", "aspmx.l.google.com"),
            ("alt1.aspmx.l.google.com", "A"): a("192.0.2.1"),
            ("aspmx.l.google.com", "A"): a("192.0.2.2"),
        }
    )

    assert Exchanger("example.com", Config(), dns_client=client).domains() == ["google.com"]
