"""Почтовые серверы (MX) домена, определение провайдера по ним и LRU-кэш."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Generic, Hashable, Iterator, List, Optional, Tuple, TypeVar

from addrkit.config import DEFAULT_PROVIDER, Config, ProviderRegistry, build_config, get_settings
from addrkit.modules.dns_client import DISABLED, FOUND, UNAVAILABLE, DnsClient
from addrkit.modules.matcher import Rules, cidr_match, split_rules

LOGGER = logging.getLogger("addrkit.exchanger")

UNSPECIFIED_IPS = frozenset({"0.0.0.0", "::"})

K = TypeVar("K")
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """Ограниченный LRU-кэш под блокировкой; записи вытесняются только по давности."""

    def __init__(self, maxsize: int = 100) -> None:
        self._maxsize = max(maxsize, 1)
        self._store: "OrderedDict[K, V]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def maxsize(self) -> int:
        return self._maxsize

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            if key not in self._store:
                return None
            # перемещаем в конец, чтобы поддерживать LRU
            self._store.move_to_end(key)
            return self._store[key]

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._insert(key, value)

    def get_or_create(self, key: K, factory: Callable[[], V]) -> V:
        """Атомарно возвращает запись или создаёт её, вытесняя самую давнюю."""
        with self._lock:
            if key in self._store:
                self._store.move_to_end(key)
                return self._store[key]
            value = factory()
            self._insert(key, value)
            return value

    def keys(self) -> List[K]:
        """Ключи от самого давнего к самому свежему."""
        with self._lock:
            return list(self._store)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _insert(self, key: K, value: V) -> None:
        if key in self._store:
            self._store.move_to_end(key)
        elif len(self._store) >= self._maxsize:
            evicted, _ = self._store.popitem(last=False)
            LOGGER.debug("Exchanger cache full, evicting %s", evicted)
        self._store[key] = value


@lru_cache(maxsize=1)
def get_exchanger_cache() -> "LRUCache[Hashable, Exchanger]":
    """Общий для процесса кэш; ёмкость из ADDRKIT_CACHE_SIZE."""
    return LRUCache(get_settings().exchanger_cache_size)


@dataclass(frozen=True)
class MailExchanger:
    """Одна MX-запись: имя сервера, его IP и приоритет."""

    host: str
    ip: Optional[str]
    preference: int


@dataclass(frozen=True)
class ExchangerLookup:
    """Результат поиска MX. unavailable означает сбой сети, а не отсутствие домена."""

    status: str  # found | empty | missing | unavailable | disabled
    records: Tuple[MailExchanger, ...] = ()
    error: Optional[str] = None


class Exchanger:
    """MX-серверы одного хоста; записи запрашиваются лениво и запоминаются."""

    def __init__(
        self,
        host: str,
        config: Optional[Config] = None,
        *,
        dns_client: Optional[DnsClient] = None,
    ) -> None:
        self.host = (host or "").lower()
        self.config = build_config(config)
        self._dns = dns_client or DnsClient.from_config(self.config)
        self._lookup: Optional[ExchangerLookup] = None
        self._lock = threading.Lock()

    @classmethod
    def cached(
        cls,
        host: str,
        config: Optional[Config] = None,
        *,
        dns_client: Optional[DnsClient] = None,
        cache: Optional["LRUCache[Hashable, Exchanger]"] = None,
    ) -> "Exchanger":
        """Экземпляр из LRU-кэша; при промахе создаётся новый.

        Ключ включает настройки, влияющие на запрос (серверы, таймаут, клиент),
        так что разборы с разными настройками не делят ответы. При выключенном
        DNS кэш не используется.
        """
        settings = build_config(config)
        name = (host or "").lower()
        if not settings.dns_enabled:
            return cls(name, settings, dns_client=dns_client)
        store = cache if cache is not None else get_exchanger_cache()
        key = (name, settings.dns_resolvers, settings.dns_timeout, dns_client)
        return store.get_or_create(key, lambda: cls(name, settings, dns_client=dns_client))

    def __repr__(self) -> str:
        status = self._lookup.status if self._lookup else "pending"
        return f"<Exchanger host={self.host!r} status={status}>"

    @property
    def dns_disabled(self) -> bool:
        return not self.config.dns_enabled

    @property
    def looked_up(self) -> bool:
        return self._lookup is not None

    def lookup(self) -> ExchangerLookup:
        """MX-записи хоста с адресами серверов.

        Ответ запоминается, кроме сбоя сети: следующий вызов повторит запрос.
        """
        with self._lock:
            if self._lookup is not None:
                return self._lookup
            result = self._fetch()
            if result.status != UNAVAILABLE:
                self._lookup = result
            return result

    def _fetch(self) -> ExchangerLookup:
        if self.dns_disabled:
            return ExchangerLookup(status=DISABLED)

        answer = self._dns.mx(self.host)
        if not answer.found:
            if answer.unavailable:
                LOGGER.warning("MX lookup for %s unavailable: %s", self.host, answer.error)
            return ExchangerLookup(status=answer.status, error=answer.error)

        records = tuple(
            MailExchanger(host=exchange, ip=self._dns.first_address(exchange), preference=preference)
            for exchange, preference in answer.records
        )
        LOGGER.info("MX for %s: %s", self.host, ", ".join(record.host for record in records) or "<empty>")
        return ExchangerLookup(status=FOUND, records=records)

    @property
    def status(self) -> str:
        return self.lookup().status

    @property
    def records(self) -> Tuple[MailExchanger, ...]:
        return self.lookup().records

    def __iter__(self) -> Iterator[MailExchanger]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def mx_ips(self) -> List[str]:
        """IP почтовых серверов (только разрешившиеся)."""
        return [record.ip for record in self.records if record.ip]

    def accepting_ips(self) -> List[str]:
        """IP, на которые реально можно доставить почту (без 0.0.0.0 и ::)."""
        return [ip for ip in self.mx_ips() if ip not in UNSPECIFIED_IPS]

    def domains(self) -> List[str]:
        """Отсортированные домены MX-серверов, по ним определяется провайдер."""
        from addrkit.modules.host import Host

        names = {
            Host(record.host, self.config.merge(dns_lookup="off")).domain_name or record.host
            for record in self.records
        }
        return sorted(names)

    def provider(self, providers: Optional[ProviderRegistry] = None) -> str:
        """Первый провайдер из providers (или из настроек), чьи exchanger_match совпали с MX."""
        registry = providers if providers is not None else self.config.providers
        for name, rule in registry.named():
            if rule.exchanger_match and self.matches(rule.exchanger_match):
                return name
        return DEFAULT_PROVIDER

    def matches(self, rules: Rules) -> Optional[str]:
        """Правило с "/" сверяется с IP серверов как CIDR, иначе с именем сервера.

        Имя совпадает, если оно равно правилу, оканчивается на ".правило"
        или содержит правило отдельной меткой (yahoodns в mta5.am0.yahoodns.net).
        """
        for rule in split_rules(rules):
            if "/" in rule:
                if self.in_cidr(rule):
                    return rule
            elif any(_host_matches(record.host, rule) for record in self.records):
                return rule
        return None

    def in_cidr(self, cidr: str) -> bool:
        return any(cidr_match(cidr, ip) for ip in self.mx_ips())


def _host_matches(host: str, rule: str) -> bool:
    rule = rule.lower().strip(".")
    if not rule:
        return False
    return host == rule or host.endswith("." + rule) or rule in host.split(".")
