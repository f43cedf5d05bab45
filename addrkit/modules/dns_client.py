"""DNS-запросы (MX, A/AAAA, TXT) с явным статусом результата."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

import dns.exception
import dns.resolver

from addrkit.config import Config

LOGGER = logging.getLogger("addrkit.dns")

FOUND = "found"
EMPTY = "empty"
MISSING = "missing"
UNAVAILABLE = "unavailable"
DISABLED = "disabled"


@dataclass(frozen=True)
class DnsAnswer:
    """Ответ на один DNS-запрос."""

    status: str  # found | empty | missing | unavailable | disabled
    records: List[Any] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status == FOUND

    @property
    def unavailable(self) -> bool:
        return self.status == UNAVAILABLE


class DnsClient:
    """Обёртка над dnspython: сначала заданные серверы, затем системный резолвер."""

    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        nameservers: Sequence[str] = (),
        resolver: Optional[dns.resolver.Resolver] = None,
    ) -> None:
        self._timeout = timeout
        self._resolver = resolver
        self._resolvers_order = self._build_resolver_order(nameservers)

    @classmethod
    def from_config(cls, config: Config, resolver: Optional[dns.resolver.Resolver] = None) -> "DnsClient":
        return cls(timeout=config.dns_timeout, nameservers=config.dns_resolvers, resolver=resolver)

    def query(self, name: str, rdtype: str) -> DnsAnswer:
        """Выполняет запрос; NXDOMAIN и пустой ответ отличаются от сбоя сети."""
        if not name:
            return DnsAnswer(status=MISSING)

        last_error: Optional[Exception] = None
        start = time.perf_counter()
        for attempt, nameservers in enumerate(self._resolvers_order, start=1):
            resolver = self._resolver or dns.resolver.Resolver(configure=not nameservers)
            if self._timeout:
                resolver.timeout = self._timeout
                resolver.lifetime = self._timeout
            if nameservers:
                resolver.nameservers = list(nameservers)

            try:
                LOGGER.debug("Resolving %s for %s via %s", rdtype, name, nameservers or "system")
                answers = resolver.resolve(name, rdtype)
            except dns.resolver.NXDOMAIN:
                LOGGER.info("%s lookup for %s: domain does not exist", rdtype, name)
                return DnsAnswer(status=MISSING)
            except dns.resolver.NoAnswer:
                LOGGER.info("%s lookup for %s returned no records", rdtype, name)
                return DnsAnswer(status=EMPTY)
            except (dns.exception.DNSException, OSError) as exc:
                LOGGER.warning("Attempt %d to resolve %s for %s failed: %s", attempt, rdtype, name, exc)
                last_error = exc
                continue

            records = list(answers)
            latency_ms = int((time.perf_counter() - start) * 1000)
            LOGGER.info("Resolved %s for %s (%dms): %d record(s)", rdtype, name, latency_ms, len(records))
            return DnsAnswer(status=FOUND if records else EMPTY, records=records)

        return DnsAnswer(status=UNAVAILABLE, error=str(last_error) if last_error else None)

    def mx(self, name: str) -> DnsAnswer:
        """MX-записи в виде пар (exchanger, preference); нулевой MX "." отбрасывается."""
        answer = self.query(name, "MX")
        if not answer.found:
            return answer
        pairs: List[Tuple[str, int]] = []
        for record in answer.records:
            exchange = str(record.exchange).rstrip(".").lower()
            if exchange:
                pairs.append((exchange, int(getattr(record, "preference", 0))))
        return DnsAnswer(status=FOUND if pairs else EMPTY, records=pairs)

    def addresses(self, name: str) -> DnsAnswer:
        """IP-адреса хоста: сначала A, при их отсутствии AAAA."""
        answer = self.query(name, "A")
        if answer.status == EMPTY:
            answer = self.query(name, "AAAA")
        if not answer.found:
            return answer
        return DnsAnswer(status=FOUND, records=[str(record.address) for record in answer.records])

    def first_address(self, name: str) -> Optional[str]:
        answer = self.addresses(name)
        return answer.records[0] if answer.found else None

    def txt(self, name: str) -> DnsAnswer:
        """TXT-записи; строки одной записи склеиваются."""
        answer = self.query(name, "TXT")
        if not answer.found:
            return answer
        texts: List[str] = []
        for record in answer.records:
            chunks = getattr(record, "strings", None) or ()
            texts.append("".join(
                chunk.decode("utf-8", "ignore") if isinstance(chunk, bytes) else str(chunk)
                for chunk in chunks
            ))
        return DnsAnswer(status=FOUND, records=texts)

    @staticmethod
    def _build_resolver_order(resolvers: Sequence[str]) -> List[Tuple[str, ...]]:
        filtered = [resolver.strip() for resolver in resolvers if resolver.strip()]
        order: List[Tuple[str, ...]] = []
        if filtered:
            order.append(tuple(filtered))
        # последняя попытка: системные настройки
        order.append(tuple())
        return order
