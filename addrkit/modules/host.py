"""Разбор и проверка правой части адреса (после @)."""

from __future__ import annotations

import ipaddress
import logging
import re
from typing import Any, Dict, Optional

from addrkit.config import DEFAULT_PROVIDER, Config, build_config, within_size
from addrkit.messages import ErrorDetail
from addrkit.modules.dns_client import UNAVAILABLE, DnsClient
from addrkit.modules.exchanger import Exchanger, LRUCache
from addrkit.modules.matcher import Rules, cidr_match, glob_match, is_provider_rule, split_rules
from addrkit.modules.smtp_probe import SmtpProbe
from addrkit.modules.utils.email import munge_text, split_comment
from addrkit.modules.utils.normalize import to_ascii, to_unicode

LOGGER = logging.getLogger("addrkit.host")

DNS_HOST_RE = re.compile(r"^[^\W_]+(?:(?:-{1,2}|\.)[^\W_]+)*$")
IPV6_HOST_RE = re.compile(r"^\[IPv6:(.+)\]$", re.IGNORECASE)
IPV4_HOST_RE = re.compile(r"^\[(\d{1,3}(?:\.\d{1,3}){3})\]$")

# Эвристика зоны: одна метка из 3-10 символов (com, museum), затем "1-3 + 2" (co.uk),
# затем двухбуквенная метка (de). Это не Public Suffix List: example.gouv.fr
# разбирается как регистрационное имя "gouv" в зоне "fr".
_TLD_PATTERNS = (
    re.compile(r"^(.+)\.([A-Za-z0-9_]{3,10})$"),
    re.compile(r"^(.+)\.([A-Za-z0-9_]{1,3}\.[A-Za-z0-9_]{2})$"),
    re.compile(r"^(.+)\.([A-Za-z0-9_]{2})$"),
)
_TXT_PAIR_RE = re.compile(r"\s*;\s*")


class Host:
    """Имя хоста или IP-литерал из адреса.

    После разбора доступны host_name (нижний регистр, без комментария),
    dns_name (punycode), ip_address для "[1.2.3.4]" и "[IPv6:...]", а также
    subdomains, registration_name, tld, tld2 и domain_name.

    Провайдер определяется лениво при первом обращении к provider или config
    и может потребовать DNS-запрос MX.
    """

    def __init__(
        self,
        host_name: Optional[str],
        config: Optional[Config] = None,
        *,
        dns_client: Optional[DnsClient] = None,
        cache: Optional[LRUCache] = None,
        **overrides: Any,
    ) -> None:
        self.original = host_name or ""
        self.base_config = build_config(config, **overrides)
        self.comment: Optional[str] = None
        self.host_name = ""
        self.dns_name = ""
        self.ip_address: Optional[str] = None
        self.subdomains = ""
        self.registration_name = ""
        self.tld = ""
        self.tld2 = ""
        self.domain_name = ""
        self.error_detail: Optional[ErrorDetail] = None
        self.dns_outage: Optional[str] = None

        self._dns_client = dns_client
        self._cache = cache
        self._provider: Optional[str] = None
        self._config: Optional[Config] = None
        self._exchanger: Optional[Exchanger] = None
        self._parse(self.original)

    def __str__(self) -> str:
        return self.name()

    def __repr__(self) -> str:
        return f"<Host {self.name()!r}>"

    # Разбор

    def _parse(self, raw: str) -> None:
        raw, self.comment = split_comment(raw)
        match = IPV6_HOST_RE.match(raw)
        if match:
            self.ip_address = match.group(1)
            return
        match = IPV4_HOST_RE.match(raw)
        if match:
            self.ip_address = match.group(1)
            return
        self._parse_name(raw)

    def _parse_name(self, raw: str) -> None:
        name = raw.lower()
        if self.base_config.host_remove_spaces:
            name = name.replace(" ", "")
        name = self._qualify(name)
        self.host_name = name
        self.dns_name = to_ascii(name)

        if "." not in name:
            self.subdomains = name
            return

        for pattern in _TLD_PATTERNS:
            match = pattern.match(name)
            if match:
                rest, self.tld2 = match.group(1), match.group(2)
                self.tld = self.tld2.rsplit(".", 1)[-1]
                if "." in rest:
                    self.subdomains, self.registration_name = rest.rsplit(".", 1)
                else:
                    self.registration_name = rest
                self.domain_name = f"{self.registration_name}.{self.tld2}"
                return

        LOGGER.debug("Host %r does not look like a known domain shape", name)
        self.domain_name = self.registration_name = name

    def _qualify(self, name: str) -> str:
        """Достраивает голое имя до FQDN по address_fqdn_domain."""
        config = self.base_config
        domain = config.address_fqdn_domain
        blank = not name.strip()
        if not domain:
            return "localhost" if blank and config.host_local else name
        if blank:
            return domain.lower()
        if "." not in name and config.host_auto_append:
            return f"{name}.{domain.lower()}"
        return name

    # Представления

    def name(self) -> str:
        if self.is_ipv4():
            return f"[{self.ip_address}]"
        if self.is_ipv6():
            return f"[IPv6:{self.ip_address}]"
        if self.base_config.host_encoding == "unicode":
            return to_unicode(self.host_name)
        return self.dns_name

    @property
    def canonical(self) -> str:
        return self.dns_name or self.name()

    def munge(self) -> str:
        return munge_text(self.host_name or self.name(), self.base_config.munge_string)

    def parts(self) -> Dict[str, Optional[str]]:
        return {
            "host_name": self.host_name,
            "dns_name": self.dns_name,
            "subdomain": self.subdomains,
            "registration_name": self.registration_name,
            "domain_name": self.domain_name,
            "tld2": self.tld2,
            "tld": self.tld,
            "ip_address": self.ip_address,
        }

    def is_fqdn(self) -> bool:
        return bool(self.registration_name) and not self.ip_address

    def is_ip(self) -> bool:
        return self.ip_address is not None

    def is_ipv4(self) -> bool:
        return self.is_ip() and ":" not in self.ip_address

    def is_ipv6(self) -> bool:
        return self.is_ip() and ":" in self.ip_address

    def is_localhost(self) -> bool:
        if self.ip_address:
            try:
                return ipaddress.ip_address(self.ip_address).is_loopback
            except ValueError:
                return False
        return self.host_name == "localhost"

    # Провайдер

    @property
    def provider(self) -> str:
        if self._provider is None:
            self._provider = self._find_provider()
            LOGGER.debug("Host %s resolved to provider %s", self.dns_name or self.name(), self._provider)
        return self._provider

    @property
    def config(self) -> Config:
        """Настройки с переопределениями найденного провайдера."""
        if self._config is None:
            rule = self.base_config.providers.resolve(self.provider)
            self._config = self.base_config.for_provider(rule)
        return self._config

    @property
    def exchanger(self) -> Exchanger:
        if self._exchanger is None:
            self._exchanger = Exchanger.cached(
                self.dns_name,
                self.base_config,
                dns_client=self._dns_client,
                cache=self._cache,
            )
        return self._exchanger

    @property
    def parse_config(self) -> Config:
        """Настройки для разбора левой части: провайдер учитывается, только если он известен без DNS."""
        if self._provider is not None:
            return self.config
        name = self.static_provider()
        if name is None:
            return self.base_config
        return self.base_config.for_provider(self.base_config.providers.resolve(name))

    def static_provider(self) -> Optional[str]:
        """Провайдер по шаблонам host_match, без сетевых запросов."""
        if self.ip_address or not self.registration_name:
            return None
        for name, rule in self.base_config.providers.named():
            if rule.host_match and self._match(rule.host_match, with_provider=False):
                return name
        return None

    def _find_provider(self) -> str:
        if self.ip_address or not self.registration_name:
            return DEFAULT_PROVIDER

        name = self.static_provider()
        if name is not None:
            return name
        if self.base_config.dns_enabled:
            return self.exchanger.provider(self.base_config.providers)
        return DEFAULT_PROVIDER

    def is_hosted_service(self) -> bool:
        """True для собственного домена, обслуживаемого провайдером (а не gmail.com)."""
        if not self.registration_name:
            return False
        rule = self.base_config.providers.get(self.provider)
        if rule is None or not rule.host_match:
            return False
        return self._match(rule.host_match, with_provider=False) is None

    # Сопоставление

    def matches(self, rules: Rules) -> Optional[str]:
        """Первое совпавшее правило или None (см. словарь правил в matcher)."""
        return self._match(rules, with_provider=True)

    def _match(self, rules: Rules, *, with_provider: bool) -> Optional[str]:
        for rule in split_rules(rules):
            lowered = rule.lower()
            if lowered and lowered in (self.domain_name, self.dns_name):
                return rule
            if self.registration_name and lowered == f"{self.registration_name}.":
                return rule
            if self._tld_matches(lowered):
                return rule
            if self._domain_matches(lowered):
                return rule
            if with_provider and is_provider_rule(lowered) and self.provider == lowered:
                return rule
            if self._ip_matches(lowered):
                return rule
        return None

    def _tld_matches(self, rule: str) -> bool:
        if not rule.startswith(".") or len(rule) < 2:
            return False
        suffix = rule[1:]
        return bool(self.tld) and suffix in (self.tld, self.tld2)

    def _domain_matches(self, rule: str) -> bool:
        pattern = rule[1:] if rule.startswith("@") else rule
        if not pattern:
            return False
        return glob_match(pattern, self.domain_name) or glob_match(pattern, self.dns_name)

    def _ip_matches(self, rule: str) -> bool:
        if not self.ip_address:
            return False
        if "/" not in rule:
            return rule == self.ip_address.lower()
        return cidr_match(rule, self.ip_address)

    # DNS

    def _dns(self) -> DnsClient:
        if self._dns_client is None:
            self._dns_client = DnsClient.from_config(self.base_config)
        return self._dns_client

    def txt(self, alternate_host: Optional[str] = None) -> Optional[str]:
        """Все TXT-записи имени через пробел; None, если записей нет или DNS выключен."""
        name = alternate_host or self.dns_name
        if not name or self.base_config.dns_lookup == "off":
            return None
        answer = self._dns().txt(name)
        if not answer.found:
            return None
        return " ".join(answer.records)

    def txt_hash(self, alternate_host: Optional[str] = None) -> Dict[str, str]:
        """Разбирает TXT вида "k1=v1; k2=v2" в словарь."""
        fields: Dict[str, str] = {}
        record = self.txt(alternate_host)
        if not record:
            return fields
        for pair in _TXT_PAIR_RE.split(record.strip()):
            if not pair:
                continue
            key, _, value = pair.partition("=")
            fields[key.strip()] = value.strip()
        return fields

    def dmarc(self) -> Dict[str, str]:
        """Политика DMARC домена из TXT-записи _dmarc.<домен>."""
        if not self.dns_name:
            return {}
        return self.txt_hash(f"_dmarc.{self.dns_name}")

    # Проверка

    def is_valid(self) -> bool:
        """Проверяет хост по host_validation; первая ошибка сохраняется в error_detail."""
        self.error_detail = None
        self.dns_outage = None
        config = self.base_config

        if self.ip_address:
            return self._valid_ip()
        if not self._valid_format():
            return False

        mode = config.host_validation
        if mode == "syntax" or config.dns_lookup == "off":
            return True
        if mode == "connect":
            return self._valid_mx() and self._connect()
        if mode == "a" or config.dns_lookup == "a":
            return self._valid_dns()
        if mode == "mx":
            return self._valid_mx()
        raise ValueError(f"Unknown host_validation mode: {mode!r}")

    @property
    def error(self) -> Optional[str]:
        if self.is_valid():
            return None
        return self.error_detail.message

    @property
    def error_kind(self) -> Optional[str]:
        return self.error_detail.kind if self.error_detail else None

    @property
    def reason(self) -> Optional[str]:
        return self.error_detail.reason if self.error_detail else None

    def _fail(self, kind: str, reason: Optional[str] = None) -> bool:
        self.error_detail = ErrorDetail.build(kind, reason, self.base_config.locale)
        return False

    def _valid_ip(self) -> bool:
        config = self.base_config
        if not config.host_allow_ip:
            return self._fail("ip_address_forbidden")
        try:
            if self.is_ipv6():
                ipaddress.IPv6Address(self.ip_address)
            else:
                ipaddress.IPv4Address(self.ip_address)
        except ValueError as exc:
            kind = "ipv6_address_invalid" if self.is_ipv6() else "ipv4_address_invalid"
            return self._fail(kind, str(exc))
        if self.is_localhost() and not config.host_local:
            return self._fail("ip_address_no_localhost")
        return True

    def _valid_format(self) -> bool:
        config = self.base_config
        if not self.host_name or not DNS_HOST_RE.match(self.host_name):
            return self._fail("domain_invalid")
        if not within_size(config.host_size, len(self.dns_name)):
            return self._fail("domain_invalid", f"host name is {len(self.dns_name)} characters")
        if self.is_localhost():
            return True if config.host_local else self._fail("domain_no_localhost")
        if "." not in self.host_name and config.host_fqdn:
            return self._fail("incomplete_domain")
        return True

    def _valid_dns(self) -> bool:
        answer = self._dns().addresses(self.dns_name)
        if answer.found:
            return True
        if answer.status == UNAVAILABLE:
            return self._outage(answer.error)
        return self._fail("domain_unknown")

    def _valid_mx(self) -> bool:
        lookup = self.exchanger.lookup()
        if lookup.status == UNAVAILABLE:
            return self._outage(lookup.error)
        if self.exchanger.accepting_ips():
            return True

        answer = self._dns().addresses(self.dns_name)
        if answer.found:
            return self._fail("domain_does_not_accept_email")
        if answer.status == UNAVAILABLE:
            return self._outage(answer.error)
        return self._fail("domain_unknown")

    def _outage(self, reason: Optional[str]) -> bool:
        """Сбой DNS не делает адрес недействительным, если dns_unavailable=accept."""
        reason = reason or "DNS unavailable"
        if self.base_config.dns_unavailable == "reject":
            return self._fail("domain_unknown", reason)
        LOGGER.warning("DNS unavailable for %s, accepting host unverified: %s", self.dns_name, reason)
        self.dns_outage = reason
        return True

    def mail_server(self) -> str:
        """Сервер для SMTP-проверки: MX с наименьшим приоритетом или сам хост."""
        records = [record for record in self.exchanger.records if record.ip]
        if records:
            return min(records, key=lambda record: record.preference).host
        return self.dns_name or self.ip_address or ""

    def _connect(self) -> bool:
        result = SmtpProbe.from_config(self.base_config).connect(self.mail_server())
        if not result.ok:
            return self._fail(result.error or "server_not_available", result.reason)
        return True
