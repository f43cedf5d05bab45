"""Конфигурация разбора адресов: настройки по умолчанию, правила провайдеров."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields, replace
from functools import lru_cache
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

SizeRange = Tuple[int, int]

DNS_LOOKUP_MODES = ("mx", "a", "off")
HOST_VALIDATION_MODES = ("mx", "a", "connect", "syntax")
DNS_UNAVAILABLE_POLICIES = ("accept", "reject")
DEFAULT_PROVIDER = "default"


def within_size(bounds: Optional[SizeRange], length: int) -> bool:
    """Проверяет длину по включительным границам; None означает без ограничений."""
    if not bounds:
        return True
    low, high = bounds
    return low <= length <= high


class LocalParser(Protocol):
    """Разбирает левую часть адреса в кортеж (mailbox, tag, comment)."""

    def __call__(self, raw: str) -> Tuple[str, Optional[str], Optional[str]]: ...


class LocalFormatter(Protocol):
    """Возвращает строковое представление разобранной левой части."""

    def __call__(self, local: Any) -> str: ...


class MailboxCanonicalizer(Protocol):
    """Приводит имя ящика (в нижнем регистре) к канонической форме провайдера."""

    def __call__(self, mailbox: str) -> str: ...


class MailboxValidator(Protocol):
    """Решает, допустимы ли имя ящика и тег для провайдера."""

    def __call__(self, mailbox: str, tag: Optional[str]) -> bool: ...


class AddressValidator(Protocol):
    """Дополнительная проверка адреса целиком (нормализованная строка)."""

    def __call__(self, address: str) -> bool: ...


@dataclass(frozen=True)
class ProviderRule:
    """Правила почтового провайдера: шаблоны хостов, MX и переопределения."""

    host_match: Tuple[str, ...] = ()
    exchanger_match: Tuple[str, ...] = ()
    local_size: Optional[SizeRange] = None
    local_private_size: Optional[SizeRange] = None
    local_format: Optional[Union[str, LocalFormatter]] = None
    mailbox_canonical: Optional[MailboxCanonicalizer] = None
    mailbox_validator: Optional[MailboxValidator] = None
    tag_separator: Optional[str] = None

    def overrides(self) -> Dict[str, Any]:
        """Поля, которые провайдер переопределяет в Config."""
        result: Dict[str, Any] = {}
        for item in fields(self):
            if item.name in ("host_match", "exchanger_match"):
                continue
            value = getattr(self, item.name)
            if value is not None:
                result[item.name] = value
        return result

    def fallback_to(self, default: "ProviderRule") -> "ProviderRule":
        """Дополняет пустые поля значениями из записи default."""
        values = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None or value == ():
                value = getattr(default, item.name)
            values[item.name] = value
        return ProviderRule(**values)


class ProviderRegistry(Mapping[str, ProviderRule]):
    """Неизменяемая упорядоченная таблица провайдеров с записью default."""

    def __init__(self, rules: Mapping[str, ProviderRule]) -> None:
        self._rules: Dict[str, ProviderRule] = dict(rules)
        self._rules.setdefault(DEFAULT_PROVIDER, ProviderRule())

    def __getitem__(self, name: str) -> ProviderRule:
        return self._rules[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"ProviderRegistry({list(self._rules)!r})"

    @property
    def default(self) -> ProviderRule:
        return self._rules[DEFAULT_PROVIDER]

    def named(self) -> List[Tuple[str, ProviderRule]]:
        """Провайдеры в порядке объявления, без записи default."""
        return [(name, rule) for name, rule in self._rules.items() if name != DEFAULT_PROVIDER]

    def resolve(self, name: Optional[str]) -> ProviderRule:
        """Правило провайдера, дополненное значениями default."""
        rule = self._rules.get(name or DEFAULT_PROVIDER)
        if rule is None:
            return self.default
        return rule.fallback_to(self.default)

    def with_rule(self, name: str, rule: ProviderRule) -> "ProviderRegistry":
        rules = dict(self._rules)
        rules[name] = rule
        return ProviderRegistry(rules)

    def without_rule(self, name: str) -> "ProviderRegistry":
        rules = {key: value for key, value in self._rules.items() if key != name}
        return ProviderRegistry(rules)


_MSN_MAILBOX_RE = re.compile(r"^\w[\-\w]*(?:\.[\-\w]+)*$", re.IGNORECASE)


def _google_canonical(mailbox: str) -> str:
    return mailbox.replace(".", "")


def _msn_mailbox_valid(mailbox: str, tag: Optional[str]) -> bool:
    return bool(_MSN_MAILBOX_RE.match(mailbox))


# AOL и Yahoo с 2018 года принадлежат одной компании, но правила у них разные.
DEFAULT_PROVIDERS = ProviderRegistry(
    {
        "aol": ProviderRule(host_match=("aol.", "compuserve.", "netscape.", "aim.", "cs.")),
        "google": ProviderRule(
            host_match=("gmail.com", "googlemail.com"),
            exchanger_match=("google.com", "googlemail.com"),
            local_size=(3, 64),
            local_private_size=(1, 64),
            mailbox_canonical=_google_canonical,
        ),
        "msn": ProviderRule(
            host_match=("msn.", "hotmail.", "outlook.", "live."),
            exchanger_match=("outlook.com",),
            mailbox_validator=_msn_mailbox_valid,
        ),
        "yahoo": ProviderRule(
            host_match=("yahoo.", "ymail.", "rocketmail."),
            exchanger_match=("yahoodns", "yahoo-inc"),
        ),
        DEFAULT_PROVIDER: ProviderRule(),
    }
)


@dataclass(frozen=True)
class Config:
    """Снимок настроек для одного разбора адреса."""

    dns_lookup: str = "mx"
    dns_timeout: Optional[float] = None
    dns_resolvers: Tuple[str, ...] = ()
    dns_unavailable: str = "accept"
    exchanger_cache_size: int = 100
    sha1_secret: str = ""
    sha256_secret: str = ""
    srs_secret: str = ""
    srs_max_age_days: int = 0
    prvs_days: int = 30
    munge_string: str = "*****"
    locale: str = "en"

    local_downcase: bool = True
    local_fix: bool = False
    local_encoding: str = "ascii"
    local_parse: Optional[LocalParser] = None
    local_format: Union[str, LocalFormatter] = "conventional"
    local_size: Optional[SizeRange] = (1, 64)
    local_private_size: Optional[SizeRange] = None
    tag_separator: str = "+"
    mailbox_size: Optional[SizeRange] = (1, 64)
    mailbox_canonical: Optional[MailboxCanonicalizer] = None
    mailbox_validator: Optional[MailboxValidator] = None

    host_encoding: str = "punycode"
    host_validation: str = "mx"
    host_size: Optional[SizeRange] = (1, 253)
    host_allow_ip: bool = False
    host_remove_spaces: bool = False
    host_local: bool = False
    host_fqdn: bool = True
    host_auto_append: bool = True
    host_timeout: float = 3
    smtp_helo_name: str = "localhost"
    smtp_mail_from: str = "postmaster@localhost"

    address_validation: Union[str, AddressValidator] = "parts"
    address_size: Optional[SizeRange] = (3, 254)
    address_fqdn_domain: Optional[str] = None
    skip_rewrite: bool = False

    providers: ProviderRegistry = field(default_factory=lambda: DEFAULT_PROVIDERS, compare=False)

    def merge(self, **overrides: Any) -> "Config":
        """Новый снимок с переопределёнными значениями."""
        if not overrides:
            return self
        return replace(self, **overrides)

    def for_provider(self, rule: ProviderRule) -> "Config":
        """Накладывает переопределения провайдера (провайдер главнее)."""
        return self.merge(**rule.overrides())

    @property
    def dns_enabled(self) -> bool:
        return self.dns_lookup != "off" and self.host_validation != "syntax"


def _env(key: str, default: str = "") -> str:
    """Возвращает значение переменной окружения или значение по умолчанию."""
    return os.getenv(key, default).strip()


def _env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(key: str, default: int) -> int:
    value = _env(key)
    if not value:
        return default
    return int(value)


def _env_list(key: str, default: Sequence[str] | None = None) -> List[str]:
    value = os.getenv(key)
    if value is None:
        return list(default or [])
    return [chunk.strip() for chunk in re.split(r"[,;\n]", value) if chunk.strip()]


def _env_choice(key: str, default: str, choices: Sequence[str]) -> str:
    value = _env(key, default).lower()
    if value not in choices:
        raise ValueError(f"{key}={value!r}: ожидалось одно из {', '.join(choices)}")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Config:
    """Загружает настройки из окружения один раз и кэширует их."""
    timeout_ms = _env("ADDRKIT_DNS_TIMEOUT_MS")
    return Config(
        dns_lookup=_env_choice("ADDRKIT_DNS_LOOKUP", "mx", DNS_LOOKUP_MODES),
        dns_timeout=max(int(timeout_ms) / 1000.0, 0.1) if timeout_ms else None,
        dns_resolvers=tuple(_env_list("ADDRKIT_DNS_RESOLVERS")),
        dns_unavailable=_env_choice("ADDRKIT_DNS_UNAVAILABLE", "accept", DNS_UNAVAILABLE_POLICIES),
        host_validation=_env_choice("ADDRKIT_HOST_VALIDATION", "mx", HOST_VALIDATION_MODES),
        exchanger_cache_size=max(_env_int("ADDRKIT_CACHE_SIZE", 100), 1),
        sha1_secret=_env("ADDRKIT_SHA1_SECRET"),
        sha256_secret=_env("ADDRKIT_SHA256_SECRET"),
        srs_secret=_env("ADDRKIT_SRS_SECRET"),
        locale=_env("ADDRKIT_LOCALE", "en") or "en",
        local_encoding=_env_choice("ADDRKIT_LOCAL_ENCODING", "ascii", ("ascii", "unicode")),
        local_format=_env("ADDRKIT_LOCAL_FORMAT", "conventional") or "conventional",
        host_allow_ip=_env_bool("ADDRKIT_HOST_ALLOW_IP", False),
        host_local=_env_bool("ADDRKIT_HOST_LOCAL", False),
        address_fqdn_domain=_env("ADDRKIT_FQDN_DOMAIN") or None,
    )


def build_config(config: Optional[Config] = None, **overrides: Any) -> Config:
    """Базовый снимок (переданный или из окружения) плюс переопределения вызывающего."""
    base = config if config is not None else get_settings()
    return base.merge(**overrides)

