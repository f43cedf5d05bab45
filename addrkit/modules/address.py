"""Адрес электронной почты целиком: левая часть, хост и производные формы."""

from __future__ import annotations

import hashlib
import logging
from functools import total_ordering
from typing import Any, Optional

from addrkit.config import Config, build_config, within_size
from addrkit.messages import ErrorDetail
from addrkit.modules.dns_client import DnsClient
from addrkit.modules.exchanger import LRUCache
from addrkit.modules.host import Host
from addrkit.modules.local import Local
from addrkit.modules.matcher import Rules, glob_match, is_address_rule, split_rules
from addrkit.modules.rewriter import Rewriter
from addrkit.modules.smtp_probe import SmtpProbe
from addrkit.modules.utils.email import split_local_host

LOGGER = logging.getLogger("addrkit.address")

DIGESTS = ("sha1", "md5", "sha256")
FORMS = ("base", "normal", "canonical", "left", "host_name", "original")


@total_ordering
class Address:
    """Разобранный адрес.

    Строка очищается от пробелов по краям, SRS и PRVS раскодируются (если не
    задан skip_rewrite), затем адрес делится по последнему @. Исходная строка
    остаётся в original.

    Сравнение (==, <) идёт по нормализованной форме, same_as() сравнивает
    канонические и скрытые (redacted) формы.
    """

    def __init__(
        self,
        raw: Optional[str],
        config: Optional[Config] = None,
        *,
        dns_client: Optional[DnsClient] = None,
        cache: Optional[LRUCache] = None,
        **overrides: Any,
    ) -> None:
        self.original = raw or ""
        self.config = build_config(config, **overrides)
        self.error_detail: Optional[ErrorDetail] = None
        self.rewrite_scheme: Optional[str] = None
        self.rewrite_error: Optional[str] = None
        self._dns_client = dns_client
        self._cache = cache

        text = self.original.strip()
        if not self.config.skip_rewrite:
            result = self.rewriter.decode(text)
            text = result.address
            self.rewrite_scheme, self.rewrite_error = result.scheme, result.error
            if result.scheme:
                LOGGER.debug("Decoded %s address, error=%s", result.scheme, result.error)

        left, right = split_local_host(text)
        self.host = Host(right, self.config, dns_client=dns_client, cache=cache)
        self.local = Local(left, host=self.host)

    @property
    def rewriter(self) -> Rewriter:
        return Rewriter(self.config)

    def _sibling(self, raw: str) -> "Address":
        return Address(raw, self.config, dns_client=self._dns_client, cache=self._cache)

    # Части адреса

    @property
    def left(self) -> str:
        return str(self.local)

    @property
    def mailbox(self) -> str:
        return self.local.mailbox

    @property
    def tag(self) -> Optional[str]:
        return self.local.tag

    @property
    def comment(self) -> Optional[str]:
        return self.local.comment

    @property
    def host_name(self) -> str:
        return self.host.host_name

    @property
    def provider(self) -> str:
        return self.host.provider

    # Формы

    @property
    def normal(self) -> str:
        """local@host в настроенных формах; пустая левая часть даёт пустую строку."""
        left = str(self.local)
        if not left:
            return ""
        right = str(self.host)
        if not right:
            return left
        return f"{left}@{right}"

    def __str__(self) -> str:
        return self.normal

    def __repr__(self) -> str:
        return f"<Address {self.normal!r}>"

    @property
    def canonical(self) -> str:
        """Идентичность учётной записи: без тега, комментария и, для Gmail, точек."""
        value = self.local.canonical()
        host = self.host.canonical
        if host.strip():
            value = f"{value}@{host}"
        return value

    def is_canonical(self) -> bool:
        return self.canonical == self.normal

    @property
    def base(self) -> str:
        """Ящик без тега на исходном хосте; IP-литерал остаётся в скобках."""
        host = self.host.name() if self.host.is_ip() else self.host_name
        return f"{self.mailbox}@{host}"

    def redact(self, digest: str = "sha1") -> str:
        """Заменяет левую часть дайджестом канонической формы: "{hex}@host"."""
        if digest not in DIGESTS:
            raise ValueError(f"Unknown digest: {digest!r}")
        if self.is_redacted():
            return self.normal
        value = "{" + getattr(self, digest)("canonical") + "}"
        host = str(self.host)
        if host.strip():
            value = f"{value}@{host}"
        return value

    def is_redacted(self) -> bool:
        return self.local.is_redacted()

    def munge(self) -> str:
        """Форма для показа: "ma*****@do*****"."""
        return f"{self.local.munge()}@{self.host.munge()}"

    def _form(self, form: str) -> str:
        if form not in FORMS:
            raise ValueError(f"Unknown address form: {form!r}")
        return getattr(self, form) or ""

    def reference(self, form: str = "base") -> str:
        """MD5 выбранной формы, общий идентификатор без раскрытия адреса."""
        return self.md5(form)

    def md5(self, form: str = "base") -> str:
        return hashlib.md5(self._form(form).encode("utf-8"), usedforsecurity=False).hexdigest()

    def sha1(self, form: str = "base") -> str:
        payload = self._form(form) + self.config.sha1_secret
        return hashlib.sha1(payload.encode("utf-8"), usedforsecurity=False).hexdigest()

    def sha256(self, form: str = "base") -> str:
        payload = self._form(form) + self.config.sha256_secret
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    # Сравнение

    def _other_normal(self, other: object) -> Optional[str]:
        if isinstance(other, Address):
            return other.normal
        if isinstance(other, str):
            return other
        return None

    def __eq__(self, other: object) -> bool:
        value = self._other_normal(other)
        if value is None:
            return NotImplemented
        return self.normal == value

    def __lt__(self, other: object) -> bool:
        value = self._other_normal(other)
        if value is None:
            return NotImplemented
        return self.normal < value

    def __hash__(self) -> int:
        return hash(self.normal)

    def same_as(self, other: Any) -> bool:
        """Один и тот же ящик: совпадают канонические формы или одна из них скрыта."""
        if not isinstance(other, Address):
            other = self._sibling(str(other))
        return (
            self.canonical == other.canonical
            or self.redact() == other.canonical
            or self.canonical == other.redact()
        )

    def matches(self, rules: Rules) -> Optional[str]:
        """Правила левой части, затем хоста, затем glob по адресу целиком ("root@*.com")."""
        rules = split_rules(rules)
        match = self.local.matches(rules) or self.host.matches(rules)
        if match:
            return match
        for rule in rules:
            if is_address_rule(rule) and glob_match(rule, self.normal):
                return rule
        return None

    # Проверка

    def is_valid(self) -> bool:
        """Проверяет левую часть, хост, длину и address_validation; первая ошибка сохраняется."""
        self.error_detail = None
        if not self.local.is_valid():
            self.error_detail = self.local.error_detail
            return False
        if not self.host.is_valid():
            self.error_detail = self.host.error_detail
            return False
        if not within_size(self.config.address_size, len(self.normal)):
            return self._fail("exceeds_size")

        validation = self.config.address_validation
        if callable(validation):
            if not validation(self.normal):
                return self._fail("not_allowed")
        elif validation == "smtp":
            return self.connect()
        elif validation != "parts":
            raise ValueError(f"Unknown address_validation mode: {validation!r}")
        return True

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
        self.error_detail = ErrorDetail.build(kind, reason, self.config.locale)
        return False

    def connect(self) -> bool:
        """Спрашивает почтовый сервер, примет ли он письмо для адреса. Только для диагностики."""
        server = self.host.mail_server()
        LOGGER.debug("Probing %s via %s", self.munge(), server)
        result = SmtpProbe.from_config(self.config).rcpt(server, self.normal)
        if not result.ok:
            return self._fail(result.error or "address_unknown", result.reason)
        return True

    # Новые разборы

    def replace_local(self, raw_local: str) -> "Address":
        return self._sibling(f"{raw_local}@{self.host.name()}")

    def replace_host(self, raw_host: str) -> "Address":
        return self._sibling(f"{self.local.original}@{raw_host}")

    # Перезапись

    def srs(self, sending_domain: str) -> str:
        return self.rewriter.srs(str(self.local), self.host.name(), sending_domain)

    def verp(self, recipient: str, split_char: str = "+", at_char: str = "=") -> str:
        return self.rewriter.verp(str(self.local), self.host.name(), recipient, split_char, at_char)

    def batv_prvs(self, key_id: str = "0", days: Optional[int] = None) -> str:
        return self.rewriter.batv_prvs(self.normal, key_id=key_id, days=days)
