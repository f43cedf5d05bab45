"""Правила сопоставления адресов: glob, CIDR и списки правил.

Словарь правил общий для Host, Local, Address и Exchanger:

* ``example.com``       точное имя хоста или домена
* ``hotmail.``          регистрационное имя в любой зоне
* ``.org``, ``.co.uk``  зона верхнего уровня (tld или tld2)
* ``*.exampl?.com``     glob по домену, допускается префикс ``@``
* ``google``            имя провайдера
* ``user00*@``          glob по левой части
* ``root@*.com``        glob по адресу целиком
* ``10.9.8.0/24``       CIDR для IP-литералов и IP почтовых серверов
"""

from __future__ import annotations

import ipaddress
import re
from fnmatch import fnmatchcase
from typing import Iterable, List, Optional, Union

Rules = Union[str, Iterable[str]]

_PROVIDER_RULE_RE = re.compile(r"^[\w\-]*$")
_ADDRESS_RULE_RE = re.compile(r".+@.+")


def split_rules(rules: Optional[Rules]) -> List[str]:
    """Строка делится по пробелам, вложенные списки разворачиваются."""
    if rules is None:
        return []
    if isinstance(rules, str):
        return rules.split()
    flat: List[str] = []
    for item in rules:
        flat.extend(split_rules(item))
    return flat


def glob_match(pattern: str, value: Optional[str]) -> bool:
    """Shell-glob без учёта регистра; ``*`` пересекает точки и слэши."""
    if not value:
        return False
    return fnmatchcase(value.lower(), pattern.lower())


def is_provider_rule(rule: str) -> bool:
    return bool(rule) and bool(_PROVIDER_RULE_RE.match(rule))


def is_address_rule(rule: str) -> bool:
    return bool(_ADDRESS_RULE_RE.match(rule))


def cidr_match(rule: str, ip: Optional[str]) -> bool:
    """True, если ip входит в сеть rule. Разные семейства адресов не совпадают никогда."""
    if not ip:
        return False
    try:
        candidate = ipaddress.ip_address(ip)
        network = ipaddress.ip_network(rule, strict=False)
    except ValueError:
        return False
    if candidate.version != network.version:
        return False
    return candidate in network


class Matcher:
    """Проверяет адрес по набору правил; строка правил делится по пробелам."""

    def __init__(self, rules: Optional[Rules] = None) -> None:
        self.rules = [rule.lower() for rule in split_rules(rules)]

    def includes(self, address: object) -> Optional[str]:
        """Первое совпавшее правило или None.

        Принимает строку или Address; строка разбирается без DNS-запросов,
        поэтому правила-провайдеры для строк сверяются только по статическим
        шаблонам хостов.
        """
        from addrkit.modules.address import Address

        if not self.rules:
            return None

        if isinstance(address, Address):
            candidate = address
        else:
            candidate = Address(str(address), dns_lookup="off", host_validation="syntax")
        return candidate.matches(self.rules)

    def __contains__(self, address: object) -> bool:
        return self.includes(address) is not None

    @classmethod
    def check(cls, rules: Rules, address: object) -> Optional[str]:
        return cls(rules).includes(address)
