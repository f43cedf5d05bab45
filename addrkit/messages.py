"""Каталог сообщений об ошибках проверки адреса."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "address_unknown": "Address undeliverable",
        "domain_does_not_accept_email": "This domain is not configured to accept email",
        "domain_invalid": "Invalid Domain Name",
        "domain_no_localhost": "localhost is not allowed for your domain name",
        "domain_unknown": "Domain name not registered",
        "exceeds_size": "Address too long",
        "incomplete_domain": "Domain name is incomplete",
        "invalid_address": "Invalid Email Address",
        "invalid_host": "Invalid Host/Domain Name",
        "invalid_mailbox": "Invalid Mailbox",
        "ip_address_forbidden": "IP Addresses are not allowed",
        "ip_address_no_localhost": "Localhost IP addresses are not allowed",
        "ipv4_address_invalid": "This is not a valid IPv4 address",
        "ipv6_address_invalid": "This is not a valid IPv6 address",
        "local_size_long": "Mailbox name too long",
        "local_size_short": "Mailbox name too short",
        "not_allowed": "Address is not allowed",
        "server_not_available": "The remote email server is not available",
        "possibly_altered": "Invalid SRS Email Address: Possibly altered",
        "too_old": "Invalid SRS Email Address: Too old",
        "signature_unverified": "Invalid BATV Address: Signature unverified",
        "address_expired": "Invalid BATV Address: Address expired",
    },
    "ru": {
        "address_unknown": "Адрес недоступен для доставки",
        "domain_does_not_accept_email": "Домен не настроен на приём почты",
        "domain_invalid": "Некорректное доменное имя",
        "domain_no_localhost": "localhost не допускается в качестве домена",
        "domain_unknown": "Доменное имя не зарегистрировано",
        "exceeds_size": "Слишком длинный адрес",
        "incomplete_domain": "Доменное имя неполное",
        "invalid_address": "Некорректный адрес электронной почты",
        "invalid_host": "Некорректное имя хоста или домена",
        "invalid_mailbox": "Некорректное имя ящика",
        "ip_address_forbidden": "IP-адреса не допускаются",
        "ip_address_no_localhost": "Локальные IP-адреса не допускаются",
        "ipv4_address_invalid": "Некорректный IPv4-адрес",
        "ipv6_address_invalid": "Некорректный IPv6-адрес",
        "local_size_long": "Слишком длинное имя ящика",
        "local_size_short": "Слишком короткое имя ящика",
        "not_allowed": "Адрес не разрешён",
        "server_not_available": "Почтовый сервер недоступен",
    },
}


def error_message(kind: str, locale: str = "en") -> str:
    """Текст ошибки для локали; неизвестный вид ошибки возвращается как есть."""
    catalog = MESSAGES.get(locale) or {}
    return catalog.get(kind) or MESSAGES["en"].get(kind) or kind


@dataclass(frozen=True)
class ErrorDetail:
    """Первая ошибка проверки: вид, локализованный текст и техническая причина."""

    kind: str
    message: str
    reason: Optional[str] = None

    @classmethod
    def build(cls, kind: str, reason: Optional[str] = None, locale: str = "en") -> "ErrorDetail":
        return cls(kind=kind, message=error_message(kind, locale), reason=reason)
