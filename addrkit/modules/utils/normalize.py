"""Нормализация доменных имён: punycode и обратно."""

from __future__ import annotations

import logging
import re

LOGGER = logging.getLogger("addrkit.normalize")

_NON_ASCII_RE = re.compile(r"[^\x00-\x7f]")


def has_non_ascii(value: str) -> bool:
    """True, если в строке есть символы за пределами Basic Latin."""
    return bool(_NON_ASCII_RE.search(value or ""))


def to_ascii(domain: str) -> str:
    """Кодирует IDN в punycode (xn--...), ASCII-имена возвращает без изменений."""
    candidate = (domain or "").strip().lower()
    if not candidate or not has_non_ascii(candidate):
        return candidate

    try:
        return candidate.encode("idna").decode("ascii")
    except UnicodeError as exc:
        LOGGER.debug("Не удалось закодировать %r в punycode: %s", candidate, exc)
        return candidate


def to_unicode(domain: str) -> str:
    """Раскодирует метки xn-- обратно в Unicode для отображения."""
    candidate = (domain or "").strip().lower()
    if "xn--" not in candidate:
        return candidate

    try:
        return candidate.encode("ascii").decode("idna")
    except UnicodeError as exc:
        LOGGER.debug("Не удалось раскодировать %r из punycode: %s", candidate, exc)
        return candidate
