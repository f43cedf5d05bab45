"""Вспомогательные операции над строкой адреса."""

from __future__ import annotations

import re
from typing import Optional, Tuple

_LOCAL_HOST_RE = re.compile(r"^(.+)@(.+)$", re.DOTALL)
_LEADING_COMMENT_RE = re.compile(r"^\((.+?)\)(.+)$", re.DOTALL)
_TRAILING_COMMENT_RE = re.compile(r"^(.+)\((.+?)\)$", re.DOTALL)
_MUNGE_RE = re.compile(r"^(.{1,2}).*$", re.DOTALL)


def split_local_host(address: str) -> Tuple[str, str]:
    """Делит адрес по последнему @; без @ всё считается левой частью."""
    match = _LOCAL_HOST_RE.match(address or "")
    if match:
        return match.group(1), match.group(2)
    return address or "", ""


def split_comment(raw: str) -> Tuple[str, Optional[str]]:
    """Отделяет "(comment)value" или "value(comment)"; при двух комментариях побеждает последний."""
    comment: Optional[str] = None
    match = _LEADING_COMMENT_RE.match(raw)
    if match:
        comment, raw = match.group(1), match.group(2)
    match = _TRAILING_COMMENT_RE.match(raw)
    if match:
        raw, comment = match.group(1), match.group(2)
    return raw, comment


def munge_text(value: str, placeholder: str) -> str:
    """Оставляет первые 1-2 символа и заменяет остаток заглушкой: "ma*****"."""
    return _MUNGE_RE.sub(lambda m: m.group(1) + placeholder, value or "")
