"""Короткие функции поверх Address; именованные аргументы переопределяют настройки."""

from __future__ import annotations

from typing import Any, Optional

from addrkit.config import Config
from addrkit.modules.address import Address
from addrkit.modules.matcher import Rules


def new(raw: Optional[str], config: Optional[Config] = None, **overrides: Any) -> Address:
    return Address(raw, config, **overrides)


def is_valid(raw: Optional[str], config: Optional[Config] = None, **overrides: Any) -> bool:
    return new(raw, config, **overrides).is_valid()


def error(raw: Optional[str], config: Optional[Config] = None, **overrides: Any) -> Optional[str]:
    """None для корректного адреса, иначе локализованный текст первой ошибки."""
    return new(raw, config, **overrides).error


def normal(raw: Optional[str], config: Optional[Config] = None, **overrides: Any) -> str:
    return new(raw, config, **overrides).normal


def redact(raw: Optional[str], config: Optional[Config] = None, *, digest: str = "sha1", **overrides: Any) -> str:
    return new(raw, config, **overrides).redact(digest)


def munge(raw: Optional[str], config: Optional[Config] = None, **overrides: Any) -> str:
    return new(raw, config, **overrides).munge()


def canonical(raw: Optional[str], config: Optional[Config] = None, **overrides: Any) -> str:
    return new(raw, config, **overrides).canonical


def new_canonical(raw: Optional[str], config: Optional[Config] = None, **overrides: Any) -> Address:
    return new(canonical(raw, config, **overrides), config, **overrides)


def new_redacted(raw: Optional[str], config: Optional[Config] = None, **overrides: Any) -> Address:
    return new(redact(raw, config, **overrides), config, **overrides)


def reference(raw: Optional[str], config: Optional[Config] = None, *, form: str = "base", **overrides: Any) -> str:
    """MD5 базовой формы адреса (ящик без тега и хост)."""
    return new(raw, config, **overrides).reference(form)


def matches(raw: Optional[str], rules: Rules, config: Optional[Config] = None, **overrides: Any) -> Optional[str]:
    """Первое совпавшее правило или None."""
    return new(raw, config, **overrides).matches(rules)
