"""Общие фикстуры для тестов."""

from typing import Iterator

import pytest

from addrkit.config import get_settings
from addrkit.modules.exchanger import get_exchanger_cache


@pytest.fixture(autouse=True)
def default_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Отключает DNS по умолчанию и сбрасывает кэши настроек."""
    for key in (
        "ADDRKIT_SHA1_SECRET",
        "ADDRKIT_SHA256_SECRET",
        "ADDRKIT_SRS_SECRET",
        "ADDRKIT_FQDN_DOMAIN",
        "ADDRKIT_LOCALE",
        "ADDRKIT_HOST_ALLOW_IP",
        "ADDRKIT_HOST_LOCAL",
        "ADDRKIT_DNS_RESOLVERS",
        "ADDRKIT_CACHE_SIZE",
        "ADDRKIT_DNS_TIMEOUT_MS",
        "ADDRKIT_DNS_UNAVAILABLE",
        "ADDRKIT_LOCAL_ENCODING",
        "ADDRKIT_LOCAL_FORMAT",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ADDRKIT_DNS_LOOKUP", "off")
    monkeypatch.setenv("ADDRKIT_HOST_VALIDATION", "mx")
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_exchanger_cache.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_exchanger_cache.cache_clear()  # type: ignore[attr-defined]
