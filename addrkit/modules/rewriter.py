"""Перезапись адресов отправителя при пересылке: SRS, BATV-PRVS и VERP.

SRS0=HHH=TT=domain=local@sending-domain
    HHH: первые 4 символа urlsafe base64 от HMAC-SHA1(secret, "TT=domain=local@sending-domain")
    TT:  метка дня, два символа, цикл 210 дней

prvs=KDDDSSSSSS=local@domain
    K: номер ключа, DDD: день истечения (младшие 3 цифры номера дня с 1970,
       не дальше PRVS_MAX_DAYS вперёд),
    SSSSSS: первые 6 hex-символов HMAC-SHA1(secret, K + DDD + адрес)

VERP: bounce-local+recipient=recipient-domain@bounce-domain
"""

from __future__ import annotations

import hmac
import logging
import re
import string
import time
from base64 import urlsafe_b64encode
from dataclasses import dataclass
from typing import Callable, Optional

from Crypto.Hash import HMAC, SHA1

from addrkit.config import Config, build_config
from addrkit.messages import error_message
from addrkit.modules.utils.email import split_local_host

LOGGER = logging.getLogger("addrkit.rewriter")

SRS_RE = re.compile(r"^SRS0=(.{4})=(\w\w)=(.+?)=(.+?)@(.+)$", re.DOTALL)
PRVS_RE = re.compile(r"^prvs=(\d)(\d{3})([0-9a-f]{6})=(.+)$", re.IGNORECASE | re.DOTALL)

SRS_TOKEN_CYCLE = 210
PRVS_MAX_DAYS = 500
_TOKEN_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class RewriteResult:
    """Результат декодирования. address содержит восстановленный адрес даже при ошибке."""

    address: str
    scheme: Optional[str] = None  # srs | prvs | verp
    error: Optional[str] = None  # possibly_altered | too_old | signature_unverified | address_expired

    @property
    def ok(self) -> bool:
        return self.error is None

    def message(self, locale: str = "en") -> Optional[str]:
        return error_message(self.error, locale) if self.error else None


class Rewriter:
    """Кодек SRS, BATV-PRVS и VERP. Состояния не хранит, кроме настроек и часов."""

    def __init__(self, config: Optional[Config] = None, *, clock: Callable[[], float] = time.time) -> None:
        self.config = build_config(config)
        self._clock = clock

    def today(self) -> int:
        """Номер текущего дня с 1970-01-01 (UTC)."""
        return int(self._clock() // SECONDS_PER_DAY)

    def _key(self, message: str) -> bytes:
        secret = self.config.srs_secret
        if not secret:
            LOGGER.warning("SRS secret is not configured, signing with a weak fallback key")
            secret = message[::-1]
        return secret.encode("utf-8")

    def _hmac_sha1(self, message: str) -> bytes:
        mac = HMAC.new(self._key(message), digestmod=SHA1)
        mac.update(message.encode("utf-8"))
        return mac.digest()

    # SRS

    def srs_token(self, day: Optional[int] = None) -> str:
        """Двухсимвольная метка дня; повторяется раз в SRS_TOKEN_CYCLE дней."""
        value = (self.today() if day is None else day) % SRS_TOKEN_CYCLE
        base = len(_TOKEN_ALPHABET)
        return _TOKEN_ALPHABET[value // base] + _TOKEN_ALPHABET[value % base]

    def srs_hash(self, inner: str) -> str:
        return urlsafe_b64encode(self._hmac_sha1(inner)).decode("ascii")[:4]

    def srs(self, local: str, host: str, sending_domain: str) -> str:
        """Кодирует local@host в адрес домена пересылки."""
        inner = f"{self.srs_token()}={host}={local}@{sending_domain}"
        return f"SRS0={self.srs_hash(inner)}={inner}"

    @staticmethod
    def is_srs(email: Optional[str]) -> bool:
        return bool(SRS_RE.match(email or ""))

    def parse_srs(self, email: str) -> RewriteResult:
        """Восстанавливает исходный адрес и сообщает о подделке или истечении срока."""
        match = SRS_RE.match(email or "")
        if not match:
            return RewriteResult(address=email)

        hhh, tt, domain, local, sending_domain = match.groups()
        inner = f"{tt}={domain}={local}@{sending_domain}"
        error = None
        if not hmac.compare_digest(self.srs_hash(inner), hhh):
            error = "possibly_altered"
        elif tt not in self._accepted_tokens():
            error = "too_old"
        if error:
            LOGGER.info("SRS address for %s rejected: %s", domain, error)
        return RewriteResult(address=f"{local}@{domain}", scheme="srs", error=error)

    def _accepted_tokens(self) -> set:
        today = self.today()
        max_age = max(self.config.srs_max_age_days, 0)
        return {self.srs_token(today - offset) for offset in range(max_age + 1)}

    # BATV-PRVS

    def prvs_day(self, days: int) -> str:
        return f"{(self.today() + days) % 1000:03d}"

    def prvs_sign(self, key_id: str, ddd: str, address: str) -> str:
        return self._hmac_sha1(f"{key_id}{ddd}{address}").hex()[:6]

    def batv_prvs(self, address: str, key_id: str = "0", days: Optional[int] = None) -> str:
        """Подписывает адрес отправителя; подпись действительна prvs_days (или days) дней."""
        lifetime = self.config.prvs_days if days is None else days
        ddd = self.prvs_day(min(max(lifetime, 0), PRVS_MAX_DAYS))
        return f"prvs={key_id}{ddd}{self.prvs_sign(key_id, ddd, address)}={address}"

    @staticmethod
    def is_prvs(email: Optional[str]) -> bool:
        return bool(PRVS_RE.match(email or ""))

    def parse_prvs(self, email: str) -> RewriteResult:
        match = PRVS_RE.match(email or "")
        if not match:
            return RewriteResult(address=email)

        key_id, ddd, signature, address = match.groups()
        error = None
        if not hmac.compare_digest(self.prvs_sign(key_id, ddd, address), signature.lower()):
            error = "signature_unverified"
        elif (int(ddd) - self.today()) % 1000 > PRVS_MAX_DAYS:
            # DDD хранит день истечения; прошедшая дата даёт остаток почти 1000
            error = "address_expired"
        return RewriteResult(address=address, scheme="prvs", error=error)

    # VERP

    @staticmethod
    def verp(local: str, host: str, recipient: str, split_char: str = "+", at_char: str = "=") -> str:
        """Встраивает адрес получателя в адрес возврата; @ получателя заменяется на at_char."""
        return f"{local}{split_char}{recipient.replace('@', at_char)}@{host}"

    @staticmethod
    def unverp(email: str, split_char: str = "+", at_char: str = "=") -> RewriteResult:
        """Извлекает адрес получателя из VERP-адреса возврата."""
        local, host = split_local_host(email or "")
        _, separator, encoded = local.partition(split_char)
        if not host or not separator or at_char not in encoded:
            return RewriteResult(address=email)
        mailbox, _, domain = encoded.rpartition(at_char)
        return RewriteResult(address=f"{mailbox}@{domain}", scheme="verp")

    def decode(self, email: str) -> RewriteResult:
        """Декодирует SRS или PRVS; прочие адреса возвращаются как есть."""
        if self.is_srs(email):
            return self.parse_srs(email)
        if self.is_prvs(email):
            return self.parse_prvs(email)
        return RewriteResult(address=email)
