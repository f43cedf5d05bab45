"""Проверка почтового сервера по SMTP (HELO и RCPT TO).

Проверка не отправляет писем, но частые обращения к чужим серверам могут
привести к блокировке. Используйте её для диагностики, не для массовой
валидации.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from typing import Optional, Tuple

from addrkit.config import Config
from addrkit.modules.utils.email import munge_text, split_local_host

LOGGER = logging.getLogger("addrkit.smtp_probe")


def _mask_email(value: str) -> str:
    """Маскирует адрес для логов."""
    local, domain = split_local_host(value)
    if not domain:
        return munge_text(value, "***")
    return f"{munge_text(local, '***')}@{domain}"


@dataclass(frozen=True)
class ProbeResult:
    """Итог SMTP-проверки. error содержит вид ошибки, reason содержит ответ сервера."""

    ok: bool
    error: Optional[str] = None
    reason: Optional[str] = None


class SmtpProbe:
    """Подключается к серверу и, при необходимости, проверяет получателя командой RCPT TO."""

    def __init__(
        self,
        *,
        helo_name: str = "localhost",
        mail_from: str = "postmaster@localhost",
        timeout: float = 3.0,
        port: int = 25,
    ) -> None:
        self.helo_name = helo_name
        self.mail_from = mail_from
        self.timeout = timeout
        self.port = port

    @classmethod
    def from_config(cls, config: Config) -> "SmtpProbe":
        return cls(
            helo_name=config.smtp_helo_name,
            mail_from=config.smtp_mail_from,
            timeout=config.host_timeout,
        )

    def connect(self, server: str) -> ProbeResult:
        """Проверяет, что сервер принимает соединение и отвечает на HELO."""
        LOGGER.debug("SMTP connect probe to %s:%s", server, self.port)
        try:
            with smtplib.SMTP(server, self.port, timeout=self.timeout) as smtp:
                code, message = smtp.helo(self.helo_name)
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.warning("SMTP server %s is not available: %s", server, exc)
            return ProbeResult(ok=False, error="server_not_available", reason=str(exc))

        if code >= 400:
            reason = self._decode(message)
            LOGGER.warning("SMTP server %s rejected HELO: %s %s", server, code, reason)
            return ProbeResult(ok=False, error="server_not_available", reason=f"{code} {reason}")
        return ProbeResult(ok=True)

    def rcpt(self, server: str, address: str) -> ProbeResult:
        """Проверяет, что сервер согласен принять почту для address."""
        LOGGER.debug("SMTP RCPT probe for %s via %s", _mask_email(address), server)
        try:
            with smtplib.SMTP(server, self.port, timeout=self.timeout) as smtp:
                code, message = self._conversation(smtp, address)
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.warning("SMTP probe for %s failed: %s", _mask_email(address), exc)
            return ProbeResult(ok=False, error="address_unknown", reason=str(exc))

        if code >= 400:
            reason = self._decode(message)
            LOGGER.info("SMTP server %s refused %s: %s %s", server, _mask_email(address), code, reason)
            return ProbeResult(ok=False, error="address_unknown", reason=f"{code} {reason}")
        return ProbeResult(ok=True)

    def _conversation(self, smtp: smtplib.SMTP, address: str) -> Tuple[int, bytes]:
        for step in (lambda: smtp.helo(self.helo_name), lambda: smtp.mail(self.mail_from)):
            code, message = step()
            if code >= 400:
                return code, message
        return smtp.rcpt(address)

    @staticmethod
    def _decode(message: object) -> str:
        if isinstance(message, bytes):
            return message.decode("utf-8", "ignore")
        return str(message)
