"""Разбор и проверка левой части адреса (до @).

Левая часть состоит из имени ящика, необязательного тега после
разделителя (по умолчанию "+") и необязательного комментария в скобках
в начале или в конце: "(work)john.smith+news".

Уровни проверки:

* conventional: слова из букв и цифр, разделённые одиночными . - + ' _
* relaxed: те же символы, но разделители могут идти подряд
* standard: dot-atom и quoted-string из RFC 5322
* redacted: "{40 hex}", хранимый SHA-1 вместо настоящего адреса
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Optional, Tuple

from addrkit.config import Config, build_config, within_size
from addrkit.messages import ErrorDetail
from addrkit.modules.matcher import Rules, glob_match, split_rules
from addrkit.modules.utils.email import munge_text, split_comment
from addrkit.modules.utils.normalize import has_non_ascii

if TYPE_CHECKING:
    from addrkit.modules.host import Host

LOGGER = logging.getLogger("addrkit.local")

STANDARD_MAX_SIZE = 64

# RFC 2142 и распространённые ролевые ящики
BUSINESS_MAILBOXES = ("info", "marketing", "sales", "support")
NETWORK_MAILBOXES = ("abuse", "noc", "security")
SERVICE_MAILBOXES = ("postmaster", "hostmaster", "usenet", "news", "webmaster", "www", "uucp", "ftp")
SYSTEM_MAILBOXES = ("help", "mailer-daemon", "root")
ROLE_MAILBOXES = ("staff", "office", "orders", "billing", "careers", "jobs")
SPECIAL_MAILBOXES = frozenset(
    BUSINESS_MAILBOXES + NETWORK_MAILBOXES + SERVICE_MAILBOXES + SYSTEM_MAILBOXES + ROLE_MAILBOXES
)

CONVENTIONAL_MAILBOX_RE = re.compile(r"^\w+(?:[.\-+'_]\w+)*$")
RELAXED_MAILBOX_RE = re.compile(r"^\w+(?:[.\-+'_]+\w+)*$")
CONVENTIONAL_TAG_RE = re.compile(r"^[\w!'+\-/=.]+$")
RELAXED_TAG_RE = re.compile(r"^[\w.!#$%&'*+\-/=?^`{|}~]+$")
REDACTED_RE = re.compile(r"^\{[0-9a-f]{40}\}$")

_ATEXT = r"[\w!#$%&'*+\-/=?^`{|}~()]+"
_QUOTED = r'"(?:\\["\\ ]|[\x20\x21\x23-\x2f\x3a-\x40\x5b\x5d-\x60\x7b-\x7e]|[^\W_])+"'
_TOKEN = f"(?:{_ATEXT}|{_QUOTED})"
STANDARD_LOCAL_RE = re.compile(rf"^{_TOKEN}(?:\.{_TOKEN})*$")

_QUOTED_LOCAL_RE = re.compile(r'^"(.*)"$', re.DOTALL)
_QUOTED_PAIR_RE = re.compile(r"\\(.)", re.DOTALL)
_RELAX_STRIP_RE = re.compile(r'[ "(),:<>@\[\]\\]')
_NEEDS_QUOTES_RE = re.compile(r'[ "(),:<>@\[\\\]]')
_ESCAPE_RE = re.compile(r'([\\"])')
_ROOT_NAME_RE = re.compile(r"^(.+?)\d+$")

FORMATS = ("conventional", "relaxed", "redacted", "standard", "none")


class Local:
    """Левая часть адреса: mailbox, tag и comment.

    Если передан host, настройки берутся из него: разбор учитывает провайдера,
    известного без DNS, а проверка, размеры и каноническая форма используют
    полные настройки провайдера.
    """

    def __init__(
        self,
        raw: Optional[str],
        config: Optional[Config] = None,
        host: Optional["Host"] = None,
        **overrides: Any,
    ) -> None:
        self.host = host
        self.base_config = host.parse_config if host is not None else build_config(config, **overrides)
        self.original = raw or ""
        self.local = self.original.lower() if self.base_config.local_downcase else self.original
        self.quoted = False
        self.error_detail: Optional[ErrorDetail] = None

        parser = self.base_config.local_parse
        if parser is not None:
            mailbox, tag, comment = parser(self.local)
            LOGGER.debug("Local part %r split by custom parser", self.local)
        else:
            mailbox, tag, comment = self._parse(self.local)
        self.mailbox: str = mailbox or ""
        self.tag: Optional[str] = tag
        self.comment: Optional[str] = comment

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"<Local {self.format()!r}>"

    @property
    def config(self) -> Config:
        """Полные настройки с учётом провайдера хоста."""
        return self.host.config if self.host is not None else self.base_config

    # Разбор

    def _parse(self, raw: str) -> Tuple[str, Optional[str], Optional[str]]:
        match = _QUOTED_LOCAL_RE.match(raw)
        if match:
            self.quoted = True
            raw = _QUOTED_PAIR_RE.sub(r"\1", match.group(1))
        elif self.base_config.local_fix and self.base_config.local_format != "standard":
            raw = raw.replace(" ", "").replace(",", ".")

        raw, comment = split_comment(raw)
        separator = self.base_config.tag_separator
        if separator and separator in raw:
            mailbox, tag = raw.split(separator, 1)
            return mailbox, tag, comment
        return raw, None, comment

    # Представления

    def format(self, form: Optional[str] = None) -> str:
        """Строка левой части в заданной (или настроенной) форме."""
        fmt = form or self.base_config.local_format
        if callable(fmt):
            return fmt(self)
        if fmt in ("conventional", "redacted", "none"):
            return self.conventional()
        if fmt == "relaxed":
            return self.relax()
        if fmt == "standard":
            return self.standard()
        if fmt == "canonical":
            return self.canonical()
        raise ValueError(f"Unknown local format: {fmt!r}")

    def conventional(self) -> str:
        if self.tag is None:
            return self.mailbox
        return f"{self.mailbox}{self.base_config.tag_separator}{self.tag}"

    def canonical(self) -> str:
        """Идентичность ящика у провайдера: без тега, комментария и регистра."""
        mailbox = self.mailbox.lower()
        canonicalize = self.config.mailbox_canonical
        if canonicalize is not None:
            return canonicalize(mailbox)
        return mailbox

    def relax(self) -> str:
        return _RELAX_STRIP_RE.sub("", self.conventional())

    def standard(self) -> str:
        form = self.conventional()
        if self.comment is not None:
            form = f"{form}({self.comment})"
        form = _ESCAPE_RE.sub(r"\\\1", form)
        if _NEEDS_QUOTES_RE.search(form):
            form = f'"{form}"'
        return form

    def munge(self) -> str:
        return munge_text(self.format(), self.base_config.munge_string)

    @property
    def root_name(self) -> str:
        """Имя ящика без завершающих цифр: "user123" -> "user"."""
        match = _ROOT_NAME_RE.match(self.mailbox)
        return match.group(1) if match else self.mailbox

    def is_special(self) -> bool:
        return self.mailbox in SPECIAL_MAILBOXES

    def is_unicode(self) -> bool:
        return has_non_ascii(self.local)

    def is_ascii(self) -> bool:
        return not self.is_unicode()

    def is_redacted(self) -> bool:
        return self.looks_redacted(self.local)

    @staticmethod
    def looks_redacted(value: Optional[str]) -> bool:
        return bool(REDACTED_RE.match(value or ""))

    # Новые разборы

    def _reparse(self, raw: str) -> "Local":
        if self.host is not None:
            return Local(raw, host=self.host)
        return Local(raw, self.base_config)

    def to_conventional(self) -> "Local":
        return self._reparse(self.conventional())

    def to_canonical(self) -> "Local":
        return self._reparse(self.canonical())

    def to_relaxed(self) -> "Local":
        return self._reparse(self.relax())

    # Сопоставление

    def matches(self, rules: Rules) -> Optional[str]:
        """Проверяет только правила вида "glob@"; возвращает совпавшее правило."""
        for rule in split_rules(rules):
            if len(rule) > 1 and rule.endswith("@") and glob_match(rule[:-1], self.local):
                return rule
        return None

    # Проверка

    def is_valid(self, form: Optional[Any] = None) -> bool:
        """Проверяет левую часть; первая ошибка сохраняется в error_detail."""
        self.error_detail = None
        config = self.config

        if config.mailbox_validator is not None:
            # размеры и кодировка проверяются и при собственном валидаторе
            failure = self._check_size() or self._check_encoding()
            if failure is None and not config.mailbox_validator(self.mailbox, self.tag):
                LOGGER.debug("Mailbox %r rejected by mailbox_validator", self.mailbox)
                failure = ("invalid_mailbox", "rejected by mailbox validator")
            return True if failure is None else self._fail(*failure)

        fmt = form or config.local_format
        if callable(fmt):
            failure = self._check_size() or self._check_encoding()
        elif fmt == "none":
            failure = None
        elif fmt in FORMATS and self.is_redacted():
            # скрытый адрес, полученный через redact(), корректен при любом уровне
            failure = None
        elif fmt in FORMATS:
            failure = self._check(fmt)
        else:
            raise ValueError(f"Unknown local format: {fmt!r}")

        if failure is not None:
            return self._fail(*failure)
        return True

    def format_kind(self) -> str:
        """Первый подходящий уровень: conventional, relaxed, redacted, standard или invalid."""
        for kind in ("conventional", "relaxed", "redacted", "standard"):
            if self._check(kind) is None:
                return kind
        return "invalid"

    @property
    def syntax(self) -> str:
        return self.format_kind()

    @property
    def error(self) -> Optional[str]:
        if self.is_valid():
            return None
        return self.error_detail.message

    @property
    def error_kind(self) -> Optional[str]:
        return self.error_detail.kind if self.error_detail else None

    def _fail(self, kind: str, reason: Optional[str] = None) -> bool:
        self.error_detail = ErrorDetail.build(kind, reason, self.config.locale)
        return False

    def _check(self, fmt: str) -> Optional[Tuple[str, Optional[str]]]:
        if fmt == "conventional":
            return self._check_conventional()
        if fmt == "relaxed":
            return self._check_relaxed()
        if fmt == "redacted":
            return None if self.is_redacted() else ("invalid_mailbox", "not a redacted digest")
        return self._check_standard()

    def _check_conventional(self) -> Optional[Tuple[str, Optional[str]]]:
        if self.quoted or self.comment is not None:
            return "invalid_mailbox", "quotes and comments are not conventional"
        if not CONVENTIONAL_MAILBOX_RE.match(self.mailbox):
            return "invalid_mailbox", None
        if self.tag is not None and not CONVENTIONAL_TAG_RE.match(self.tag):
            return "invalid_mailbox", "invalid tag"
        return self._check_size() or self._check_encoding()

    def _check_relaxed(self) -> Optional[Tuple[str, Optional[str]]]:
        if self.quoted or self.comment is not None:
            return "invalid_mailbox", "quotes and comments are not allowed"
        if not RELAXED_MAILBOX_RE.match(self.mailbox):
            return "invalid_mailbox", None
        if self.tag is not None and not RELAXED_TAG_RE.match(self.tag):
            return "invalid_mailbox", "invalid tag"
        return self._check_size() or self._check_encoding()

    def _check_standard(self) -> Optional[Tuple[str, Optional[str]]]:
        if not STANDARD_LOCAL_RE.match(self.local):
            return "invalid_mailbox", None
        return self._check_size() or self._check_encoding()

    def _check_size(self) -> Optional[Tuple[str, Optional[str]]]:
        config = self.config
        if len(self.local) > STANDARD_MAX_SIZE:
            return "local_size_long", None
        if self.host is not None and self.host.is_hosted_service():
            bounds = config.local_private_size
        else:
            bounds = config.local_size
        for limits in (bounds, config.mailbox_size):
            if within_size(limits, len(self.mailbox)):
                continue
            if len(self.mailbox) < limits[0]:
                return "local_size_short", None
            return "local_size_long", None
        return None

    def _check_encoding(self) -> Optional[Tuple[str, Optional[str]]]:
        if self.config.local_encoding == "ascii" and self.is_unicode():
            return "invalid_mailbox", "non-ASCII characters"
        return None
