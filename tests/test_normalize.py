"""Тесты вспомогательных функций нормализации."""

from addrkit.modules.utils.email import munge_text, split_comment, split_local_host
from addrkit.modules.utils.normalize import has_non_ascii, to_ascii, to_unicode


def test_to_ascii_encodes_idn() -> None:
    assert to_ascii("å.com") == "xn--5ca.com"
    assert to_ascii("Example.COM") == "example.com"


def test_to_unicode_decodes_punycode() -> None:
    assert to_unicode("xn--5ca.com") == "å.com"
    assert to_unicode("example.com") == "example.com"


def test_has_non_ascii() -> None:
    assert has_non_ascii("пример")
    assert not has_non_ascii("example")


def test_split_local_host_uses_last_at() -> None:
    assert split_local_host('"a@b"@example.com') == ('"a@b"', "example.com")
    assert split_local_host("user") == ("user", "")
    assert split_local_host("") == ("", "")


def test_split_comment_leading_and_trailing() -> None:
    assert split_comment("(work)user") == ("user", "work")
    assert split_comment("user(home)") == ("user", "home")
    assert split_comment("(work)user(home)") == ("user", "home")
    assert split_comment("user") == ("user", None)


def test_munge_text_keeps_two_chars() -> None:
    assert munge_text("mailbox", "*****") == "ma*****"
    assert munge_text("m", "*****") == "m*****"
    assert munge_text("", "*****") == ""
