import pytest

from xvfs.printf import format_cprintf, format_printf, printint


@pytest.mark.parametrize("n", [0, 7, -42, 123456, -2147483648])
def test_decimal_matches_str(n):
    assert format_printf("%d", n) == str(n)
    assert format_cprintf("%d", n) == str(n)


def test_hex_case():
    assert format_printf("%x", 255) == "FF"
    assert format_cprintf("%x", 255) == "ff"


def test_unsigned_wraps():
    assert printint(-1, 16, False) == "FFFFFFFF"


def test_strings_and_null():
    assert format_printf("%s-%s", "ab", None) == "ab-(null)"


def test_char_and_percent():
    assert format_printf("%c%%", 65) == "A%"
    assert format_cprintf("%c", 65) == "%c"


def test_unknown_sequence_and_trailing():
    assert format_printf("a%qb") == "a%qb"
    assert format_cprintf("x%") == "x"
    assert format_printf("x%") == "x"