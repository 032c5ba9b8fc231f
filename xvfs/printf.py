"""Minimal formatted output understanding %d, %x, %p, %s and %c."""

from __future__ import annotations

_UPPER = "0123456789ABCDEF"
_LOWER = "0123456789abcdef"


def printint(xx: int, base: int, sign: bool, digits: str = _UPPER) -> str:
    """Render a 32-bit integer in ``base``, signed if ``sign``."""
    x = xx & 0xFFFFFFFF
    neg = False
    if sign and x & 0x80000000:
        neg = True
        x = (-x) & 0xFFFFFFFF
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if x == 0:
            break
    if neg:
        out.append("-")
    return "".join(reversed(out))


def _as_str(arg: object) -> str:
    return "(null)" if arg is None else str(arg)


def format_printf(fmt: str, *args: object) -> str:
    """Format as the user-level printf does."""
    out: list[str] = []
    it = iter(args)
    pending = False
    for c in fmt:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        if c == "d":
            out.append(printint(int(next(it)), 10, True))
        elif c in "xp":
            out.append(printint(int(next(it)), 16, False))
        elif c == "s":
            out.append(_as_str(next(it)))
        elif c == "c":
            v = next(it)
            out.append(chr(v & 0xFF) if isinstance(v, int) else str(v))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
        pending = False
    return "".join(out)


def format_cprintf(fmt: str, *args: object) -> str:
    """Format as the kernel console printf does (lower-case hex, no %c)."""
    out: list[str] = []
    it = iter(args)
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, None)
        if c is None:
            break
        if c == "d":
            out.append(printint(int(next(it)), 10, True, _LOWER))
        elif c in "xp":
            out.append(printint(int(next(it)), 16, False, _LOWER))
        elif c == "s":
            out.append(_as_str(next(it)))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)