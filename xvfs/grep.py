"""Simple grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys
from typing import BinaryIO

_BUFSIZE = 1024


def match(re: str, text: str) -> bool:
    """Search for ``re`` anywhere in ``text``."""
    if re.startswith("^"):
        return matchhere(re[1:], text)
    return any(matchhere(re, text[i:]) for i in range(len(text) + 1))


def matchhere(re: str, text: str) -> bool:
    """Search for ``re`` at the beginning of ``text``."""
    if not re:
        return True
    if len(re) > 1 and re[1] == "*":
        return matchstar(re[0], re[2:], text)
    if re == "$":
        return text == ""
    if text and (re[0] == "." or re[0] == text[0]):
        return matchhere(re[1:], text[1:])
    return False


def matchstar(c: str, re: str, text: str) -> bool:
    """Search for ``c*re`` at the beginning of ``text``."""
    while True:
        if matchhere(re, text):
            return True
        if not text or not (text[0] == c or c == "."):
            return False
        text = text[1:]


def grep(pattern: str, stream: BinaryIO, out: BinaryIO) -> None:
    """Write each newline-terminated line of ``stream`` that matches."""
    buf = b""
    while True:
        chunk = stream.read(_BUFSIZE - 1 - len(buf))
        if not chunk:
            break
        buf += chunk
        *lines, rest = buf.split(b"\n")
        for line in lines:
            if match(pattern, line.decode("latin-1")):
                out.write(line + b"\n")
        # A full buffer without a newline is discarded.
        buf = b"" if not lines else rest


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, files = args[0], args[1:]
    out = sys.stdout.buffer
    if not files:
        grep(pattern, sys.stdin.buffer, out)
        return 0
    for name in files:
        try:
            stream = open(name, "rb")
        except OSError:
            sys.stdout.write(f"grep: cannot open {name}\n")
            return 1
        with stream:
            grep(pattern, stream, out)
    return 0