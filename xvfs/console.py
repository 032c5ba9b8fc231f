"""Console line discipline: input editing, echo and line-buffered reads."""

from __future__ import annotations

import sys
import threading
from typing import Callable, Iterable, TextIO

INPUT_BUF = 128
BACKSPACE = 0x100


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


_NL = ord("\n")
_CR = ord("\r")
_CTRL_D = _ctrl("D")
_CTRL_H = _ctrl("H")
_CTRL_P = _ctrl("P")
_CTRL_U = _ctrl("U")
_DEL = 0x7F


class Console:
    """Buffers typed characters and hands out complete lines to readers."""

    def __init__(
        self,
        output: TextIO | None = None,
        procdump: Callable[[], None] | None = None,
    ) -> None:
        self.output = output
        self.procdump = procdump
        self.buf = bytearray(INPUT_BUF)
        self.r = 0
        self.w = 0
        self.e = 0
        self._cond = threading.Condition()

    def _putc(self, c: int) -> None:
        out = self.output if self.output is not None else sys.stdout
        out.write("\b \b" if c == BACKSPACE else chr(c))

    def intr(self, chars: str | Iterable[int]) -> None:
        """Handle typed input; a negative code ends the batch."""
        codes = [ord(c) for c in chars] if isinstance(chars, str) else list(chars)
        doprocdump = False
        with self._cond:
            for c in codes:
                if c < 0:
                    break
                if c == _CTRL_P:
                    doprocdump = True
                elif c == _CTRL_U:
                    while self.e != self.w and self.buf[(self.e - 1) % INPUT_BUF] != _NL:
                        self.e -= 1
                        self._putc(BACKSPACE)
                elif c in (_CTRL_H, _DEL):
                    if self.e != self.w:
                        self.e -= 1
                        self._putc(BACKSPACE)
                elif c != 0 and self.e - self.r < INPUT_BUF:
                    if c == _CR:
                        c = _NL
                    self.buf[self.e % INPUT_BUF] = c & 0xFF
                    self.e += 1
                    self._putc(c)
                    if c in (_NL, _CTRL_D) or self.e == self.r + INPUT_BUF:
                        self.w = self.e
                        self._cond.notify_all()
        if doprocdump and self.procdump is not None:
            self.procdump()

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, stopping after a newline; ^D marks end of file."""
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self.r == self.w:
                    self._cond.wait()
                c = self.buf[self.r % INPUT_BUF]
                self.r += 1
                if c == _CTRL_D:
                    if n < target:
                        # Keep ^D so the next read returns nothing.
                        self.r -= 1
                    break
                out.append(c)
                n -= 1
                if c == _NL:
                    break
        return bytes(out)

    def write(self, data: bytes | str) -> int:
        """Echo ``data`` to the output and return its length."""
        raw = data.encode("latin-1") if isinstance(data, str) else bytes(data)
        with self._cond:
            for byte in raw:
                self._putc(byte)
        return len(raw)