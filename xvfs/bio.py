"""Buffer cache of disk blocks kept in most-recently-used order."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import IntFlag

from .disk import MemDisk
from .params import BSIZE, NBUF, PanicError


class BufFlag(IntFlag):
    NONE = 0
    VALID = 0x2
    DIRTY = 0x4


@dataclass(eq=False)
class Buf:
    """A cached copy of one disk block."""

    dev: int = 0
    blockno: int = 0
    flags: BufFlag = BufFlag.NONE
    refcnt: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def locked(self) -> bool:
        return self.lock.locked()


class BufferCache:
    """Fixed pool of buffers; the front of ``bufs`` is most recently used."""

    def __init__(self, disk: MemDisk, nbuf: int = NBUF) -> None:
        self.disk = disk
        self._lock = threading.Lock()
        self.bufs = [Buf() for _ in range(nbuf)]

    def _bget(self, dev: int, blockno: int) -> Buf:
        with self._lock:
            chosen = next(
                (b for b in self.bufs if b.dev == dev and b.blockno == blockno), None
            )
            if chosen is not None:
                chosen.refcnt += 1
            else:
                chosen = next(
                    (b for b in reversed(self.bufs)
                     if b.refcnt == 0 and not b.flags & BufFlag.DIRTY),
                    None,
                )
                if chosen is None:
                    raise PanicError("bget: no buffers")
                chosen.dev, chosen.blockno = dev, blockno
                chosen.flags = BufFlag.NONE
                chosen.refcnt = 1
        chosen.lock.acquire()
        return chosen

    def _iderw(self, b: Buf) -> None:
        if not b.locked:
            raise PanicError("iderw: buf not locked")
        if b.flags & (BufFlag.VALID | BufFlag.DIRTY) == BufFlag.VALID:
            raise PanicError("iderw: nothing to do")
        if b.dev != self.disk.dev:
            raise PanicError(f"iderw: request not for disk {self.disk.dev}")
        if b.flags & BufFlag.DIRTY:
            self.disk.write_block(b.blockno, bytes(b.data))
            b.flags &= ~BufFlag.DIRTY
        else:
            b.data[:] = self.disk.read_block(b.blockno)
        b.flags |= BufFlag.VALID

    def bread(self, dev: int, blockno: int) -> Buf:
        """Return a locked buffer holding the block's contents."""
        b = self._bget(dev, blockno)
        if not b.flags & BufFlag.VALID:
            self._iderw(b)
        return b

    def bwrite(self, b: Buf) -> None:
        if not b.locked:
            raise PanicError("bwrite")
        b.flags |= BufFlag.DIRTY
        self._iderw(b)

    def brelse(self, b: Buf) -> None:
        if not b.locked:
            raise PanicError("brelse")
        b.lock.release()
        with self._lock:
            b.refcnt -= 1
            if b.refcnt == 0:
                self.bufs.remove(b)
                self.bufs.insert(0, b)