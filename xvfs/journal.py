"""Write-ahead redo log grouping file system operations into transactions."""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from typing import Iterator

from .bio import Buf, BufferCache, BufFlag
from .params import BSIZE, LOGSIZE, MAXOPBLOCKS, PanicError, Superblock

_HEADER = struct.Struct(f"<i{LOGSIZE}i")


class Log:
    """On-disk log: a header block followed by logged copies of blocks."""

    def __init__(self, cache: BufferCache, dev: int, sb: Superblock) -> None:
        if _HEADER.size >= BSIZE:
            raise PanicError("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []
        self._cond = threading.Condition()
        self.recover()

    def _install_trans(self) -> None:
        for tail, blockno in enumerate(self.blocks):
            lbuf = self.cache.bread(self.dev, self.start + tail + 1)
            dbuf = self.cache.bread(self.dev, blockno)
            dbuf.data[:] = lbuf.data
            self.cache.bwrite(dbuf)
            self.cache.brelse(lbuf)
            self.cache.brelse(dbuf)

    def _read_head(self) -> None:
        buf = self.cache.bread(self.dev, self.start)
        n, *blocks = _HEADER.unpack_from(buf.data)
        self.blocks = blocks[:n]
        self.cache.brelse(buf)

    def _write_head(self) -> None:
        buf = self.cache.bread(self.dev, self.start)
        n = len(self.blocks)
        struct.pack_into(f"<i{n}i", buf.data, 0, n, *self.blocks)
        self.cache.bwrite(buf)
        self.cache.brelse(buf)

    def recover(self) -> None:
        """Install any committed transaction and clear the log."""
        self._read_head()
        self._install_trans()
        self.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        with self._cond:
            while (
                self.committing
                or len(self.blocks) + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise PanicError("log.committing")
            do_commit = self.outstanding == 0
            if do_commit:
                self.committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            self._commit()
            with self._cond:
                self.committing = False
                self._cond.notify_all()

    @contextmanager
    def transaction(self) -> Iterator["Log"]:
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()

    def _write_log(self) -> None:
        for tail, blockno in enumerate(self.blocks):
            to = self.cache.bread(self.dev, self.start + tail + 1)
            frm = self.cache.bread(self.dev, blockno)
            to.data[:] = frm.data
            self.cache.bwrite(to)
            self.cache.brelse(frm)
            self.cache.brelse(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()
            self._install_trans()
            self.blocks = []
            self._write_head()

    def log_write(self, b: Buf) -> None:
        """Record a modified buffer in the current transaction."""
        if len(self.blocks) >= LOGSIZE or len(self.blocks) >= self.size - 1:
            raise PanicError("too big a transaction")
        if self.outstanding < 1:
            raise PanicError("log_write outside of trans")
        with self._cond:
            if b.blockno not in self.blocks:
                self.blocks.append(b.blockno)
            b.flags |= BufFlag.DIRTY