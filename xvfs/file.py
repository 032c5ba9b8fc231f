"""Open files: a shared table of pipe and inode file objects."""

from __future__ import annotations

import errno
import threading
from dataclasses import dataclass
from enum import Enum

from .fs import FileSystem, Inode
from .params import BSIZE, MAXOPBLOCKS, NFILE, PanicError, Stat

PIPESIZE = 512


class FileType(Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


class Pipe:
    """A bounded byte channel between a reader and a writer."""

    def __init__(self) -> None:
        self.data = bytearray(PIPESIZE)
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True
        self._cond = threading.Condition()

    def write(self, data: bytes) -> int:
        """Write all of ``data``, waiting while the pipe is full."""
        data = bytes(data)
        with self._cond:
            for byte in data:
                while self.nwrite == self.nread + PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipeError("pipe read end closed")
                    self._cond.notify_all()
                    self._cond.wait()
                self.data[self.nwrite % PIPESIZE] = byte
                self.nwrite += 1
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, waiting while empty and the writer is open."""
        with self._cond:
            while self.nread == self.nwrite and self.writeopen:
                self._cond.wait()
            out = bytearray()
            while len(out) < n and self.nread != self.nwrite:
                out.append(self.data[self.nread % PIPESIZE])
                self.nread += 1
            self._cond.notify_all()
        return bytes(out)

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()


@dataclass(eq=False)
class File:
    """One open file: a pipe end or an inode with an offset."""

    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """System-wide table of open files."""

    def __init__(self, fs: FileSystem | None, nfile: int = NFILE) -> None:
        self.fs = fs
        self.files = [File() for _ in range(nfile)]
        self._lock = threading.Lock()

    def alloc(self) -> File:
        """Claim a free file structure."""
        with self._lock:
            for f in self.files:
                if f.ref == 0:
                    f.ref = 1
                    return f
        raise OSError(errno.ENFILE, "file table full")

    def dup(self, f: File) -> File:
        with self._lock:
            if f.ref < 1:
                raise PanicError("filedup")
            f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; release the pipe end or inode on the last one."""
        with self._lock:
            if f.ref < 1:
                raise PanicError("fileclose")
            f.ref -= 1
            if f.ref > 0:
                return
            kind, pipe, ip, writable = f.type, f.pipe, f.ip, f.writable
            f.type = FileType.NONE
            f.pipe = None
            f.ip = None
            f.readable = f.writable = False
            f.off = 0
        if kind is FileType.PIPE:
            pipe.close(writable)
        elif kind is FileType.INODE:
            with self.fs.log.transaction():
                self.fs.iput(ip)

    def stat(self, f: File) -> Stat:
        if f.type is not FileType.INODE:
            raise OSError(errno.EBADF, "not an inode file")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stati(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f: File, n: int) -> bytes:
        if not f.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if f.type is FileType.PIPE:
            return f.pipe.read(n)
        if f.type is FileType.INODE:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        raise PanicError("fileread")

    def write(self, f: File, data: bytes) -> int:
        if not f.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        data = bytes(data)
        if f.type is FileType.PIPE:
            return f.pipe.write(data)
        if f.type is FileType.INODE:
            # Keep each transaction within the log: inode, indirect block,
            # allocation blocks and slop for unaligned writes.
            limit = ((MAXOPBLOCKS - 1 - 1 - 2) // 2) * BSIZE
            written = 0
            while written < len(data):
                chunk = data[written:written + limit]
                with self.fs.log.transaction():
                    self.fs.ilock(f.ip)
                    try:
                        r = self.fs.writei(f.ip, chunk, f.off)
                        f.off += r
                    finally:
                        self.fs.iunlock(f.ip)
                if r != len(chunk):
                    raise PanicError("short filewrite")
                written += r
            return len(data)
        raise PanicError("filewrite")

    def pipe(self) -> tuple[File, File]:
        """Create a pipe: return its read end and write end."""
        f0 = self.alloc()
        try:
            f1 = self.alloc()
        except OSError:
            self.close(f0)
            raise
        p = Pipe()
        f0.type, f0.readable, f0.writable, f0.pipe = FileType.PIPE, True, False, p
        f1.type, f1.readable, f1.writable, f1.pipe = FileType.PIPE, False, True, p
        return f0, f1