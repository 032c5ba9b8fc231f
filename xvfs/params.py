"""On-disk layout, system limits and shared record types."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

# System limits.
NPROC = 64
KSTACKSIZE = 4096
NCPU = 8
NOFILE = 16
NFILE = 100
NINODE = 50
NDEV = 10
ROOTDEV = 1
MAXARG = 32
MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3
NBUF = MAXOPBLOCKS * 3
FSSIZE = 1000

# File system format.
ROOTINO = 1
BSIZE = 512
NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT
DIRSIZ = 14
BPB = BSIZE * 8

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

IPB = BSIZE // _DINODE.size


class PanicError(RuntimeError):
    """An unrecoverable kernel invariant was violated."""


class InodeType(IntEnum):
    DIR = 1
    FILE = 2
    DEV = 3


@dataclass
class Superblock:
    """Describes the disk layout."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0

    SIZE = _SUPERBLOCK.size

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size, self.nblocks, self.ninodes, self.nlog,
            self.logstart, self.inodestart, self.bmapstart,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Superblock":
        return cls(*_SUPERBLOCK.unpack_from(data))

    def iblock(self, inum: int) -> int:
        """Block holding inode ``inum``."""
        return inum // IPB + self.inodestart

    def bblock(self, b: int) -> int:
        """Bitmap block holding the bit for block ``b``."""
        return b // BPB + self.bmapstart


@dataclass
class Dinode:
    """On-disk inode."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    SIZE = _DINODE.size

    def pack(self) -> bytes:
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Dinode":
        values = _DINODE.unpack_from(data)
        return cls(*values[:5], addrs=list(values[5:]))


@dataclass
class Dirent:
    """Directory entry: inode number and a name of at most DIRSIZ bytes."""

    inum: int = 0
    name: str = ""

    SIZE = _DIRENT.size

    def pack(self) -> bytes:
        return _DIRENT.pack(self.inum, self.name.encode("latin-1")[:DIRSIZ])

    @classmethod
    def unpack(cls, data: bytes) -> "Dirent":
        inum, raw = _DIRENT.unpack_from(data)
        return cls(inum, raw.split(b"\0", 1)[0].decode("latin-1"))


@dataclass
class Stat:
    """File metadata."""

    type: int = 0
    dev: int = 0
    ino: int = 0
    nlink: int = 0
    size: int = 0