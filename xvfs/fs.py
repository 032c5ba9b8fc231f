"""File system layers: block allocation, inodes, directories and path names."""

from __future__ import annotations

import struct
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .bio import BufferCache
from .disk import MemDisk
from .journal import Log
from .params import (
    BPB,
    BSIZE,
    DIRSIZ,
    MAXFILE,
    NDEV,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    Dinode,
    Dirent,
    InodeType,
    IPB,
    PanicError,
    Stat,
    Superblock,
)

_UINT = struct.Struct("<I")
_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class FsError(OSError):
    """A file system request could not be carried out."""


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def locked(self) -> bool:
        return self.lock.locked()


def skipelem(path: str) -> tuple[str, str] | None:
    """Split off the first path element: return ``(name, rest)`` or None."""
    path = path.lstrip("/")
    if not path:
        return None
    elem, _, rest = path.partition("/")
    return elem[:DIRSIZ], rest.lstrip("/")


def namecmp(s: str, t: str) -> int:
    """Compare two directory entry names on their first DIRSIZ characters."""
    a, b = s[:DIRSIZ], t[:DIRSIZ]
    return (a > b) - (a < b)


class FileSystem:
    """Blocks, inodes, directories and names on one device."""

    def __init__(
        self,
        cache: BufferCache,
        dev: int = ROOTDEV,
        devsw: Mapping[int, Any] | None = None,
    ) -> None:
        self.cache = cache
        self.dev = dev
        self.devsw: dict[int, Any] = dict(devsw or {})
        self._icache_lock = threading.Lock()
        self.inodes = [Inode() for _ in range(NINODE)]
        self.sb = self._readsb(dev)
        self.log = Log(cache, dev, self.sb)

    @classmethod
    def from_image(cls, image: bytes, dev: int = ROOTDEV) -> "FileSystem":
        """Open a file system held in an in-memory image."""
        return cls(BufferCache(MemDisk(image, dev)), dev)

    # Blocks.

    def _readsb(self, dev: int) -> Superblock:
        bp = self.cache.bread(dev, 1)
        sb = Superblock.unpack(bytes(bp.data))
        self.cache.brelse(bp)
        return sb

    def _bzero(self, dev: int, bno: int) -> None:
        bp = self.cache.bread(dev, bno)
        bp.data[:] = bytes(BSIZE)
        self.log.log_write(bp)
        self.cache.brelse(bp)

    def balloc(self, dev: int) -> int:
        """Allocate a zeroed disk block and return its number."""
        for b in range(0, self.sb.size, BPB):
            bp = self.cache.bread(dev, self.sb.bblock(b))
            for bi in range(min(BPB, self.sb.size - b)):
                m = 1 << (bi % 8)
                if not bp.data[bi // 8] & m:
                    bp.data[bi // 8] |= m
                    self.log.log_write(bp)
                    self.cache.brelse(bp)
                    self._bzero(dev, b + bi)
                    return b + bi
            self.cache.brelse(bp)
        raise PanicError("balloc: out of blocks")

    def bfree(self, dev: int, b: int) -> None:
        """Mark disk block ``b`` free."""
        self.sb = self._readsb(dev)
        bp = self.cache.bread(dev, self.sb.bblock(b))
        bi = b % BPB
        m = 1 << (bi % 8)
        if not bp.data[bi // 8] & m:
            self.cache.brelse(bp)
            raise PanicError("freeing free block")
        bp.data[bi // 8] &= ~m & 0xFF
        self.log.log_write(bp)
        self.cache.brelse(bp)

    # Inodes.

    def _dinode_slot(self, inum: int) -> tuple[int, int]:
        return self.sb.iblock(inum), (inum % IPB) * Dinode.SIZE

    def ialloc(self, dev: int, type: int) -> Inode:
        """Allocate an on-disk inode of ``type``; return it unlocked and referenced."""
        for inum in range(1, self.sb.ninodes):
            blockno, off = self._dinode_slot(inum)
            bp = self.cache.bread(dev, blockno)
            din = Dinode.unpack(bytes(bp.data[off:off + Dinode.SIZE]))
            if din.type == 0:
                bp.data[off:off + Dinode.SIZE] = Dinode(type=int(type)).pack()
                self.log.log_write(bp)
                self.cache.brelse(bp)
                return self.iget(dev, inum)
            self.cache.brelse(bp)
        raise PanicError("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy the in-memory inode to its disk slot."""
        blockno, off = self._dinode_slot(ip.inum)
        bp = self.cache.bread(ip.dev, blockno)
        din = Dinode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
        bp.data[off:off + Dinode.SIZE] = din.pack()
        self.log.log_write(bp)
        self.cache.brelse(bp)

    def iget(self, dev: int, inum: int) -> Inode:
        """Find or make a cache entry for the inode; neither locks nor reads it."""
        with self._icache_lock:
            empty = None
            for ip in self.inodes:
                if ip.ref > 0 and ip.dev == dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise PanicError("iget: no inodes")
            empty.dev = dev
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        with self._icache_lock:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock the inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise PanicError("ilock")
        ip.lock.acquire()
        if not ip.valid:
            blockno, off = self._dinode_slot(ip.inum)
            bp = self.cache.bread(ip.dev, blockno)
            din = Dinode.unpack(bytes(bp.data[off:off + Dinode.SIZE]))
            self.cache.brelse(bp)
            ip.type, ip.major, ip.minor = din.type, din.major, din.minor
            ip.nlink, ip.size = din.nlink, din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise PanicError("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        if ip is None or not ip.locked or ip.ref < 1:
            raise PanicError("iunlock")
        ip.lock.release()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        with ip.lock:
            if ip.valid and ip.nlink == 0:
                with self._icache_lock:
                    r = ip.ref
                if r == 1:
                    self.itrunc(ip)
                    ip.type = 0
                    self.iupdate(ip)
                    ip.valid = False
        with self._icache_lock:
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    # Inode content.

    def bmap(self, ip: Inode, bn: int) -> int:
        """Disk block holding block ``bn`` of the inode, allocating it if absent."""
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self.balloc(ip.dev)
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self.balloc(ip.dev)
            bp = self.cache.bread(ip.dev, ip.addrs[NDIRECT])
            (addr,) = _UINT.unpack_from(bp.data, bn * 4)
            if addr == 0:
                addr = self.balloc(ip.dev)
                _UINT.pack_into(bp.data, bn * 4, addr)
                self.log.log_write(bp)
            self.cache.brelse(bp)
            return addr
        raise PanicError("bmap: out of range")

    def itrunc(self, ip: Inode) -> None:
        """Free all of the inode's content blocks."""
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self.bfree(ip.dev, ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            bp = self.cache.bread(ip.dev, ip.addrs[NDIRECT])
            entries = _INDIRECT.unpack_from(bp.data)
            for addr in entries:
                if addr:
                    self.bfree(ip.dev, addr)
            self.cache.brelse(bp)
            self.bfree(ip.dev, ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink, size=ip.size)

    def _device(self, ip: Inode, op: str) -> Callable[..., Any]:
        device = self.devsw.get(ip.major) if 0 <= ip.major < NDEV else None
        handler = getattr(device, op, None) if device is not None else None
        if handler is None:
            raise FsError(f"no device {op} for major {ip.major}")
        return handler

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off``; the caller holds the inode lock."""
        if ip.type == InodeType.DEV:
            return bytes(self._device(ip, "read")(n))
        if off < 0 or n < 0 or off > ip.size:
            raise FsError(f"read offset {off} out of range")
        end = off + min(n, ip.size - off)
        out = bytearray()
        while off < end:
            bp = self.cache.bread(ip.dev, self.bmap(ip, off // BSIZE))
            start = off % BSIZE
            m = min(end - off, BSIZE - start)
            out += bp.data[start:start + m]
            self.cache.brelse(bp)
            off += m
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write ``data`` at ``off``; the caller holds the inode lock."""
        if ip.type == InodeType.DEV:
            return self._device(ip, "write")(bytes(data))
        n = len(data)
        if off < 0 or off > ip.size:
            raise FsError(f"write offset {off} out of range")
        if off + n > MAXFILE * BSIZE:
            raise FsError("write past maximum file size")
        pos = 0
        while pos < n:
            bp = self.cache.bread(ip.dev, self.bmap(ip, off // BSIZE))
            start = off % BSIZE
            m = min(n - pos, BSIZE - start)
            bp.data[start:start + m] = data[pos:pos + m]
            self.log.log_write(bp)
            self.cache.brelse(bp)
            pos += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def _entries(self, dp: Inode, what: str):
        for off in range(0, dp.size, Dirent.SIZE):
            raw = self.readi(dp, off, Dirent.SIZE)
            if len(raw) != Dirent.SIZE:
                raise PanicError(f"{what} read")
            yield off, Dirent.unpack(raw)

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find ``name`` in directory ``dp``: return the inode and entry offset."""
        if dp.type != InodeType.DIR:
            raise PanicError("dirlookup not DIR")
        for off, de in self._entries(dp, "dirlookup"):
            if de.inum != 0 and namecmp(name, de.name) == 0:
                return self.iget(dp.dev, de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry ``(name, inum)`` to directory ``dp``."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(name)
        off = next(
            (o for o, de in self._entries(dp, "dirlink") if de.inum == 0), dp.size
        )
        if self.writei(dp, Dirent(inum, name[:DIRSIZ]).pack(), off) != Dirent.SIZE:
            raise PanicError("dirlink")

    # Path names.

    def _namex(self, path: str, parent: bool, cwd: Inode | None):
        if path.startswith("/") or cwd is None:
            ip = self.iget(self.dev, ROOTINO)
        else:
            ip = self.idup(cwd)
        while (step := skipelem(path)) is not None:
            name, path = step
            self.ilock(ip)
            if ip.type != InodeType.DIR:
                self.iunlockput(ip)
                return None
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                return None
            self.iunlockput(ip)
            ip = found[0]
        if parent:
            self.iput(ip)
            return None
        return ip

    def namei(self, path: str, cwd: Inode | None = None) -> Inode | None:
        """Inode for ``path``, or None; relative paths start at ``cwd`` (root if None)."""
        return self._namex(path, False, cwd)

    def nameiparent(self, path: str, cwd: Inode | None = None) -> tuple[Inode, str] | None:
        """Parent directory inode of ``path`` and its final element, or None."""
        return self._namex(path, True, cwd)