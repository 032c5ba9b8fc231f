"""Build a file system image holding a root directory and a set of files."""

from __future__ import annotations

import struct
import sys
from collections.abc import Iterable, Mapping
from pathlib import Path

from .params import (
    BPB,
    BSIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dinode,
    Dirent,
    InodeType,
    PanicError,
    Superblock,
)

NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out an image: boot block, superblock, log, inodes, bitmap, data."""

    def __init__(self, fssize: int = FSSIZE, ninodes: int = NINODES) -> None:
        self.fssize = fssize
        self.ninodes = ninodes
        self.nbitmap = fssize // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = LOGSIZE
        self.nmeta = 2 + self.nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fssize - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("file system too small for its metadata")
        self.sb = Superblock(
            size=fssize,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=self.nlog,
            logstart=2,
            inodestart=2 + self.nlog,
            bmapstart=2 + self.nlog + self.ninodeblocks,
        )
        self.image = bytearray(fssize * BSIZE)
        self.freeinode = 1
        self.freeblock = self.nmeta
        self.finished = False

        self._wsect(1, self.sb.pack().ljust(BSIZE, b"\0"))

        self.rootino = self.ialloc(InodeType.DIR)
        if self.rootino != ROOTINO:
            raise PanicError("root inode misplaced")
        for name in (".", ".."):
            self.iappend(self.rootino, Dirent(self.rootino, name).pack())

    def _check_sector(self, sec: int) -> int:
        if not 0 <= sec < self.fssize:
            raise ValueError(f"sector {sec} out of range")
        return sec * BSIZE

    def _rsect(self, sec: int) -> bytes:
        start = self._check_sector(sec)
        return bytes(self.image[start:start + BSIZE])

    def _wsect(self, sec: int, data: bytes) -> None:
        start = self._check_sector(sec)
        self.image[start:start + BSIZE] = data

    def _newblock(self) -> int:
        if self.freeblock >= self.fssize:
            raise ValueError("out of blocks")
        block = self.freeblock
        self.freeblock += 1
        return block

    def rinode(self, inum: int) -> Dinode:
        """Read on-disk inode ``inum``."""
        off = (inum % IPB) * Dinode.SIZE
        block = self._rsect(self.sb.iblock(inum))
        return Dinode.unpack(block[off:off + Dinode.SIZE])

    def winode(self, inum: int, din: Dinode) -> None:
        """Write on-disk inode ``inum``."""
        bn = self.sb.iblock(inum)
        off = (inum % IPB) * Dinode.SIZE
        block = bytearray(self._rsect(bn))
        block[off:off + Dinode.SIZE] = din.pack()
        self._wsect(bn, bytes(block))

    def ialloc(self, type: int) -> int:
        """Allocate the next inode with one link and return its number."""
        inum = self.freeinode
        if inum >= self.ninodes:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self.winode(inum, Dinode(type=int(type), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data: bytes) -> None:
        """Append ``data`` to the end of inode ``inum``."""
        din = self.rinode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._newblock()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._newblock()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                slot = fbn - NDIRECT
                if indirect[slot] == 0:
                    indirect[slot] = self._newblock()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[slot]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            block = bytearray(self._rsect(x))
            start = off - fbn * BSIZE
            block[start:start + n1] = data[pos:pos + n1]
            self._wsect(x, bytes(block))
            pos += n1
            off += n1
        din.size = off
        self.winode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Add a file to the root directory; a leading underscore is dropped."""
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name!r}")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(InodeType.FILE)
        self.iappend(self.rootino, Dirent(inum, name).pack())
        self.iappend(inum, bytes(data))
        return inum

    def _balloc(self, used: int) -> None:
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._wsect(self.sb.bmapstart, bytes(bitmap))

    def finish(self) -> bytes:
        """Round the root directory up to a whole block, write the bitmap, return the image."""
        if self.finished:
            raise RuntimeError("image already finished")
        din = self.rinode(self.rootino)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self.winode(self.rootino, din)
        self._balloc(self.freeblock)
        self.finished = True
        return bytes(self.image)


def build_image(files: Mapping[str, bytes] | Iterable[tuple[str, bytes]] = ()) -> bytes:
    """Build an image whose root directory holds ``files``."""
    builder = ImageBuilder()
    items = files.items() if isinstance(files, Mapping) else files
    for name, data in items:
        builder.add_file(name, data)
    return builder.finish()


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    out_path, inputs = args[0], args[1:]
    try:
        out = open(out_path, "wb")
    except OSError as exc:
        sys.stderr.write(f"{out_path}: {exc.strerror}\n")
        return 1
    with out:
        builder = ImageBuilder()
        print(
            f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
            f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
            f"blocks {builder.nblocks} total {builder.fssize}"
        )
        for path in inputs:
            if "/" in path:
                sys.stderr.write(f"mkfs: {path}: files must be in the current directory\n")
                return 1
            try:
                data = Path(path).read_bytes()
            except OSError as exc:
                sys.stderr.write(f"{path}: {exc.strerror}\n")
                return 1
            builder.add_file(path, data)
        image = builder.finish()
        print(f"balloc: first {builder.freeblock} blocks have been allocated")
        print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
        out.write(image)
    return 0