"""In-memory disk holding a file system image."""

from __future__ import annotations

from .params import BSIZE, ROOTDEV, PanicError


class MemDisk:
    """A block device backed by a bytearray."""

    def __init__(self, image: bytes, dev: int = ROOTDEV) -> None:
        self.data = bytearray(image)
        self.dev = dev
        self.disksize = len(self.data) // BSIZE

    def _check(self, blockno: int) -> int:
        if not 0 <= blockno < self.disksize:
            raise PanicError("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        start = self._check(blockno)
        return bytes(self.data[start:start + BSIZE])

    def write_block(self, blockno: int, data: bytes) -> None:
        start = self._check(blockno)
        if len(data) != BSIZE:
            raise ValueError("block data must be exactly one block")
        self.data[start:start + BSIZE] = data

    @property
    def image(self) -> bytes:
        return bytes(self.data)