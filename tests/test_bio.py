import pytest

from xvfs.bio import BufferCache, BufFlag
from xvfs.disk import MemDisk
from xvfs.params import BSIZE, PanicError


def make(nbuf=4):
    disk = MemDisk(bytes(BSIZE * 8), dev=1)
    disk.write_block(3, b"\x05" * BSIZE)
    return disk, BufferCache(disk, nbuf)


def test_bread_reads_disk():
    _, cache = make()
    b = cache.bread(1, 3)
    assert bytes(b.data) == b"\x05" * BSIZE
    assert b.flags & BufFlag.VALID
    cache.brelse(b)


def test_bwrite_persists():
    disk, cache = make()
    b = cache.bread(1, 4)
    b.data[:] = b"\x09" * BSIZE
    cache.bwrite(b)
    cache.brelse(b)
    assert disk.read_block(4) == b"\x09" * BSIZE
    assert not b.flags & BufFlag.DIRTY


def test_brelse_moves_to_front_and_cache_hit():
    _, cache = make()
    b = cache.bread(1, 3)
    cache.brelse(b)
    assert cache.bufs[0] is b
    again = cache.bread(1, 3)
    assert again is b
    cache.brelse(again)


def test_no_buffers():
    _, cache = make(nbuf=2)
    cache.bread(1, 1)
    cache.bread(1, 2)
    with pytest.raises(PanicError):
        cache.bread(1, 3)


def test_unlocked_write_panics():
    _, cache = make()
    b = cache.bread(1, 1)
    cache.brelse(b)
    with pytest.raises(PanicError):
        cache.bwrite(b)


def test_wrong_device():
    _, cache = make()
    with pytest.raises(PanicError):
        cache.bread(0, 1)