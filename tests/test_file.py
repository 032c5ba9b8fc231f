import threading

import pytest

from xvfs.file import PIPESIZE, File, FileTable, FileType, Pipe
from xvfs.fs import FileSystem
from xvfs.mkfs import build_image
from xvfs.params import PanicError


@pytest.fixture
def fs():
    return FileSystem.from_image(build_image({"hello": b"hello"}))


def _open(table, fs, path):
    f = table.alloc()
    f.type = FileType.INODE
    f.ip = fs.namei(path)
    f.readable = f.writable = True
    return f


def test_pipe_round_trip():
    p = Pipe()
    assert p.write(b"abc") == 3
    assert p.read(2) == b"ab"
    assert p.read(10) == b"c"


def test_pipe_eof_after_writer_closes():
    p = Pipe()
    p.write(b"ab")
    p.close(True)
    assert p.read(10) == b"ab"
    assert p.read(10) == b""


def test_pipe_full_with_reader_closed():
    p = Pipe()
    p.close(False)
    assert p.write(b"x") == 1
    with pytest.raises(BrokenPipeError):
        p.write(bytes(PIPESIZE))


def test_pipe_blocks_until_read():
    p = Pipe()
    payload = bytes(range(256)) * 4
    t = threading.Thread(target=p.write, args=(payload,))
    t.start()
    got = bytearray()
    while len(got) < len(payload):
        got += p.read(len(payload))
    t.join(timeout=5)
    assert bytes(got) == payload


def test_table_pipe_ends():
    table = FileTable(None)
    r, w = table.pipe()
    assert (r.readable, r.writable, w.readable, w.writable) == (True, False, False, True)
    assert table.write(w, b"data") == 4
    assert table.read(r, 10) == b"data"
    with pytest.raises(OSError):
        table.write(r, b"x")
    with pytest.raises(OSError):
        table.read(w, 1)


def test_alloc_exhaustion():
    table = FileTable(None, nfile=2)
    table.alloc()
    table.alloc()
    with pytest.raises(OSError):
        table.alloc()


def test_pipe_failure_releases_first_file():
    table = FileTable(None, nfile=1)
    with pytest.raises(OSError):
        table.pipe()
    assert table.files[0].ref == 0


def test_dup_and_close_counts():
    table = FileTable(None)
    r, w = table.pipe()
    table.dup(r)
    assert r.ref == 2
    table.close(r)
    assert r.ref == 1
    table.close(r)
    assert r.ref == 0 and r.type is FileType.NONE
    with pytest.raises(PanicError):
        table.close(r)
    with pytest.raises(PanicError):
        table.dup(File())


def test_close_write_end_gives_eof():
    table = FileTable(None)
    r, w = table.pipe()
    table.write(w, b"z")
    table.close(w)
    assert table.read(r, 5) == b"z"
    assert table.read(r, 5) == b""


def test_inode_read_advances_offset(fs):
    table = FileTable(fs)
    f = _open(table, fs, "/hello")
    assert table.read(f, 3) == b"hel"
    assert f.off == 3
    assert table.read(f, 10) == b"lo"
    assert table.read(f, 10) == b""


def test_inode_write_then_read(fs):
    table = FileTable(fs)
    f = _open(table, fs, "/hello")
    table.read(f, 5)
    extra = bytes(range(256)) * 16
    assert table.write(f, extra) == len(extra)
    assert table.stat(f).size == 5 + len(extra)
    g = _open(table, fs, "/hello")
    assert table.read(g, 10000) == b"hello" + extra


def test_stat_of_pipe_rejected():
    table = FileTable(None)
    r, _ = table.pipe()
    with pytest.raises(OSError):
        table.stat(r)


def test_close_inode_drops_reference(fs):
    table = FileTable(fs)
    f = _open(table, fs, "/hello")
    ip = f.ip
    before = ip.ref
    table.close(f)
    assert ip.ref == before - 1
    assert f.ip is None and f.type is FileType.NONE