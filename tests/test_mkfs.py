import pytest

from xvfs.fs import FileSystem
from xvfs.mkfs import NINODES, ImageBuilder, build_image, main
from xvfs.params import (
    BSIZE,
    FSSIZE,
    LOGSIZE,
    MAXFILE,
    ROOTINO,
    Dinode,
    Dirent,
    InodeType,
    Superblock,
)


def _read(fs, path):
    ip = fs.namei(path)
    assert ip is not None
    fs.ilock(ip)
    try:
        return fs.readi(ip, 0, ip.size)
    finally:
        fs.iunlockput(ip)


def test_image_size_and_superblock():
    image = build_image({})
    assert len(image) == FSSIZE * BSIZE
    sb = Superblock.unpack(image[BSIZE:2 * BSIZE])
    assert sb.size == FSSIZE
    assert sb.ninodes == NINODES
    assert sb.nlog == LOGSIZE
    assert sb.logstart == 2
    assert sb.inodestart == 2 + LOGSIZE


def test_root_directory_entries():
    fs = FileSystem.from_image(build_image({}))
    root = fs.namei("/")
    fs.ilock(root)
    try:
        assert root.size % BSIZE == 0
        dot, off = fs.dirlookup(root, ".")
        dotdot, off2 = fs.dirlookup(root, "..")
    finally:
        fs.iunlock(root)
    assert dot.inum == ROOTINO and off == 0
    assert dotdot.inum == ROOTINO and off2 == Dirent.SIZE


def test_file_contents_round_trip():
    data = b"hello, file system\n"
    fs = FileSystem.from_image(build_image({"greeting": data}))
    assert _read(fs, "/greeting") == data


def test_large_file_uses_indirect_block():
    data = bytes(range(256)) * 30
    fs = FileSystem.from_image(build_image([("big", data)]))
    assert _read(fs, "/big") == data


def test_leading_underscore_is_stripped():
    fs = FileSystem.from_image(build_image({"_cat": b"meow"}))
    assert _read(fs, "/cat") == b"meow"
    assert fs.namei("/_cat") is None


def test_name_with_slash_rejected():
    with pytest.raises(ValueError):
        ImageBuilder().add_file("a/b", b"")


def test_file_too_large_rejected():
    with pytest.raises(ValueError):
        ImageBuilder().add_file("huge", bytes(MAXFILE * BSIZE + 1))


def test_inode_round_trip_and_sequential_alloc():
    builder = ImageBuilder()
    din = Dinode(type=InodeType.FILE, nlink=3, size=7)
    builder.winode(5, din)
    assert builder.rinode(5) == din
    first = builder.ialloc(InodeType.FILE)
    second = builder.ialloc(InodeType.FILE)
    assert second == first + 1
    assert builder.rinode(first).nlink == 1


def test_bitmap_marks_used_blocks():
    builder = ImageBuilder()
    builder.add_file("f", b"x" * 10)
    image = builder.finish()
    used_count = builder.freeblock
    assert used_count > builder.sb.bmapstart
    start = builder.sb.bmapstart * BSIZE
    bitmap = image[start:start + BSIZE]
    assert len(bitmap) == BSIZE
    bits = [bitmap[i // 8] >> (i % 8) & 1 for i in range(used_count + 4)]
    assert bits == [1] * used_count + [0] * 4


def test_kernel_allocates_first_free_block():
    builder = ImageBuilder()
    builder.add_file("f", b"data")
    fs = FileSystem.from_image(builder.finish())
    with fs.log.transaction():
        assert fs.balloc(fs.dev) == builder.freeblock


def test_finish_twice_rejected():
    builder = ImageBuilder()
    builder.finish()
    with pytest.raises(RuntimeError):
        builder.finish()


def test_main_writes_image(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_notes").write_bytes(b"remember")
    assert main(["fs.img", "_notes"]) == 0
    image = (tmp_path / "fs.img").read_bytes()
    assert len(image) == FSSIZE * BSIZE
    assert _read(FileSystem.from_image(image), "/notes") == b"remember"
    assert "balloc: first" in capsys.readouterr().out


def test_main_usage():
    assert main([]) == 1