import io

import pytest

from xvfs.commands import cat, cat_main, echo, echo_main, fmtname, ls, ls_main
from xvfs.fs import FileSystem
from xvfs.mkfs import build_image
from xvfs.params import BSIZE, DIRSIZ, ROOTINO, InodeType

DATA = b"hello"


@pytest.fixture
def fs():
    return FileSystem.from_image(build_image({"readme": DATA}))


def test_fmtname_pads_short_names():
    name = fmtname("a/b/ls")
    assert len(name) == DIRSIZ
    assert name.rstrip() == "ls"


def test_fmtname_keeps_long_names():
    long = "x" * (DIRSIZ + 3)
    assert fmtname("/dir/" + long) == long


def test_echo():
    assert echo(["a", "b"]) == "a b\n"
    assert echo([]) == ""


def test_cat_concatenates():
    out = io.BytesIO()
    cat([io.BytesIO(b"one "), io.BytesIO(b"two" * 300)], out)
    assert out.getvalue() == b"one " + b"two" * 300


def test_ls_file(fs):
    out = io.StringIO()
    ls(fs, "/readme", out)
    assert out.getvalue() == f"{fmtname('/readme')} {int(InodeType.FILE)} 2 {len(DATA)}\n"


def test_ls_root(fs):
    out = io.StringIO()
    ls(fs, "/", out)
    lines = out.getvalue().splitlines()
    assert len(lines) == 3
    assert lines[0] == f"{fmtname('//.')} {int(InodeType.DIR)} {ROOTINO} {BSIZE}"
    assert lines[2].startswith(fmtname("readme"))


def test_ls_missing(fs):
    with pytest.raises(FileNotFoundError):
        ls(fs, "/nope", io.StringIO())


def test_echo_main(capsys):
    assert echo_main(["hi", "there"]) == 0
    assert capsys.readouterr().out == "hi there\n"


def test_cat_main(tmp_path, capsysbinary):
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.write_bytes(b"first\n")
    b.write_bytes(b"second\n")
    assert cat_main([str(a), str(b)]) == 0
    assert capsysbinary.readouterr().out == b"first\nsecond\n"


def test_cat_main_missing(tmp_path, capsysbinary):
    assert cat_main([str(tmp_path / "missing")]) == 1
    assert b"cat: cannot open" in capsysbinary.readouterr().out


def test_ls_main(tmp_path, capsys):
    image = tmp_path / "fs.img"
    image.write_bytes(build_image({"readme": DATA}))
    assert ls_main([str(image)]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 3
    assert any(line.startswith(fmtname("readme")) for line in lines)