"""Small user commands: echo, cat and ls."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import BinaryIO, Iterable, TextIO

from .fs import FileSystem
from .params import DIRSIZ, Dirent, InodeType

_CATBUF = 512
_LSBUF = 512


def fmtname(path: str) -> str:
    """Final path element, blank-padded to DIRSIZ characters."""
    name = path[path.rfind("/") + 1:]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def echo(args: Iterable[str]) -> str:
    """Arguments separated by spaces and ended by a newline."""
    args = list(args)
    return " ".join(args) + "\n" if args else ""


def cat(streams: Iterable[BinaryIO], out: BinaryIO) -> None:
    """Copy each stream to ``out`` in turn."""
    for stream in streams:
        while chunk := stream.read(_CATBUF):
            out.write(chunk)


def ls(fs: FileSystem, path: str, out: TextIO) -> None:
    """List a file, or each entry of a directory, as: name type inode size."""
    ip = fs.namei(path)
    if ip is None:
        raise FileNotFoundError(path)
    fs.ilock(ip)
    try:
        st = fs.stati(ip)
        raw = fs.readi(ip, 0, ip.size) if st.type == InodeType.DIR else b""
    finally:
        fs.iunlockput(ip)

    if st.type == InodeType.FILE:
        out.write(f"{fmtname(path)} {st.type} {st.ino} {st.size}\n")
    elif st.type == InodeType.DIR:
        if len(path) + 1 + DIRSIZ + 1 > _LSBUF:
            out.write("ls: path too long\n")
            return
        whole = len(raw) - len(raw) % Dirent.SIZE
        for start in range(0, whole, Dirent.SIZE):
            de = Dirent.unpack(raw[start:start + Dirent.SIZE])
            if de.inum == 0:
                continue
            child = f"{path}/{de.name}"
            cip = fs.namei(child)
            if cip is None:
                out.write(f"ls: cannot stat {child}\n")
                continue
            fs.ilock(cip)
            try:
                cst = fs.stati(cip)
            finally:
                fs.iunlockput(cip)
            out.write(f"{fmtname(child)} {cst.type} {cst.ino} {cst.size}\n")


def echo_main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    sys.stdout.write(echo(args))
    return 0


def cat_main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    out = sys.stdout.buffer
    if not args:
        cat([sys.stdin.buffer], out)
        return 0
    for name in args:
        try:
            stream = open(name, "rb")
        except OSError:
            out.flush()
            sys.stdout.write(f"cat: cannot open {name}\n")
            return 1
        with stream:
            cat([stream], out)
    return 0


def ls_main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        sys.stderr.write("usage: ls image [path ...]\n")
        return 1
    try:
        image = Path(args[0]).read_bytes()
    except OSError:
        sys.stderr.write(f"ls: cannot open {args[0]}\n")
        return 1
    fs = FileSystem.from_image(image)
    for path in args[1:] or ["."]:
        try:
            ls(fs, path, sys.stdout)
        except FileNotFoundError:
            sys.stderr.write(f"ls: cannot open {path}\n")
    return 0