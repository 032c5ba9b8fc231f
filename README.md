# xvfs

`xvfs` is a compact, self-contained model of a classic Unix-style file
system, built in layers:

- **Layout** (`xvfs.params`) – block size, limits and the on-disk records
  `Superblock`, `Dinode` and `Dirent` with `pack()`/`unpack()`, plus `Stat`
  and the `InodeType` enum (`DIR`, `FILE`, `DEV`).
- **Disk** (`xvfs.disk`) – `MemDisk` keeps an image in memory as 512-byte
  blocks; its `image` property returns the current bytes.
- **Buffer cache** (`xvfs.bio`) – `BufferCache.bread`/`bwrite`/`brelse`
  hold recently used blocks and recycle the least recently used clean,
  unreferenced buffer when a new block is needed.
- **Log** (`xvfs.journal`) – `Log` groups block writes into transactions
  (`begin_op`/`end_op`, or the `transaction()` context manager) and, when
  opened, installs any committed transaction found on disk (`recover`).
- **Inodes and directories** (`xvfs.fs`) – `FileSystem` allocates and frees
  blocks and inodes, reads and writes file contents through direct and
  indirect blocks (`readi`, `writei`), looks up and adds directory entries
  (`dirlookup`, `dirlink`) and resolves path names (`namei`, `nameiparent`).
- **Open files and pipes** (`xvfs.file`) – `FileTable` hands out
  reference-counted `File` objects for inodes or pipes; `Pipe` is a bounded
  512-byte channel.
- **Console** (`xvfs.console`) – `Console` buffers typed input with line
  editing: backspace (`^H`, DEL), kill line (`^U`), end of file (`^D`), and
  calls an optional `procdump` callback on `^P`.
- **Keyboard** (`xvfs.kbd`) – `Keyboard.getc` turns PC scancodes into
  characters, tracking shift, control and caps lock.
- **Tools** – an image builder (`xvfs.mkfs.ImageBuilder`, `build_image`),
  a tiny `grep` that understands `^ . * $` (`xvfs.grep`), and `echo`, `cat`
  and `ls` (`xvfs.commands`).

Conditions the file system cannot recover from (freeing a free block,
running out of inodes or buffers, an over-large transaction) raise
`PanicError`. Ordinary request failures raise `OSError` subclasses, for
example `FileExistsError` from `dirlink` or `BrokenPipeError` from writing
to a pipe whose read end is closed.

## Installing

```
pip install .
```

Python 3.10 or newer is required; there are no third-party dependencies.

## Building an image

```
xvfs-mkfs fs.img README notes.txt
```

creates `fs.img` (1000 blocks, 200 inodes) with a root directory holding
the named host files. File names must not contain `/`. A leading `_` in a
name is dropped when it is stored, so `_cat` is stored as `cat`.

From Python:

```python
from xvfs.mkfs import build_image
from xvfs.fs import FileSystem

image = build_image({"hello.txt": b"hello, world\n"})
fs = FileSystem.from_image(image, 1)

ip = fs.namei("/hello.txt")
fs.ilock(ip)
print(fs.readi(ip, 0, ip.size))   # b'hello, world\n'
fs.iunlockput(ip)
```

Changes made through `FileSystem` go to the in-memory disk; the updated
image is available as `fs.cache.disk.image`.

## Command-line tools

| Command     | What it does                                                       |
|-------------|--------------------------------------------------------------------|
| `xvfs-mkfs` | build a file system image from host files                          |
| `xvfs-ls`   | list a path inside an image (default `.`): name, type, inode, size |
| `xvfs-cat`  | copy host files (or standard input) to standard output             |
| `xvfs-echo` | print its arguments separated by spaces                            |
| `xvfs-grep` | print lines of host files matching a pattern using `^ . * $`       |

```
xvfs-ls fs.img
xvfs-echo hello world
xvfs-grep '^ab*c$' notes.txt
```

## Formatting helpers

`xvfs.printf.format_printf` and `format_cprintf` format strings the way the
system's minimal `printf` does: only `%d`, `%x`, `%p`, `%s` (and `%c` for
`format_printf`), with unknown sequences printed as written.
`format_printf` prints hexadecimal in upper case, `format_cprintf` in lower
case.

## What it does not do

There are no processes, no system-call layer and no scheduler. The package
offers no command or function to create, link, unlink or make directories
inside an existing image; the image builder places files only in the root
directory. `xvfs-ls` reads an image, but `xvfs-cat` and `xvfs-grep` work on
host files, not on files inside an image.

## Running the tests

```
pip install .[test]
pytest
```