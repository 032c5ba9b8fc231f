"""A small Unix-style file system: disk images, buffer cache, write-ahead log, inodes, pipes, console and simple tools."""

__version__ = "0.1.0"

__all__ = [
    "bio",
    "commands",
    "console",
    "disk",
    "file",
    "fs",
    "grep",
    "journal",
    "kbd",
    "mkfs",
    "params",
    "printf",
]