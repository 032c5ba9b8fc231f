[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xvfs"
version = "0.1.0"
description = "A small Unix-style file system: disk images, buffer cache, write-ahead log, inodes, directories, pipes, a console line discipline and simple tools"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "inode", "journal", "buffer-cache", "disk-image", "pipe", "teaching"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xvfs-mkfs = "xvfs.mkfs:main"
xvfs-grep = "xvfs.grep:main"
xvfs-echo = "xvfs.commands:echo_main"
xvfs-cat = "xvfs.commands:cat_main"
xvfs-ls = "xvfs.commands:ls_main"

[tool.hatch.build.targets.wheel]
packages = ["xvfs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
