"""File systems rooted at a directory, optionally without directory listings."""

from __future__ import annotations

import errno
import os
import posixpath
from dataclasses import dataclass


class File:
    """An opened file or directory."""

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = os.fspath(path)
        self._is_dir = os.path.isdir(self._path)
        self._handle = None if self._is_dir else open(self._path, "rb")
        self._listing: list[str] | None = None
        self._cursor = 0
        self._closed = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_dir(self) -> bool:
        return self._is_dir

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed file")

    def read(self) -> bytes:
        """Read the rest of the file's content."""
        self._check_open()
        if self._handle is None:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), self._path)
        return self._handle.read()

    def readdir(self, count: int) -> list[str]:
        """Return up to count further entry names, or all of them if count <= 0."""
        self._check_open()
        if not self._is_dir:
            raise NotADirectoryError(
                errno.ENOTDIR, os.strerror(errno.ENOTDIR), self._path
            )
        if self._listing is None:
            self._listing = sorted(os.listdir(self._path))
        end = len(self._listing) if count <= 0 else self._cursor + count
        entries = self._listing[self._cursor : end]
        self._cursor += len(entries)
        return entries

    def close(self) -> None:
        """Release the file; closing twice is harmless."""
        if self._handle is not None:
            self._handle.close()
        self._closed = True

    def __enter__(self) -> File:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class _NeuteredReaddirFile(File):
    """A file whose directory listing is always empty."""

    def __init__(self, inner: File) -> None:
        self._inner = inner

    @property
    def path(self) -> str:
        return self._inner.path

    @property
    def is_dir(self) -> bool:
        return self._inner.is_dir

    def read(self) -> bytes:
        return self._inner.read()

    def readdir(self, count: int) -> list[str]:
        return []

    def close(self) -> None:
        self._inner.close()


@dataclass(frozen=True)
class DirFS:
    """Files below a root directory; names never escape the root."""

    root: str

    def open(self, name: str) -> File:
        """Open a slash-separated name relative to the root."""
        if os.sep != "/" and os.sep in name:
            raise ValueError("invalid character in file path")
        root = self.root or "."
        relative = posixpath.normpath("/" + name).lstrip("/")
        if relative in ("", "."):
            return File(root)
        return File(os.path.join(root, *relative.split("/")))


@dataclass(frozen=True)
class OnlyFilesFS:
    """A file system whose directories cannot be listed."""

    fs: DirFS

    def open(self, name: str) -> File:
        return _NeuteredReaddirFile(self.fs.open(name))


def make_dir(root: str, list_directory: bool) -> DirFS | OnlyFilesFS:
    """Return a file system at root, listing directories only if asked to."""
    fs = DirFS(root)
    if list_directory:
        return fs
    return OnlyFilesFS(fs)