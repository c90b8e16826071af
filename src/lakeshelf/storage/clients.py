"""Cached file system handles.

A handle pairs an async fsspec file system with the root path of one
file system (container) inside it. Handles are cached per
(connection string, file system name); the first caller builds the
handle and later callers share it.
"""

from __future__ import annotations

import logging
import posixpath
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import fsspec
from fsspec.asyn import AsyncFileSystem
from fsspec.implementations.asyn_wrapper import AsyncFileSystemWrapper

import lakeshelf.errors as errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileSystemHandle:
    """An async file system rooted at one container."""

    fs: AsyncFileSystem
    root: str
    name: str

    def path(self, *parts: str) -> str:
        """Absolute store path for ``parts`` below the container root."""
        cleaned = [part.strip("/") for part in parts if part and part.strip("/")]
        return posixpath.join(self.root, *cleaned)

    def relative(self, path: str) -> str:
        """Path below the container root, as returned to callers."""
        trimmed = path.lstrip("/")
        root = self.root.lstrip("/")
        if root and (trimmed == root or trimmed.startswith(root + "/")):
            trimmed = trimmed[len(root):]
        return trimmed.lstrip("/")


def open_file_system(
    connection_string: str,
    file_system: str,
    storage_options: dict[str, Any] | None = None,
) -> FileSystemHandle:
    """Build a handle from an fsspec URL.

    Natively async implementations are created with ``asynchronous=True``;
    synchronous ones are wrapped so the same coroutine API applies.

    Raises:
        ConfigurationError: If the URL's protocol is not available.
    """
    options = dict(storage_options or {})
    protocol, _ = fsspec.core.split_protocol(connection_string)
    try:
        fs_class = fsspec.get_filesystem_class(protocol or "file")
    except (ImportError, ValueError) as e:
        raise errors.ConfigurationError(
            context=f"Opening storage '{connection_string}'",
            cause=str(e),
            fix="Install the fsspec implementation for this protocol (e.g. adlfs for abfs://)",
        ) from e

    if fs_class.async_impl:
        options.setdefault("asynchronous", True)

    fs, base = fsspec.core.url_to_fs(connection_string, **options)
    if not fs.async_impl:
        fs = AsyncFileSystemWrapper(fs, asynchronous=True)

    root = posixpath.join(base.rstrip("/") or "/", file_system.strip("/"))
    logger.debug("Opened %s file system at '%s'", protocol or "file", root)
    return FileSystemHandle(fs=fs, root=root, name=file_system)


class ClientCache:
    """Get-or-create cache of file system handles.

    Creation happens under a lock so concurrent first access for one key
    builds a single handle.
    """

    def __init__(
        self,
        factory: Callable[[str, str, dict[str, Any]], FileSystemHandle] = open_file_system,
    ) -> None:
        self._factory = factory
        self._handles: dict[tuple[str, str], FileSystemHandle] = {}
        self._lock = threading.Lock()

    def get_or_create(
        self,
        connection_string: str,
        file_system: str,
        storage_options: dict[str, Any] | None = None,
    ) -> FileSystemHandle:
        key = (connection_string, file_system)
        handle = self._handles.get(key)
        if handle is not None:
            return handle
        with self._lock:
            handle = self._handles.get(key)
            if handle is None:
                handle = self._factory(connection_string, file_system, storage_options or {})
                self._handles[key] = handle
            return handle

    def __len__(self) -> int:
        return len(self._handles)

    def clear(self) -> None:
        with self._lock:
            self._handles.clear()
