"""Store and load records in a hierarchical object store.

``DataLakeContext`` validates arguments, makes sure the target directory
exists, delegates byte conversion to a format and moves the bytes with an
async fsspec file system.

Example:
    context = DataLakeContext(load_settings())
    path = await context.store_items_as_parquet(readings, "telemetry/2024")
    again = await context.read_parquet_items(path, Reading)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from typing import Any

import lakeshelf.errors as errors
import lakeshelf.formats as formats
import lakeshelf.schema as schema_mod
import lakeshelf.settings as settings_mod
from lakeshelf.storage.clients import ClientCache, FileSystemHandle

logger = logging.getLogger(__name__)


def _require(value: str | None, name: str, operation: str) -> str:
    if value is None or not value.strip():
        raise errors.ArgumentError(operation, name, f"{name} cannot be null or empty")
    return value


def _check_target(directory_path: str | None, file_system: str | None, operation: str) -> None:
    _require(directory_path, "directory_path", operation)
    if file_system is not None:
        _require(file_system, "file_system", operation)


class DataLakeContext:
    """Record storage over one configured object store."""

    def __init__(
        self,
        settings: settings_mod.LakeshelfSettings,
        clients: ClientCache | None = None,
    ) -> None:
        if settings is None:
            raise errors.ArgumentError("Creating storage context", "settings", "settings must not be None")
        self.settings = settings
        self.connection_string = settings.require_connection_string()
        self.clients = clients or ClientCache()
        self.json = formats.JsonFormat(indent=settings.formats.json_indent)
        self.parquet = formats.ParquetFormat(compression=settings.formats.parquet_compression)

    def get_file_system(
        self,
        file_system: str | None = None,
        connection_string: str | None = None,
    ) -> FileSystemHandle:
        """Cached handle for a file system, defaulting to the configured one."""
        name = file_system if file_system is not None else self.settings.file_system
        _require(name, "file_system", "Opening file system")
        return self.clients.get_or_create(
            connection_string or self.connection_string,
            name,
            self.settings.storage_options,
        )

    # -- store ---------------------------------------------------------------

    async def store_item_as_json(
        self,
        item: Any,
        directory_path: str,
        file_system: str | None = None,
        file_name: str | None = None,
        overwrite: bool | None = None,
    ) -> str:
        """Store one record as a JSON file. Returns the stored path."""
        if item is None:
            raise errors.ArgumentError("Storing JSON", "item", "item must not be None")
        _check_target(directory_path, file_system, "Storing JSON")
        data = self.json.serialize_one(item)
        return await self._store(data, self.json, directory_path, file_system, file_name, overwrite)

    async def store_items_as_json(
        self,
        items: Sequence[Any],
        directory_path: str,
        file_system: str | None = None,
        file_name: str | None = None,
        overwrite: bool | None = None,
    ) -> str:
        """Store records as a JSON array file. Returns the stored path."""
        if items is None:
            raise errors.ArgumentError("Storing JSON", "items", "items must not be None")
        _check_target(directory_path, file_system, "Storing JSON")
        data = self.json.serialize(items)
        return await self._store(data, self.json, directory_path, file_system, file_name, overwrite)

    async def store_item_as_parquet(
        self,
        item: Any,
        directory_path: str,
        file_system: str | None = None,
        file_name: str | None = None,
        overwrite: bool | None = None,
        schema: schema_mod.SchemaSource | schema_mod.ColumnarSchema | None = None,
    ) -> str:
        """Store one record as a Parquet file. Returns the stored path."""
        _check_target(directory_path, file_system, "Storing Parquet")
        data = self.parquet.serialize_one(item, schema)
        return await self._store(data, self.parquet, directory_path, file_system, file_name, overwrite)

    async def store_items_as_parquet(
        self,
        items: Sequence[Any],
        directory_path: str,
        file_system: str | None = None,
        file_name: str | None = None,
        overwrite: bool | None = None,
        schema: schema_mod.SchemaSource | schema_mod.ColumnarSchema | None = None,
    ) -> str:
        """Store records as a single-row-group Parquet file. Returns the stored path."""
        _check_target(directory_path, file_system, "Storing Parquet")
        data = self.parquet.serialize(items, schema)
        return await self._store(data, self.parquet, directory_path, file_system, file_name, overwrite)

    async def update_json_file(
        self,
        item: Any,
        file_path: str,
        file_system: str | None = None,
    ) -> str:
        """Replace the content of an existing JSON file with ``item``.

        Raises:
            StorageError: If the file does not exist.
        """
        if item is None:
            raise errors.ArgumentError("Updating JSON file", "item", "item must not be None")
        _require(file_path, "file_path", "Updating JSON file")
        handle = self.get_file_system(file_system)
        path = handle.path(file_path)
        if not await handle.fs._exists(path):
            raise errors.StorageError(
                context=f"Updating JSON file '{file_path}'",
                cause="File does not exist",
                fix="Store the item first with store_item_as_json",
            )
        await handle.fs._pipe_file(path, self.json.serialize_one(item))
        logger.info("Updated %s", path)
        return handle.relative(path)

    # -- read ----------------------------------------------------------------

    async def read_json(self, file_path: str, record_type: type, file_system: str | None = None) -> Any:
        """First record of a JSON file, or None if it holds nothing."""
        data = await self._download(file_path, file_system)
        return self.json.deserialize_one(data, record_type)

    async def read_json_items(self, file_path: str, record_type: type, file_system: str | None = None) -> list:
        data = await self._download(file_path, file_system)
        return self.json.deserialize(data, record_type)

    async def read_parquet(self, file_path: str, record_type: type, file_system: str | None = None) -> Any:
        """First record of a Parquet file.

        Raises:
            EmptyResultError: If the file holds no rows.
        """
        data = await self._download(file_path, file_system)
        return self.parquet.deserialize_one(data, record_type)

    async def read_parquet_items(self, file_path: str, record_type: type, file_system: str | None = None) -> list:
        data = await self._download(file_path, file_system)
        return self.parquet.deserialize(data, record_type)

    # -- files ---------------------------------------------------------------

    async def file_exists(self, file_path: str, file_system: str | None = None) -> bool:
        _require(file_path, "file_path", "Checking file")
        handle = self.get_file_system(file_system)
        return await handle.fs._exists(handle.path(file_path))

    async def list_files(
        self,
        directory_path: str,
        file_system: str | None = None,
        recursive: bool = False,
    ) -> list[str]:
        """Paths of the files below a directory, relative to the file system root."""
        handle = self.get_file_system(file_system)
        path = handle.path(directory_path or "")
        if not await handle.fs._exists(path):
            return []
        if recursive:
            found = await handle.fs._find(path)
        else:
            entries = await handle.fs._ls(path, detail=True)
            found = [entry["name"] for entry in entries if entry.get("type") == "file"]
        return sorted(handle.relative(p) for p in found)

    async def delete_file(self, file_path: str, file_system: str | None = None) -> bool:
        """Delete a file. Returns False if it did not exist."""
        _require(file_path, "file_path", "Deleting file")
        handle = self.get_file_system(file_system)
        path = handle.path(file_path)
        if not await handle.fs._exists(path):
            return False
        await handle.fs._rm_file(path)
        logger.info("Deleted %s", path)
        return True

    # -- internals -----------------------------------------------------------

    async def _store(
        self,
        data: bytes,
        fmt: formats.BaseFormat,
        directory_path: str,
        file_system: str | None,
        file_name: str | None,
        overwrite: bool | None,
    ) -> str:
        handle = self.get_file_system(file_system)
        directory = handle.path(directory_path)
        await handle.fs._makedirs(directory, exist_ok=True)

        name = fmt.with_extension(file_name or str(uuid.uuid4()))
        path = handle.path(directory_path, name)
        await self._upload(
            handle,
            path,
            data,
            self.settings.upload.overwrite if overwrite is None else overwrite,
        )
        return handle.relative(path)

    async def _upload(self, handle: FileSystemHandle, path: str, data: bytes, overwrite: bool) -> None:
        """Create ``path``; on conflict delete it, pause and upload once more."""
        try:
            await self._create(handle, path, data)
        except FileExistsError as conflict:
            if not overwrite:
                raise errors.PathExistsError(handle.relative(path)) from conflict
            logger.warning("'%s' already exists, deleting and uploading again", path)
            try:
                await handle.fs._rm_file(path)
                await asyncio.sleep(self.settings.upload.retry_delay)
                await self._create(handle, path, data)
            except OSError as retry_error:
                raise errors.UploadError(handle.relative(path), conflict) from retry_error
        logger.info("Uploaded %d bytes to %s", len(data), path)

    @staticmethod
    async def _create(handle: FileSystemHandle, path: str, data: bytes) -> None:
        if await handle.fs._exists(path):
            raise FileExistsError(path)
        await handle.fs._pipe_file(path, data)

    async def _download(self, file_path: str, file_system: str | None) -> bytes:
        _require(file_path, "file_path", "Reading file")
        handle = self.get_file_system(file_system)
        path = handle.path(file_path)
        try:
            return await handle.fs._cat_file(path)
        except FileNotFoundError as e:
            raise errors.StorageError(
                context=f"Reading '{file_path}'",
                cause="File not found",
                fix="Check the path with list_files()",
            ) from e
