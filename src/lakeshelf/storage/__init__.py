from .clients import ClientCache, FileSystemHandle, open_file_system
from .context import DataLakeContext

__all__ = [
    "ClientCache",
    "DataLakeContext",
    "FileSystemHandle",
    "open_file_system",
]
