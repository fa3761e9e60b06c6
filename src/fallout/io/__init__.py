"""
Fallout IO Module

- FileSystem: Abstract file system interface the log cache is written against
- DiskFileSystem: Local disk file system
- MemoryFileSystem: In-memory file system for testing and throwaway caches
- FileInfo: One directory listing item

Usage:
    from fallout.io import create_fs

    fs = create_fs()
    for item in fs.scandir(Path("/var/cache/fallout")):
        ...
"""

from .fs import (
    FileInfo,
    FileSystem,
    GenericFileSystem,
    FsspecFileSystem,
    DiskFileSystem,
    MemoryFileSystem,
    create_fs,
    wrap_io_error,
)

__all__ = [
    'FileInfo',
    'FileSystem',
    'GenericFileSystem',
    'FsspecFileSystem',
    'DiskFileSystem',
    'MemoryFileSystem',
    'create_fs',
    'wrap_io_error',
]
