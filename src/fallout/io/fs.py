import functools
import io
import logging
import os
import posixpath
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import IO, List, override

import fsspec

from ..exceptions import (
    FalloutIOError,
    PathExistsError,
    PathNotFoundError,
    NotAFileError,
    NotADirError,
)

logger = logging.getLogger(__name__)


def wrap_io_error(func):
    """Decorator to wrap IO errors into fallout exceptions."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except FileExistsError as e:
            raise PathExistsError(e) from e
        except FileNotFoundError as e:
            raise PathNotFoundError(e) from e
        except IsADirectoryError as e:
            raise NotAFileError(e) from e
        except NotADirectoryError as e:
            raise NotADirError(e) from e
        except OSError as e:
            raise FalloutIOError(e) from e

    return wrapper


@dataclass(frozen=True)
class FileInfo:
    """One directory listing item"""

    name: str
    is_dir: bool
    size: int = 0


# --------------------------------------------------------
#
# Abstract Base FileSystem Interface
#
# --------------------------------------------------------
"""
    Abstract Base FileSystem Interface,
    define the basic methods the log cache needs from storage.
"""

class FileSystem(ABC):
    """Fallout File System Abstract Base Class"""

    @abstractmethod
    def read_bytes(self, path: PurePath) -> bytes:
        """Read bytes from a file"""
        pass

    @abstractmethod
    def write_bytes(self, path: PurePath, content: bytes):
        """Write bytes to a file, creating parent directories"""
        pass

    @abstractmethod
    def read_text(self, path: PurePath) -> str:
        """Read text from a file"""
        pass

    @abstractmethod
    def write_text(self, path: PurePath, content: str):
        """Write text to a file, creating parent directories"""
        pass

    @abstractmethod
    def exists(self, path: PurePath) -> bool:
        """Check if a path exists"""
        pass

    @abstractmethod
    def is_dir(self, path: PurePath) -> bool:
        """Check if a path is a directory"""
        pass

    @abstractmethod
    def is_file(self, path: PurePath) -> bool:
        """Check if a path is a file"""
        pass

    @abstractmethod
    def size(self, path: PurePath) -> int:
        """Size of a file in bytes"""
        pass

    @abstractmethod
    def mkdir(self, path: PurePath, exist_ok: bool = True):
        """Create a directory together with missing parents"""
        pass

    @abstractmethod
    def scandir(self, path: PurePath) -> List[FileInfo]:
        """List directory contents sorted by name"""
        pass

    @abstractmethod
    def remove(self, path: PurePath):
        """Remove a file"""
        pass

    @abstractmethod
    def rmtree(self, path: PurePath):
        """Remove a directory recursively"""
        pass

    @abstractmethod
    def move(self, src: PurePath, dst: PurePath):
        """Rename src to dst, replacing dst"""
        pass

    @abstractmethod
    def open(self, path: PurePath, mode: str = "rb", **kwargs) -> IO:
        """Open a file"""
        pass

    def absolute(self, path: PurePath) -> PurePath:
        """Get the absolute path"""
        return path

    def replace_bytes(self, path: PurePath, content: bytes):
        """Write content next to path and rename it into place"""
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        self.write_bytes(tmp, content)
        try:
            self.move(tmp, path)
        except Exception:
            if self.exists(tmp):
                self.remove(tmp)
            raise


# --------------------
#
# Generic FileSystem
#
# --------------------

class GenericFileSystem(FileSystem, ABC):
    """Generic File System base class for fsspec implementations"""

    def __init__(self, fs_instance, name=None):
        """
        Initialize with a filesystem instance

        Args:
            fs_instance: The underlying fsspec filesystem instance
            name: Optional name for logging purposes
        """
        self.fs = fs_instance
        self.name = name or f"{type(fs_instance).__name__}"

    @abstractmethod
    def path2str(self, path: PurePath) -> str:
        """Convert a path to the string the backend understands"""
        pass

    @override
    @wrap_io_error
    def read_bytes(self, path: PurePath) -> bytes:
        logger.debug(f"[{self.name}] Reading bytes from: {path}")
        return self.fs.cat_file(self.path2str(path))

    @override
    @wrap_io_error
    def write_bytes(self, path: PurePath, content: bytes):
        logger.debug(f"[{self.name}] Writing {len(content)} bytes to: {path}")
        self.fs.mkdirs(self.path2str(path.parent), exist_ok=True)
        with self.fs.open(self.path2str(path), "wb") as f:
            f.write(content)

    @override
    @wrap_io_error
    def read_text(self, path: PurePath, encoding: str = "utf-8") -> str:
        logger.debug(f"[{self.name}] Reading from: {path}")
        return self.read_bytes(path).decode(encoding)

    @override
    @wrap_io_error
    def write_text(self, path: PurePath, content: str, encoding: str = "utf-8"):
        self.write_bytes(path, content.encode(encoding))

    @override
    def exists(self, path: PurePath) -> bool:
        return self.fs.exists(self.path2str(path))

    @override
    def is_dir(self, path: PurePath) -> bool:
        return self.fs.isdir(self.path2str(path))

    @override
    def is_file(self, path: PurePath) -> bool:
        return self.fs.isfile(self.path2str(path))

    @override
    @wrap_io_error
    def size(self, path: PurePath) -> int:
        return int(self.fs.info(self.path2str(path)).get("size") or 0)

    @override
    @wrap_io_error
    def mkdir(self, path: PurePath, exist_ok: bool = True):
        self.fs.mkdirs(self.path2str(path), exist_ok=exist_ok)

    @override
    @wrap_io_error
    def scandir(self, path: PurePath) -> List[FileInfo]:
        items = []
        for info in self.fs.ls(self.path2str(path), detail=True):
            name = posixpath.basename(str(info["name"]).rstrip("/"))
            items.append(
                FileInfo(
                    name=name,
                    is_dir=info.get("type") == "directory",
                    size=int(info.get("size") or 0),
                )
            )
        return sorted(items, key=lambda i: i.name)

    @override
    @wrap_io_error
    def remove(self, path: PurePath):
        logger.debug(f"[{self.name}] Removing: {path}")
        self.fs.rm_file(self.path2str(path))

    @override
    @wrap_io_error
    def rmtree(self, path: PurePath):
        if self.fs.exists(self.path2str(path)):
            logger.debug(f"[{self.name}] Removing tree: {path}")
            self.fs.rm(self.path2str(path), recursive=True)
        else:
            logger.debug(f"Path {path} does not exist, skipping rmtree.")

    @override
    @wrap_io_error
    def move(self, src: PurePath, dst: PurePath):
        logger.debug(f"[{self.name}] Moving '{src}' to '{dst}'")
        self.fs.mv(self.path2str(src), self.path2str(dst))

    @override
    @wrap_io_error
    def open(self, path: PurePath, mode: str = "rb", **kwargs) -> IO:
        logger.debug(f"[{self.name}] Opening: {path} with mode '{mode}'")
        if "w" in mode or "a" in mode:
            parent_path_str = self.path2str(path.parent)
            if parent_path_str and parent_path_str != "/":
                self.fs.mkdirs(parent_path_str, exist_ok=True)
        return self.fs.open(self.path2str(path), mode=mode, **kwargs)


class FsspecFileSystem(GenericFileSystem):
    """fsspec-based File System"""

    def __init__(self, protocol="file", **storage_options):
        fs_instance = fsspec.filesystem(protocol, **storage_options)
        super().__init__(fs_instance, name=f"{protocol}FS")
        self.protocol = protocol

    @override
    def path2str(self, path: PurePath) -> str:
        return str(path)


# --------------------
#
# Disk FileSystem
#
# --------------------

class DiskFileSystem(FsspecFileSystem):
    """Local disk file system using fsspec"""

    def __init__(self):
        super().__init__(protocol="file")

    @override
    def absolute(self, path: PurePath) -> PurePath:
        return Path(path).absolute()

    @override
    @wrap_io_error
    def size(self, path: PurePath) -> int:
        return Path(path).stat().st_size

    @override
    @wrap_io_error
    def move(self, src: PurePath, dst: PurePath):
        os.replace(src, dst)

    @override
    @wrap_io_error
    def open(self, path: PurePath, mode: str = "rb", **kwargs) -> IO:
        if "w" in mode or "a" in mode:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        return open(path, mode, **kwargs)


# --------------------
#
# Memory (Fake) FileSystem
#
# --------------------

class MemoryFileSystem(FsspecFileSystem):
    """
    in-memory filesystem using fsspec, every instance owns an independent store
    """

    def __init__(self):
        super().__init__(protocol="memory", global_store=False, skip_instance_cache=True)

    @override
    def path2str(self, path: PurePath) -> str:
        return PurePath(path).as_posix()

    @override
    def absolute(self, path: PurePath) -> PurePath:
        path_str = PurePath(path).as_posix()
        if not path_str.startswith("/"):
            path_str = "/" + path_str
        return PurePath(path_str)

    @override
    @wrap_io_error
    def open(self, path: PurePath, mode: str = "rb", **kwargs) -> IO:
        # stored files are shared BytesIO objects, readers get their own copy
        if mode == "rb":
            return io.BytesIO(self.fs.cat_file(self.path2str(path)))
        return super().open(path, mode, **kwargs)


# --------------------
#
# Helper Functions
#
# --------------------

def create_fs(use_vfs: bool = False) -> FileSystem:
    """
    Create the file system the cache lives on, in memory when use_vfs is set.
    """
    if use_vfs:
        return MemoryFileSystem()
    return DiskFileSystem()
