"""Filesystem abstraction for local and SFTP read access."""

import asyncio
import errno
import logging
import os
import stat as stat_module
from abc import ABC
from abc import abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import paramiko

from logbridge.utils.errors import AccessDeniedError
from logbridge.utils.errors import BackendError
from logbridge.utils.errors import FilesystemError
from logbridge.utils.errors import NotDirectoryError
from logbridge.utils.errors import NotFoundError
from logbridge.utils.errors import TransientBackendError

from .stream import ReadStream
from .stream import pump_blocking_reader


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 32768


@dataclass(frozen=True)
class FileStat:
    """Stat result that works for both local and SFTP."""

    size: int
    modified_at_ms: float
    created_at_ms: float
    is_file: bool
    is_directory: bool


@dataclass(frozen=True)
class DirEntry:
    """Directory entry; optional fields are only set when the listing carries them."""

    name: str
    is_file: bool
    is_directory: bool
    size: int | None = None
    modified_at_ms: float | None = None
    created_at_ms: float | None = None


def translate_error(exc: BaseException, path: str) -> FilesystemError:
    """Map an OS, SFTP or transport error onto the filesystem error taxonomy."""
    if isinstance(exc, (paramiko.SSHException, EOFError, ConnectionError)):
        return TransientBackendError(f"Remote session error while accessing {path}: {exc}")

    code = getattr(exc, "errno", None)
    reason = getattr(exc, "strerror", None) or str(exc)
    if isinstance(exc, FileNotFoundError) or code == errno.ENOENT:
        return NotFoundError(f"No such file or directory: {path}")
    if isinstance(exc, PermissionError) or code in (errno.EACCES, errno.EPERM):
        return AccessDeniedError(f"Permission denied: {path}")
    if isinstance(exc, NotADirectoryError) or code == errno.ENOTDIR:
        return NotDirectoryError(f"Not a directory: {path}")
    return BackendError(f"Failed to access {path}: {reason}")


def _mode_flags(mode: int | None) -> tuple[bool, bool]:
    file_type = stat_module.S_IFMT(mode or 0)
    return file_type == stat_module.S_IFREG, file_type == stat_module.S_IFDIR


class FilesystemProvider(ABC):
    """Abstract read-only filesystem provider."""

    type: str = ""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if path exists. Never raises."""
        pass

    @abstractmethod
    async def read_file(self, path: str, encoding: str = "utf-8") -> str:
        """Read a whole file as text."""
        pass

    @abstractmethod
    async def stat(self, path: str) -> FileStat:
        """Get file or directory stats."""
        pass

    @abstractmethod
    async def list_dir(self, path: str) -> list[DirEntry]:
        """List directory contents (unordered)."""
        pass

    @abstractmethod
    def open_read_stream(self, path: str, start: int = 0, encoding: str | None = None) -> ReadStream:
        """Open a lazy stream over the file, optionally resuming at byte ``start``."""
        pass

    @abstractmethod
    def dispose(self) -> None:
        """Release backend resources. Idempotent."""
        pass


class LocalFilesystem(FilesystemProvider):
    """Local filesystem provider."""

    type = "local"

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.chunk_size = chunk_size

    async def exists(self, path: str) -> bool:
        if not path:
            return False
        try:
            return Path(path).exists()
        except (OSError, ValueError):
            return False

    async def read_file(self, path: str, encoding: str = "utf-8") -> str:
        try:
            async with aiofiles.open(path, "r", encoding=encoding) as f:
                return await f.read()
        except (OSError, UnicodeDecodeError, LookupError) as e:
            raise translate_error(e, path) from e

    async def stat(self, path: str) -> FileStat:
        try:
            st = await asyncio.to_thread(os.stat, path)
        except OSError as e:
            raise translate_error(e, path) from e

        # st_birthtime only exists on macOS/BSD (and Windows on 3.12+)
        created = getattr(st, "st_birthtime", None) or st.st_ctime
        return FileStat(
            size=st.st_size,
            modified_at_ms=st.st_mtime * 1000,
            created_at_ms=created * 1000,
            is_file=stat_module.S_ISREG(st.st_mode),
            is_directory=stat_module.S_ISDIR(st.st_mode),
        )

    async def list_dir(self, path: str) -> list[DirEntry]:

        def _list_dir():
            with os.scandir(path) as it:
                return [
                    DirEntry(
                        name=item.name,
                        is_file=item.is_file(),
                        is_directory=item.is_dir(),
                    )
                    for item in it
                ]

        try:
            return await asyncio.to_thread(_list_dir)
        except OSError as e:
            raise translate_error(e, path) from e

    def open_read_stream(self, path: str, start: int = 0, encoding: str | None = None) -> ReadStream:
        chunk_size = self.chunk_size

        async def _chunks() -> AsyncIterator[bytes]:
            try:
                async with aiofiles.open(path, "rb") as f:
                    if start > 0:
                        await f.seek(start)
                    while True:
                        data = await f.read(chunk_size)
                        if not data:
                            break
                        yield data
            except OSError as e:
                raise translate_error(e, path) from e

        return ReadStream(_chunks, encoding=encoding, path=path)

    def dispose(self) -> None:
        pass


class SFTPFilesystem(FilesystemProvider):
    """SFTP filesystem provider over one live paramiko channel.

    The channel is created by the connection manager and handed over at
    construction; this provider closes it on ``dispose`` but never touches the
    SSH connection underneath.
    """

    type = "ssh"

    def __init__(self, sftp: paramiko.SFTPClient, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._sftp = sftp
        self.chunk_size = chunk_size
        self._disposed = False

    async def exists(self, path: str) -> bool:
        if not path:
            return False
        try:
            await asyncio.to_thread(self._sftp.stat, path)
            return True
        except Exception:
            return False

    async def read_file(self, path: str, encoding: str = "utf-8") -> str:

        def _read():
            with self._sftp.open(path, "rb") as handle:
                return handle.read().decode(encoding)

        try:
            return await asyncio.to_thread(_read)
        except Exception as e:
            raise translate_error(e, path) from e

    async def stat(self, path: str) -> FileStat:
        try:
            attrs = await asyncio.to_thread(self._sftp.stat, path)
        except Exception as e:
            raise translate_error(e, path) from e

        is_file, is_directory = _mode_flags(attrs.st_mode)
        # SFTP carries no birth time, so mtime stands in for it
        mtime_ms = (attrs.st_mtime or 0) * 1000
        return FileStat(
            size=attrs.st_size or 0,
            modified_at_ms=mtime_ms,
            created_at_ms=mtime_ms,
            is_file=is_file,
            is_directory=is_directory,
        )

    async def list_dir(self, path: str) -> list[DirEntry]:

        def _list_dir():
            try:
                return self._sftp.listdir_attr(path)
            except OSError as listing_error:
                # Servers report listing a regular file as a generic failure
                try:
                    attrs = self._sftp.stat(path)
                except OSError:
                    raise listing_error from None
                if not stat_module.S_ISDIR(attrs.st_mode or 0):
                    raise NotDirectoryError(f"Not a directory: {path}") from listing_error
                raise listing_error

        try:
            listing = await asyncio.to_thread(_list_dir)
        except FilesystemError:
            raise
        except Exception as e:
            raise translate_error(e, path) from e

        entries = []
        for attrs in listing:
            if attrs.filename in (".", ".."):
                continue
            is_file, is_directory = _mode_flags(attrs.st_mode)
            mtime_ms = attrs.st_mtime * 1000 if attrs.st_mtime is not None else None
            entries.append(
                DirEntry(
                    name=attrs.filename,
                    is_file=is_file,
                    is_directory=is_directory,
                    size=attrs.st_size,
                    modified_at_ms=mtime_ms,
                    created_at_ms=mtime_ms,
                )
            )
        return entries

    def open_read_stream(self, path: str, start: int = 0, encoding: str | None = None) -> ReadStream:
        sftp = self._sftp
        chunk_size = self.chunk_size

        async def _chunks() -> AsyncIterator[bytes]:
            pumped = pump_blocking_reader(
                lambda: sftp.open(path, "rb"),
                start=start,
                chunk_size=chunk_size,
            )
            try:
                async for data in pumped:
                    yield data
            except Exception as e:
                raise translate_error(e, path) from e
            finally:
                await pumped.aclose()

        return ReadStream(_chunks, encoding=encoding, path=path)

    def dispose(self) -> None:
        if self._disposed:
            return

        self._disposed = True
        try:
            self._sftp.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing SFTP channel: {e}")
