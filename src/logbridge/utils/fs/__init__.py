"""Filesystem provider abstraction for local and SFTP read access."""

from .provider import DirEntry
from .provider import FileStat
from .provider import FilesystemProvider
from .provider import LocalFilesystem
from .provider import SFTPFilesystem
from .provider import translate_error
from .stream import ReadStream


__all__ = [
    "FilesystemProvider",
    "LocalFilesystem",
    "SFTPFilesystem",
    "FileStat",
    "DirEntry",
    "ReadStream",
    "translate_error",
]
