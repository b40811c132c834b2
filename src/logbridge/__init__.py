"""logbridge - Read session logs from the local disk or a remote host over SFTP."""

__version__ = "0.1.0"
__license__ = "GPL-3.0-or-later"

from logbridge.remote import AuthMethod
from logbridge.remote import ConnectionManager
from logbridge.remote import ConnectionProfile
from logbridge.remote import ConnectionState
from logbridge.remote import ConnectionStatus
from logbridge.sessions import extract_cwd
from logbridge.utils.fs import FilesystemProvider
from logbridge.utils.fs import LocalFilesystem
from logbridge.utils.fs import SFTPFilesystem


__all__ = [
    "ConnectionManager",
    "ConnectionProfile",
    "ConnectionState",
    "ConnectionStatus",
    "AuthMethod",
    "FilesystemProvider",
    "LocalFilesystem",
    "SFTPFilesystem",
    "extract_cwd",
    "__version__",
]
