"""Remote connection lifecycle over SSH/SFTP."""

from .manager import ConnectionManager
from .manager import remote_data_root_candidates
from .manager import resolve_remote_data_root
from .models import AuthMethod
from .models import ConnectionProfile
from .models import ConnectionState
from .models import ConnectionStatus
from .models import ConnectionTestResult
from .session import SSHSession
from .session import build_connect_kwargs
from .session import open_session


__all__ = [
    "ConnectionManager",
    "ConnectionProfile",
    "ConnectionState",
    "ConnectionStatus",
    "ConnectionTestResult",
    "AuthMethod",
    "SSHSession",
    "build_connect_kwargs",
    "open_session",
    "remote_data_root_candidates",
    "resolve_remote_data_root",
]
