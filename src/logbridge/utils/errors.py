"""Custom exceptions for logbridge."""


class LogBridgeError(Exception):
    """Base exception for logbridge errors."""
    pass


class ConnectionFailure(LogBridgeError):
    """Base exception for failures while establishing a remote session."""
    pass


class AuthenticationError(ConnectionFailure):
    """Bad credentials, unreadable key file or missing agent socket."""
    pass


class HandshakeError(ConnectionFailure):
    """Host unreachable or SSH protocol negotiation failed."""
    pass


class ChannelOpenError(ConnectionFailure):
    """Session established but the SFTP channel was refused."""
    pass


class FilesystemError(LogBridgeError):
    """Base exception for per-operation filesystem errors."""
    pass


class NotFoundError(FilesystemError, FileNotFoundError):
    """Path does not exist."""
    pass


class AccessDeniedError(FilesystemError, PermissionError):
    """Path exists but cannot be read."""
    pass


class NotDirectoryError(FilesystemError, NotADirectoryError):
    """Directory listing requested on something that is not a directory."""
    pass


class BackendError(FilesystemError):
    """Backend failed for a reason other than the path itself."""
    pass


class TransientBackendError(BackendError):
    """Remote session dropped while an operation was in flight."""
    pass
