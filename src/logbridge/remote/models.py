"""Connection profile and status types."""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class AuthMethod(Enum):
    """How a profile authenticates against the remote host."""

    PASSWORD = "password"
    PRIVATE_KEY = "privateKey"
    AGENT = "agent"

    @classmethod
    def parse(cls, value: "str | AuthMethod") -> "AuthMethod":
        if isinstance(value, cls):
            return value
        normalized = str(value).replace("_", "").replace("-", "").lower()
        for method in cls:
            if method.value.lower() == normalized:
                return method
        raise ValueError(f"Unknown auth method: {value}")


class ConnectionState(Enum):
    """Connection state of the manager."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class ConnectionProfile:
    """Named description of a remote target.

    Passwords are never part of a profile; they are supplied per connect call.
    """

    name: str
    host: str
    username: str
    auth_method: AuthMethod = AuthMethod.PASSWORD
    port: int = 22
    private_key_path: str | None = None
    id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConnectionProfile":
        """Build a profile from its persisted form (camelCase or snake_case keys)."""

        def _get(*keys, default=None):
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return default

        host = _get("host")
        username = _get("username", "user")
        if not host:
            raise ValueError("Connection profile requires a host")
        if not username:
            raise ValueError("Connection profile requires a username")

        return cls(
            name=_get("name", default=host),
            host=host,
            username=username,
            auth_method=AuthMethod.parse(_get("authMethod", "auth_method", default="password")),
            port=int(_get("port", default=22)),
            private_key_path=_get("privateKeyPath", "private_key_path"),
            id=_get("id"),
        )


@dataclass(frozen=True)
class ConnectionStatus:
    """Snapshot published on every state transition."""

    state: ConnectionState = ConnectionState.DISCONNECTED
    host: str | None = None
    error: str | None = None
    remote_data_root: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "host": self.host,
            "error": self.error,
            "remoteDataRoot": self.remote_data_root,
        }


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a connection test."""

    success: bool
    error: str | None = None
