"""Settings for remote connections."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import fields
from typing import Any


ENV_PREFIX = "LOGBRIDGE_"


@dataclass
class RemoteSettings:
    """Tunables used by the connection manager and the SFTP provider.

    Can be built from a plain dict (for example a section of the host
    application's config file) or from ``LOGBRIDGE_*`` environment variables.
    """

    connect_timeout: float = 10.0
    default_key_path: str = "~/.ssh/id_rsa"
    agent_env_var: str = "SSH_AUTH_SOCK"
    stream_chunk_size: int = 32768
    known_hosts_path: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RemoteSettings":
        """Build settings from a dict, ignoring unknown keys."""
        settings = cls()
        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                continue
            value = data[f.name]
            if f.name == "connect_timeout":
                value = float(value)
            elif f.name == "stream_chunk_size":
                value = int(value)
                if value <= 0:
                    raise ValueError(f"stream_chunk_size must be positive, got {value}")
            setattr(settings, f.name, value)
        return settings

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RemoteSettings":
        """Build settings from ``LOGBRIDGE_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        data = {}
        for f in fields(cls):
            value = environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if value:
                data[f.name] = value
        return cls.from_dict(data)

    def resolve_key_path(self, path: str | None = None) -> str:
        """Expand ``path`` (or the default key path) to an absolute path."""
        return os.path.expanduser(path or self.default_key_path)
