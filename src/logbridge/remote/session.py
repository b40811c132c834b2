"""SSH session primitive built on paramiko."""

import asyncio
import io
import logging
import os
import socket
from collections.abc import Mapping
from typing import Any

import aiofiles
import paramiko

from logbridge.config import RemoteSettings
from logbridge.utils.errors import AuthenticationError
from logbridge.utils.errors import ChannelOpenError
from logbridge.utils.errors import HandshakeError

from .models import AuthMethod
from .models import ConnectionProfile


logger = logging.getLogger(__name__)

KEY_CLASSES = (paramiko.RSAKey, paramiko.Ed25519Key, paramiko.ECDSAKey)


def parse_private_key(key_data: str, key_path: str) -> paramiko.PKey:
    """Parse key text, trying each supported key type in turn."""
    for key_class in KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(key_data))
        except (paramiko.SSHException, ValueError):
            continue
    raise AuthenticationError(f"Unsupported or invalid private key at {key_path}")


async def build_connect_kwargs(
    profile: ConnectionProfile,
    password: str | None = None,
    settings: RemoteSettings | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    Build ``SSHClient.connect`` arguments for exactly one auth method.

    Args:
        profile: Target host and auth method
        password: Password for ``AuthMethod.PASSWORD``
        settings: Timeouts and default key path
        environ: Environment to look up the agent socket in (defaults to os.environ)

    Returns:
        Keyword arguments for ``paramiko.SSHClient.connect``

    Raises:
        AuthenticationError: If the key file cannot be read or parsed, or
            the agent socket variable is unset
    """
    settings = settings or RemoteSettings()
    environ = os.environ if environ is None else environ

    kwargs: dict[str, Any] = {
        "hostname": profile.host,
        "port": profile.port,
        "username": profile.username,
        "timeout": settings.connect_timeout,
        "banner_timeout": settings.connect_timeout,
        "auth_timeout": settings.connect_timeout,
        "look_for_keys": False,
        "allow_agent": False,
    }

    if profile.auth_method is AuthMethod.PASSWORD:
        kwargs["password"] = password or ""

    elif profile.auth_method is AuthMethod.PRIVATE_KEY:
        key_path = settings.resolve_key_path(profile.private_key_path)
        try:
            async with aiofiles.open(key_path, "r", encoding="utf-8") as f:
                key_data = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise AuthenticationError(f"Cannot read private key at {key_path}: {e}") from e
        kwargs["pkey"] = parse_private_key(key_data, key_path)

    elif profile.auth_method is AuthMethod.AGENT:
        if not environ.get(settings.agent_env_var):
            raise AuthenticationError(f"{settings.agent_env_var} environment variable is not set")
        kwargs["allow_agent"] = True

    return kwargs


class SSHSession:
    """A live, authenticated SSH connection."""

    def __init__(self, client: paramiko.SSHClient):
        self._client = client
        self._closed = False

    @property
    def transport(self) -> paramiko.Transport | None:
        return self._client.get_transport()

    @property
    def is_active(self) -> bool:
        transport = self.transport
        return not self._closed and transport is not None and transport.is_active()

    async def open_sftp(self) -> paramiko.SFTPClient:
        """Open the SFTP channel on top of this session."""
        try:
            return await asyncio.to_thread(self._client.open_sftp)
        except Exception as e:
            raise ChannelOpenError(f"Failed to open SFTP channel: {e}") from e

    async def wait_closed(self) -> BaseException | None:
        """Wait until the transport thread stops; return its error, if any."""
        transport = self.transport
        if transport is None:
            return None

        await asyncio.to_thread(transport.join)
        return transport.get_exception()

    def close(self) -> None:
        if self._closed:
            return

        self._closed = True
        try:
            self._client.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing SSH session: {e}")


async def open_session(connect_kwargs: dict[str, Any], known_hosts_path: str | None = None) -> SSHSession:
    """
    Connect and authenticate.

    Raises:
        AuthenticationError: If the server rejected the credentials
        HandshakeError: If the host is unreachable or negotiation failed
    """

    def _connect() -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        try:
            if known_hosts_path:
                client.load_host_keys(os.path.expanduser(known_hosts_path))
            else:
                client.load_system_host_keys()
        except OSError as e:
            logger.debug(f"Could not load known hosts: {e}")
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(**connect_kwargs)
        except Exception:
            client.close()
            raise
        return client

    def _close_abandoned(fut: asyncio.Future) -> None:
        if fut.cancelled() or fut.exception() is not None:
            return
        logger.debug(f"Closing SSH client for abandoned connect to {host}")
        fut.result().close()

    host = connect_kwargs.get("hostname")
    connecting = asyncio.ensure_future(asyncio.to_thread(_connect))
    try:
        client = await asyncio.shield(connecting)
    except asyncio.CancelledError:
        # The worker thread cannot be interrupted; close whatever it returns
        connecting.add_done_callback(_close_abandoned)
        raise
    except paramiko.AuthenticationException as e:
        raise AuthenticationError(f"Authentication failed for {host}: {e}") from e
    except (paramiko.SSHException, socket.timeout, OSError, EOFError) as e:
        raise HandshakeError(f"Could not connect to {host}: {e}") from e

    transport = client.get_transport()
    if transport is not None:
        transport.set_keepalive(30)
    return SSHSession(client)
