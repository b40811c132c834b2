"""Connection lifecycle manager: owns the active filesystem provider."""

import asyncio
import functools
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Mapping
from typing import Any
from typing import Protocol

from logbridge.config import RemoteSettings
from logbridge.utils.errors import LogBridgeError
from logbridge.utils.fs import FilesystemProvider
from logbridge.utils.fs import LocalFilesystem
from logbridge.utils.fs import SFTPFilesystem

from .models import ConnectionProfile
from .models import ConnectionState
from .models import ConnectionStatus
from .models import ConnectionTestResult
from .session import build_connect_kwargs
from .session import open_session


logger = logging.getLogger(__name__)

StatusCallback = Callable[[ConnectionStatus], None]


class Session(Protocol):
    """What the manager needs from an SSH session."""

    async def open_sftp(self) -> Any: ...

    async def wait_closed(self) -> BaseException | None: ...

    def close(self) -> None: ...


SessionFactory = Callable[[dict[str, Any]], Awaitable[Session]]


def remote_data_root_candidates(username: str) -> list[str]:
    """Conventional locations of the session-log directory, in probe order."""
    return [
        f"/home/{username}/.claude/projects",
        f"/Users/{username}/.claude/projects",
        "/root/.claude/projects",
    ]


async def resolve_remote_data_root(fs: FilesystemProvider, username: str) -> str:
    """Return the first candidate that exists, else the Linux-style default."""
    candidates = remote_data_root_candidates(username)
    for candidate in candidates:
        if await fs.exists(candidate):
            return candidate
    logger.info(f"No session-log directory found for {username}, defaulting to {candidates[0]}")
    return candidates[0]


class ConnectionManager:
    """
    Switch session-log reads between the local disk and one remote host.

    Callers fetch the active provider with ``get_provider()`` for every
    operation instead of holding on to it, because connect/disconnect swap it.

    Usage:
        manager = ConnectionManager()
        unsubscribe = manager.subscribe(lambda status: print(status.state))
        await manager.connect(profile, password="...")
        fs = manager.get_provider()
        entries = await fs.list_dir(manager.get_remote_data_root())
    """

    def __init__(
        self,
        settings: RemoteSettings | None = None,
        session_factory: SessionFactory | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.settings = settings or RemoteSettings()
        self._session_factory = session_factory or functools.partial(
            open_session, known_hosts_path=self.settings.known_hosts_path
        )
        self._environ = environ
        self._local = LocalFilesystem(chunk_size=self.settings.stream_chunk_size)
        self._provider: FilesystemProvider = self._local
        self._session: Session | None = None
        self._watcher: asyncio.Task | None = None
        self._subscribers: list[StatusCallback] = []
        self._attempt = 0
        self._disposed = False

        self._state = ConnectionState.DISCONNECTED
        self._host: str | None = None
        self._error: str | None = None
        self._remote_data_root: str | None = None

    # Accessors

    def get_provider(self) -> FilesystemProvider:
        """Return the active provider (local or SFTP)."""
        return self._provider

    def get_status(self) -> ConnectionStatus:
        return ConnectionStatus(
            state=self._state,
            host=self._host,
            error=self._error,
            remote_data_root=self._remote_data_root,
        )

    def get_remote_data_root(self) -> str | None:
        """Return the resolved session-log directory on the remote host."""
        return self._remote_data_root

    def is_remote(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._provider.type == "ssh"

    # Subscriptions

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """Register a status callback; returns a function that unregisters it."""
        self._subscribers.append(callback)
        return functools.partial(self.unsubscribe, callback)

    def unsubscribe(self, callback: StatusCallback) -> None:
        self._subscribers = [s for s in self._subscribers if s is not callback]

    # Lifecycle

    async def connect(self, profile: ConnectionProfile, password: str | None = None) -> None:
        """
        Connect to ``profile`` and switch reads to the remote host.

        Any previous session is torn down first. Callers must not run two
        connects concurrently.

        Raises:
            AuthenticationError: Credentials rejected, key unreadable or agent missing
            HandshakeError: Host unreachable or negotiation failed
            ChannelOpenError: SFTP subsystem refused
            ConnectionAbortedError: A disconnect or newer connect superseded this one
        """
        if self._disposed:
            raise LogBridgeError("Connection manager has been disposed")

        self._teardown()
        self._attempt += 1
        attempt = self._attempt

        self._host = profile.host
        self._error = None
        self._remote_data_root = None
        self._set_state(ConnectionState.CONNECTING)
        logger.info(f"Connecting to {profile.username}@{profile.host}:{profile.port}")

        session: Session | None = None
        remote_fs: SFTPFilesystem | None = None
        try:
            connect_kwargs = await build_connect_kwargs(
                profile, password=password, settings=self.settings, environ=self._environ
            )
            self._check_current(attempt)

            session = await self._session_factory(connect_kwargs)
            self._check_current(attempt)

            sftp = await session.open_sftp()
            remote_fs = SFTPFilesystem(sftp, chunk_size=self.settings.stream_chunk_size)
            self._check_current(attempt)

            remote_data_root = await resolve_remote_data_root(remote_fs, profile.username)
            self._check_current(attempt)
        except asyncio.CancelledError:
            self._discard(session, remote_fs)
            if attempt == self._attempt:
                logger.info(f"Connection to {profile.host} cancelled")
                self._reset_to_local()
                self._set_state(ConnectionState.DISCONNECTED)
            raise
        except ConnectionAbortedError:
            self._discard(session, remote_fs)
            raise
        except Exception as e:
            self._discard(session, remote_fs)
            if attempt != self._attempt:
                raise
            message = str(e) or type(e).__name__
            logger.error(f"Connection to {profile.host} failed: {message}")
            self._error = message
            self._set_state(ConnectionState.ERROR)
            raise

        self._session = session
        self._provider = remote_fs
        self._remote_data_root = remote_data_root
        self._watcher = asyncio.create_task(self._watch(session, attempt))
        logger.info(f"Connected to {profile.host}:{profile.port}, session logs at {remote_data_root}")
        self._set_state(ConnectionState.CONNECTED)

    async def test_connection(
        self, profile: ConnectionProfile, password: str | None = None
    ) -> ConnectionTestResult:
        """Check that ``profile`` can authenticate and open SFTP, without switching to it."""
        session: Session | None = None
        sftp = None
        try:
            connect_kwargs = await build_connect_kwargs(
                profile, password=password, settings=self.settings, environ=self._environ
            )
            session = await self._session_factory(connect_kwargs)
            sftp = await session.open_sftp()
            return ConnectionTestResult(success=True)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.info(f"Connection test for {profile.host} failed: {message}")
            return ConnectionTestResult(success=False, error=message)
        finally:
            if sftp is not None:
                try:
                    sftp.close()
                except Exception as e:
                    logger.debug(f"Ignoring error while closing test SFTP channel: {e}")
            if session is not None:
                self._close_session(session)

    def disconnect(self) -> None:
        """Drop any remote session and switch back to local reads."""
        if self._state is ConnectionState.DISCONNECTED and self._session is None:
            return

        self._attempt += 1
        self._teardown()
        self._reset_to_local()
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Switched to local mode")

    def dispose(self) -> None:
        """Release everything. The manager cannot be reused afterwards."""
        if self._disposed:
            return

        self._disposed = True
        self._attempt += 1
        try:
            self._teardown()
            self._local.dispose()
        except Exception as e:
            logger.debug(f"Ignoring error during dispose: {e}")
        self._reset_to_local()
        self._state = ConnectionState.DISCONNECTED
        self._subscribers.clear()

    # Internals

    async def _watch(self, session: Session, attempt: int) -> None:
        try:
            error = await session.wait_closed()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e

        if attempt != self._attempt or self._session is not session:
            return
        self._handle_remote_closed(error)

    def _handle_remote_closed(self, error: BaseException | None) -> None:
        if self._state is not ConnectionState.CONNECTED:
            return

        if error is not None:
            logger.warning(f"SSH connection to {self._host} lost: {error}")
        else:
            logger.warning(f"SSH connection to {self._host} closed by remote side")

        self._watcher = None
        self._attempt += 1
        self._teardown()
        self._reset_to_local()
        if error is not None:
            self._error = str(error) or type(error).__name__
        self._set_state(ConnectionState.DISCONNECTED)

    def _check_current(self, attempt: int) -> None:
        if attempt != self._attempt:
            raise ConnectionAbortedError("Connection attempt was superseded")

    def _reset_to_local(self) -> None:
        self._provider = self._local
        self._host = None
        self._error = None
        self._remote_data_root = None

    def _teardown(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None and not watcher.done():
            try:
                watcher.cancel()
            except RuntimeError as e:
                # Event loop already closed
                logger.debug(f"Could not cancel connection watcher: {e}")

        provider = self._provider
        self._provider = self._local
        if provider is not self._local:
            provider.dispose()

        session, self._session = self._session, None
        if session is not None:
            self._close_session(session)

    def _discard(self, session: Session | None, remote_fs: SFTPFilesystem | None) -> None:
        if remote_fs is not None:
            remote_fs.dispose()
        if session is not None:
            self._close_session(session)

    @staticmethod
    def _close_session(session: Session) -> None:
        try:
            session.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing session: {e}")

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        status = self.get_status()
        for callback in list(self._subscribers):
            try:
                callback(status)
            except Exception as e:
                logger.error(f"Status subscriber error: {e}")

