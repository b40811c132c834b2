"""Shared fakes for SFTP and SSH session tests."""

import asyncio
import errno
import io
import stat

import paramiko
import pytest

from logbridge.utils.errors import AuthenticationError
from logbridge.utils.errors import ChannelOpenError


MTIME = 1700000000


class FakeRemoteFile(io.BytesIO):
    """In-memory remote file that can fail after a number of bytes."""

    def __init__(self, data: bytes, fail_after: int | None = None, tracker: list | None = None):
        super().__init__(data)
        self.fail_after = fail_after
        self.tracker = tracker

    def read(self, size=-1):
        if self.fail_after is not None and self.tell() >= self.fail_after:
            raise paramiko.SSHException("Channel closed.")
        if self.fail_after is not None and size > 0:
            size = min(size, self.fail_after - self.tell())
        return super().read(size)

    def close(self):
        if self.tracker is not None and not self.closed:
            self.tracker.append(self)
        super().close()


class FakeSFTPClient:
    """Enough of paramiko.SFTPClient for the SFTP provider."""

    def __init__(self, files=None, dirs=None, denied=None, fail_after=None):
        self.files: dict[str, bytes] = dict(files or {})
        self.dirs: set[str] = set(dirs or ())
        self.denied: set[str] = set(denied or ())
        self.fail_after: dict[str, int] = dict(fail_after or {})
        self.closed_handles: list[FakeRemoteFile] = []
        self.close_calls = 0
        for path in self.files:
            parent = path.rsplit("/", 1)[0] or "/"
            while parent and parent not in self.dirs:
                self.dirs.add(parent)
                parent = parent.rsplit("/", 1)[0] or ("/" if parent != "/" else "")

    def _attrs(self, path: str) -> paramiko.SFTPAttributes:
        attrs = paramiko.SFTPAttributes()
        attrs.filename = path.rsplit("/", 1)[-1]
        attrs.st_mtime = MTIME
        if path in self.files:
            attrs.st_mode = stat.S_IFREG | 0o644
            attrs.st_size = len(self.files[path])
        else:
            attrs.st_mode = stat.S_IFDIR | 0o755
            attrs.st_size = 4096
        return attrs

    def _check(self, path: str) -> None:
        if path in self.denied:
            raise IOError(errno.EACCES, "Permission denied")
        if path not in self.files and path not in self.dirs:
            raise IOError(errno.ENOENT, "No such file")

    def stat(self, path: str) -> paramiko.SFTPAttributes:
        self._check(path)
        return self._attrs(path)

    def listdir_attr(self, path: str) -> list[paramiko.SFTPAttributes]:
        self._check(path)
        if path in self.files:
            raise IOError("Failure")
        prefix = path.rstrip("/") + "/"
        children = {
            p for p in (*self.files, *self.dirs)
            if p.startswith(prefix) and "/" not in p[len(prefix):] and p != path
        }
        dot = self._attrs(path)
        dot.filename = "."
        return [dot] + [self._attrs(child) for child in sorted(children)]

    def open(self, path: str, mode: str = "r"):
        self._check(path)
        if path in self.dirs:
            raise IOError(errno.EISDIR, "Is a directory")
        return FakeRemoteFile(self.files[path], self.fail_after.get(path), self.closed_handles)

    def close(self) -> None:
        self.close_calls += 1


class FakeSession:
    """SSH session whose remote side can be dropped from a test."""

    def __init__(self, sftp: FakeSFTPClient, sftp_error: Exception | None = None):
        self.sftp = sftp
        self.sftp_error = sftp_error
        self.closed = False
        self.close_error: BaseException | None = None
        self._remote_closed = asyncio.Event()

    async def open_sftp(self):
        if self.sftp_error is not None:
            raise self.sftp_error
        return self.sftp

    async def wait_closed(self):
        await self._remote_closed.wait()
        return self.close_error

    def drop(self, error: BaseException | None = None) -> None:
        """Simulate the remote side ending the connection."""
        self.close_error = error
        self._remote_closed.set()

    def close(self) -> None:
        self.closed = True


class FakeSessionFactory:
    """Session factory that checks the password and records every attempt."""

    def __init__(self, sftp_builder=None, password="secret", error=None, sftp_error=None):
        self.sftp_builder = sftp_builder or FakeSFTPClient
        self.password = password
        self.error = error
        self.sftp_error = sftp_error
        self.calls: list[dict] = []
        self.sessions: list[FakeSession] = []
        self.gate: asyncio.Event | None = None

    async def __call__(self, connect_kwargs: dict) -> FakeSession:
        self.calls.append(connect_kwargs)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if "password" in connect_kwargs and connect_kwargs["password"] != self.password:
            raise AuthenticationError(f"Authentication failed for {connect_kwargs['hostname']}: Authentication failed.")
        session = FakeSession(self.sftp_builder(), sftp_error=self.sftp_error)
        self.sessions.append(session)
        return session


async def settle(rounds: int = 10) -> None:
    """Give pending tasks a few event loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def alice_sftp():
    """Remote host where only the macOS-style data root exists."""
    return lambda: FakeSFTPClient(
        files={"/Users/alice/.claude/projects/-work/abc.jsonl": b'{"cwd": "/work"}\n'},
    )


@pytest.fixture
def factory(alice_sftp):
    return FakeSessionFactory(sftp_builder=alice_sftp)


@pytest.fixture
def channel_refused_factory():
    return FakeSessionFactory(sftp_error=ChannelOpenError("Failed to open SFTP channel: administratively prohibited"))
