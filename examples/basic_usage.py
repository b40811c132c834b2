"""Basic usage examples for logbridge."""

import asyncio

from logbridge import AuthMethod
from logbridge import ConnectionManager
from logbridge import ConnectionProfile
from logbridge import extract_cwd
from logbridge.utils.errors import FilesystemError
from logbridge.utils.logging import setup_logging


PROFILE = ConnectionProfile(
    name="Build box",
    host="build.local",
    username="alice",
    auth_method=AuthMethod.PRIVATE_KEY,
)


async def example_list_sessions(manager: ConnectionManager):
    """Example: List session transcripts wherever the logs currently live."""
    fs = manager.get_provider()
    root = manager.get_remote_data_root() or "/home/alice/.claude/projects"

    for project in await fs.list_dir(root):
        if not project.is_directory:
            continue
        project_dir = f"{root}/{project.name}"
        for entry in await fs.list_dir(project_dir):
            if entry.name.endswith(".jsonl"):
                cwd = await extract_cwd(fs, f"{project_dir}/{entry.name}")
                print(f"{entry.name}: {cwd}")


async def example_tail(manager: ConnectionManager, path: str, offset: int):
    """Example: Resume reading a transcript from a byte offset."""
    stream = manager.get_provider().open_read_stream(path, start=offset, encoding="utf-8")
    try:
        async for line in stream.lines():
            print(line)
    except FilesystemError as e:
        print(f"Read failed: {e}")


async def main():
    setup_logging("INFO")
    manager = ConnectionManager()
    manager.subscribe(lambda status: print(f"Status: {status.state.value} {status.error or ''}"))

    result = await manager.test_connection(PROFILE)
    if not result.success:
        print(f"Profile check failed: {result.error}")
        return

    try:
        await manager.connect(PROFILE)
        await example_list_sessions(manager)
    finally:
        manager.dispose()


if __name__ == '__main__':
    asyncio.run(main())
