"""Unit tests for the local filesystem provider."""

import pytest

from logbridge.utils.errors import BackendError
from logbridge.utils.errors import FilesystemError
from logbridge.utils.errors import NotDirectoryError
from logbridge.utils.errors import NotFoundError
from logbridge.utils.fs import LocalFilesystem
from logbridge.utils.fs import ReadStream


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "projects").mkdir()
    (tmp_path / "projects" / "session.jsonl").write_text('{"a": 1}\n{"b": 2}\n', encoding="utf-8")
    (tmp_path / "projects" / "nested").mkdir()
    (tmp_path / "unicode.txt").write_bytes("héllo wörld".encode("utf-8"))
    return tmp_path


@pytest.mark.asyncio
class TestLocalFilesystem:
    """Test the local provider against a temporary directory."""

    async def test_exists(self, tree):
        fs = LocalFilesystem()

        assert await fs.exists(str(tree / "projects"))
        assert await fs.exists(str(tree / "projects" / "session.jsonl"))
        assert not await fs.exists(str(tree / "missing"))

    async def test_exists_never_raises(self, tree):
        fs = LocalFilesystem()

        assert not await fs.exists("")
        assert not await fs.exists(str(tree / "bad\0name"))
        assert not await fs.exists(str(tree / "projects" / "session.jsonl" / "child"))

    async def test_read_file(self, tree):
        fs = LocalFilesystem()

        content = await fs.read_file(str(tree / "unicode.txt"))
        assert content == "héllo wörld"

    async def test_read_missing_file(self, tree):
        fs = LocalFilesystem()

        with pytest.raises(NotFoundError) as exc_info:
            await fs.read_file(str(tree / "missing.txt"))

        assert isinstance(exc_info.value, FileNotFoundError)
        assert "missing.txt" in str(exc_info.value)

    async def test_read_file_decode_errors(self, tree):
        fs = LocalFilesystem()
        (tree / "binary.bin").write_bytes(b"\xff\xfe\x00garbage")

        with pytest.raises(BackendError) as exc_info:
            await fs.read_file(str(tree / "binary.bin"))
        assert "binary.bin" in str(exc_info.value)

        with pytest.raises(BackendError):
            await fs.read_file(str(tree / "unicode.txt"), encoding="no-such-codec")

    async def test_stat_file_and_directory(self, tree):
        fs = LocalFilesystem()

        file_stat = await fs.stat(str(tree / "unicode.txt"))
        assert file_stat.is_file
        assert not file_stat.is_directory
        assert file_stat.size == len("héllo wörld".encode("utf-8"))
        assert file_stat.modified_at_ms > 1_000_000_000_000
        assert file_stat.created_at_ms > 0

        dir_stat = await fs.stat(str(tree / "projects"))
        assert dir_stat.is_directory
        assert not dir_stat.is_file

    async def test_stat_missing(self, tree):
        fs = LocalFilesystem()

        with pytest.raises(NotFoundError):
            await fs.stat(str(tree / "missing"))

    async def test_list_dir(self, tree):
        fs = LocalFilesystem()

        entries = await fs.list_dir(str(tree / "projects"))

        by_name = {entry.name: entry for entry in entries}
        assert set(by_name) == {"session.jsonl", "nested"}
        assert by_name["session.jsonl"].is_file
        assert by_name["nested"].is_directory
        # Local listing does not carry attributes
        assert by_name["session.jsonl"].size is None
        assert by_name["session.jsonl"].modified_at_ms is None

    async def test_list_dir_errors(self, tree):
        fs = LocalFilesystem()

        with pytest.raises(NotFoundError):
            await fs.list_dir(str(tree / "missing"))

        with pytest.raises(NotDirectoryError):
            await fs.list_dir(str(tree / "unicode.txt"))

    async def test_dispose_is_noop(self, tree):
        fs = LocalFilesystem()

        fs.dispose()
        fs.dispose()

        assert await fs.exists(str(tree / "projects"))


@pytest.mark.asyncio
class TestLocalReadStream:
    """Test streaming reads from the local provider."""

    async def test_read_bytes(self, tree):
        fs = LocalFilesystem(chunk_size=4)

        stream = fs.open_read_stream(str(tree / "projects" / "session.jsonl"))

        assert isinstance(stream, ReadStream)
        assert await stream.read_all() == b'{"a": 1}\n{"b": 2}\n'

    async def test_resume_from_offset(self, tree):
        fs = LocalFilesystem()

        stream = fs.open_read_stream(str(tree / "projects" / "session.jsonl"), start=9)

        assert await stream.read_all() == b'{"b": 2}\n'

    async def test_decodes_multibyte_across_chunks(self, tree):
        fs = LocalFilesystem(chunk_size=1)

        stream = fs.open_read_stream(str(tree / "unicode.txt"), encoding="utf-8")

        assert await stream.read_all() == "héllo wörld"

    async def test_lines(self, tree):
        fs = LocalFilesystem(chunk_size=5)

        stream = fs.open_read_stream(str(tree / "projects" / "session.jsonl"), encoding="utf-8")

        assert [line async for line in stream.lines()] == ['{"a": 1}', '{"b": 2}']

    async def test_open_failure_surfaces_on_read(self, tree):
        fs = LocalFilesystem()

        # Opening never raises; the error arrives through the stream
        stream = fs.open_read_stream(str(tree / "missing.jsonl"))

        with pytest.raises(NotFoundError):
            async for _ in stream:
                pass
        assert stream.closed

    async def test_errors_are_filesystem_errors(self, tree):
        fs = LocalFilesystem()

        stream = fs.open_read_stream(str(tree / "projects"))

        with pytest.raises(FilesystemError):
            await stream.read_all()

    async def test_context_manager_closes(self, tree):
        fs = LocalFilesystem(chunk_size=2)

        async with fs.open_read_stream(str(tree / "unicode.txt")) as stream:
            first = await stream.__anext__()

        assert first == "hé".encode("utf-8")[:2]
        assert stream.closed
        assert [chunk async for chunk in stream] == []

    async def test_lines_requires_encoding(self, tree):
        fs = LocalFilesystem()
        stream = fs.open_read_stream(str(tree / "unicode.txt"))

        with pytest.raises(ValueError):
            async for _ in stream.lines():
                pass
