"""Metadata extraction from JSONL session transcripts."""

import json
import logging

from logbridge.utils.errors import FilesystemError
from logbridge.utils.fs import FilesystemProvider


logger = logging.getLogger(__name__)


async def extract_cwd(fs: FilesystemProvider, path: str) -> str | None:
    """
    Return the working directory recorded in a session transcript.

    Only conversational entries carry ``cwd``, so lines are scanned until the
    first entry that has one. Reading stops as soon as it is found.

    Args:
        fs: Provider to read through (local or remote)
        path: Path of the ``.jsonl`` transcript

    Returns:
        The recorded directory, or None if the file is missing, unreadable or
        has no entry with a ``cwd``
    """
    if not await fs.exists(path):
        return None

    stream = fs.open_read_stream(path, encoding="utf-8")
    try:
        async for line in stream.lines():
            if not line.strip():
                continue

            entry = json.loads(line)
            if isinstance(entry, dict) and entry.get("cwd"):
                return entry["cwd"]
    except (FilesystemError, ValueError) as e:
        logger.error(f"Error extracting cwd from {path}: {e}")
    finally:
        await stream.aclose()

    return None
