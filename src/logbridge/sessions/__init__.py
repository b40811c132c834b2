"""Helpers that read session transcripts through a filesystem provider."""

from .metadata import extract_cwd


__all__ = [
    "extract_cwd",
]
