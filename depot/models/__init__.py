"""Depot data models."""

from depot.models.entry import (
    BrowseResult,
    ByteRange,
    DirectoryRef,
    DownloadTarget,
    EntryKind,
    FileRef,
    ResolvedPath,
)

__all__ = [
    "BrowseResult",
    "ByteRange",
    "DirectoryRef",
    "DownloadTarget",
    "EntryKind",
    "FileRef",
    "ResolvedPath",
]
