"""Sandbox entry models.

All values here are request-scoped snapshots of filesystem state. They are
built fresh per request and never cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class EntryKind(str, Enum):
    """Kind discriminator accepted by delete."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class ResolvedPath:
    """A canonical absolute path proven to lie inside the sandbox root."""

    absolute: Path
    relative: str  # POSIX form, "" for the root

    @property
    def is_root(self) -> bool:
        return self.relative == ""

    @property
    def name(self) -> str:
        return self.relative.rsplit("/", 1)[-1]

    @property
    def parent(self) -> str | None:
        """Relative path one segment shorter, or None at the root."""
        if self.is_root:
            return None
        if "/" not in self.relative:
            return ""
        return self.relative.rsplit("/", 1)[0]


@dataclass(frozen=True, slots=True)
class DirectoryRef:
    name: str


@dataclass(frozen=True, slots=True)
class FileRef:
    name: str
    size: int
    modified: datetime  # UTC


@dataclass(frozen=True, slots=True)
class BrowseResult:
    path: str
    full_path: str  # diagnostic only
    parent: str | None
    directories: list[DirectoryRef] = field(default_factory=list)
    files: list[FileRef] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ByteRange:
    """Inclusive byte range within a file of ``size`` bytes."""

    start: int
    end: int
    size: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.size}"


@dataclass(frozen=True, slots=True)
class DownloadTarget:
    """A file ready to be streamed, optionally restricted to a byte range."""

    path: Path
    filename: str
    size: int
    byte_range: ByteRange | None = None

    @property
    def offset(self) -> int:
        return self.byte_range.start if self.byte_range else 0

    @property
    def length(self) -> int:
        return self.byte_range.length if self.byte_range else self.size
