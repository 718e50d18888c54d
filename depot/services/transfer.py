"""TransferService - file downloads (with byte ranges) and uploads.

Uploads are created with an exclusive open so that two concurrent uploads
of the same name cannot both succeed, and an existing file is never
truncated. Content is streamed in fixed-size chunks in both directions.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterator
from typing import BinaryIO

import structlog

from depot.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    RangeNotSatisfiableError,
    ValidationError,
)
from depot.models import ByteRange, DownloadTarget, FileRef, ResolvedPath
from depot.utils.datetime import from_timestamp
from depot.validators.path import PathResolver

logger = structlog.get_logger()

DEFAULT_CHUNK_SIZE = 64 * 1024

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$", re.IGNORECASE)


def parse_range(header: str | None, size: int) -> ByteRange | None:
    """Parse a single-range ``Range`` header against a file of ``size`` bytes.

    Returns None when the whole file should be served: no header, a
    malformed header, a non-bytes unit or a multi-range request.

    Raises:
        RangeNotSatisfiableError: the range is well-formed but selects no
            bytes of the file
    """
    if not header:
        return None
    match = _RANGE_RE.match(header)
    if match is None:
        return None
    first, last = match.groups()

    if not first and not last:
        return None

    if not first:
        # Suffix range: the last N bytes
        suffix = int(last)
        if suffix == 0 or size == 0:
            raise RangeNotSatisfiableError(size)
        return ByteRange(start=max(size - suffix, 0), end=size - 1, size=size)

    start = int(first)
    end = int(last) if last else size - 1
    if last and end < start:
        return None
    if start >= size:
        raise RangeNotSatisfiableError(size)
    return ByteRange(start=start, end=min(end, size - 1), size=size)


def stored_file_name(file_name: str | None) -> str:
    """Base name of a client-supplied upload name, directory parts stripped."""
    if file_name is None:
        return ""
    return file_name.replace("\\", "/").rsplit("/", 1)[-1]


class TransferService:
    """Streams files out of and into the sandbox."""

    def __init__(self, resolver: PathResolver, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._resolver = resolver
        self._chunk_size = chunk_size
        self._log = logger.bind(service="transfer")

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def open_download(self, file: ResolvedPath, range_header: str | None = None) -> DownloadTarget:
        """Prepare a download of ``file``, honouring an optional Range header."""
        try:
            stat = os.stat(file.absolute)
        except FileNotFoundError as e:
            raise NotFoundError("File not found") from e
        except OSError as e:
            raise InternalError("download") from e

        byte_range = parse_range(range_header, stat.st_size)
        self._log.info(
            "transfer.download",
            path=file.relative,
            size=stat.st_size,
            range=byte_range.content_range() if byte_range else None,
        )
        return DownloadTarget(
            path=file.absolute,
            filename=file.absolute.name,
            size=stat.st_size,
            byte_range=byte_range,
        )

    def iter_bytes(self, target: DownloadTarget) -> Iterator[bytes]:
        """Yield the selected bytes of ``target`` in chunks."""
        remaining = target.length
        with open(target.path, "rb") as f:
            if target.offset:
                f.seek(target.offset)
            while remaining > 0:
                chunk = f.read(min(self._chunk_size, remaining))
                if not chunk:
                    # File shrank underneath us
                    break
                remaining -= len(chunk)
                yield chunk

    def upload(self, directory: ResolvedPath, file_name: str | None, stream: BinaryIO) -> FileRef:
        """Write ``stream`` to a new file in ``directory``.

        Raises:
            ValidationError: missing or invalid name, or an empty stream
            ConflictError: an entry with the stored name already exists
            NotFoundError: the directory disappeared before the file was created
            InternalError: any other I/O failure; no partial file is left
        """
        name = stored_file_name(file_name)
        if not name.strip():
            raise ValidationError("No file uploaded")
        target = self._resolver.resolve_child(directory, name, field_name="file name")

        first = stream.read(self._chunk_size)
        if not first:
            raise ValidationError("No file uploaded")

        try:
            handle = open(target.absolute, "xb")
        except FileExistsError as e:
            self._log.info("transfer.upload.conflict", path=target.relative)
            raise ConflictError("File already exists", details={"name": name}) from e
        except FileNotFoundError as e:
            raise NotFoundError("Target directory does not exist") from e
        except OSError as e:
            self._log.error("transfer.upload.create_failed", path=target.relative, error=type(e).__name__)
            raise InternalError("upload") from e

        written = 0
        try:
            with handle:
                chunk = first
                while chunk:
                    handle.write(chunk)
                    written += len(chunk)
                    chunk = stream.read(self._chunk_size)
            stat = os.stat(target.absolute)
        except BaseException as e:
            self._discard(target)
            if isinstance(e, OSError):
                self._log.error("transfer.upload.write_failed", path=target.relative, written=written)
                raise InternalError("upload") from e
            raise

        self._log.info("transfer.upload.stored", path=target.relative, size=stat.st_size)
        return FileRef(name=name, size=stat.st_size, modified=from_timestamp(stat.st_mtime))

    def _discard(self, target: ResolvedPath) -> None:
        try:
            os.unlink(target.absolute)
        except FileNotFoundError:
            pass
        except OSError as e:
            self._log.warning("transfer.upload.cleanup_failed", path=target.relative, error=type(e).__name__)
