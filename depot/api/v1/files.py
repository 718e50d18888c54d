"""Files API endpoints.

GET  /files           - Browse a directory
GET  /files/download  - Download a file (Range aware)
POST /files/upload    - Upload a file into a directory
POST /files/mkdir     - Create a folder
POST /files/rename    - Rename a file or folder
POST /files/delete    - Delete a file or folder

Every endpoint resolves its path through PathResolver before any service
touches the filesystem. Blocking filesystem work runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime
from urllib.parse import quote

from fastapi import APIRouter, File, Header, Query, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from depot.api.dependencies import (
    ListerDep,
    MutationServiceDep,
    ResolverDep,
    SettingsDep,
    TransferServiceDep,
)
from depot.errors import PayloadTooLargeError, ValidationError
from depot.models import BrowseResult, DownloadTarget, FileRef
from depot.services.mutation import parse_entry_kind

router = APIRouter()


# Request/Response Models


class FileEntryResponse(BaseModel):
    """File metadata."""

    name: str
    size: int
    modified: datetime

    @classmethod
    def from_ref(cls, ref: FileRef) -> FileEntryResponse:
        return cls(name=ref.name, size=ref.size, modified=ref.modified)


class BrowseResponse(BaseModel):
    """Directory listing."""

    model_config = ConfigDict(populate_by_name=True)

    path: str
    full_path: str = Field(serialization_alias="fullPath")
    parent: str | None
    directories: list[str]
    files: list[FileEntryResponse]

    @classmethod
    def from_result(cls, result: BrowseResult) -> BrowseResponse:
        return cls(
            path=result.path,
            full_path=result.full_path,
            parent=result.parent,
            directories=[d.name for d in result.directories],
            files=[FileEntryResponse.from_ref(f) for f in result.files],
        )


class StatusResponse(BaseModel):
    status: str = "ok"


class CreateFolderResponse(StatusResponse):
    name: str


def _content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def _download_headers(target: DownloadTarget) -> dict[str, str]:
    headers = {
        "Accept-Ranges": "bytes",
        "Content-Length": str(target.length),
        "Content-Disposition": _content_disposition(target.filename),
    }
    if target.byte_range is not None:
        headers["Content-Range"] = target.byte_range.content_range()
    return headers


def _upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    position = file.file.tell()
    size = file.file.seek(0, os.SEEK_END)
    file.file.seek(position)
    return size


# Endpoints


@router.get("", response_model=BrowseResponse)
async def browse(
    resolver: ResolverDep,
    lister: ListerDep,
    path: str | None = Query(None, description="Directory path relative to the sandbox root"),
) -> BrowseResponse:
    """List a directory. Invalid or missing paths fall back to the root."""

    def _browse() -> BrowseResult:
        return lister.list(resolver.resolve_browse(path))

    result = await asyncio.to_thread(_browse)
    return BrowseResponse.from_result(result)


@router.get("/download")
async def download(
    resolver: ResolverDep,
    transfer: TransferServiceDep,
    path: str | None = Query(None, description="File path relative to the sandbox root"),
    range_header: str | None = Header(None, alias="Range"),
) -> StreamingResponse:
    """Download a file as a binary stream, honouring single byte ranges."""

    def _open() -> DownloadTarget:
        return transfer.open_download(resolver.resolve_file(path), range_header)

    target = await asyncio.to_thread(_open)
    return StreamingResponse(
        transfer.iter_bytes(target),
        status_code=206 if target.byte_range is not None else 200,
        media_type="application/octet-stream",
        headers=_download_headers(target),
    )


@router.post("/upload", response_model=FileEntryResponse)
async def upload(
    resolver: ResolverDep,
    transfer: TransferServiceDep,
    settings: SettingsDep,
    path: str | None = Query(None, description="Target directory relative to the sandbox root"),
    file: UploadFile | None = File(None, description="File to upload"),
) -> FileEntryResponse:
    """Upload a file into an existing directory; never overwrites."""
    if file is None:
        raise ValidationError("No file uploaded")

    limit = settings.upload.max_size_bytes
    if _upload_size(file) > limit:
        raise PayloadTooLargeError(
            f"Upload exceeds limit of {limit} bytes",
            details={"limit": limit},
        )

    def _store() -> FileRef:
        directory = resolver.resolve_upload_directory(path)
        return transfer.upload(directory, file.filename, file.file)

    stored = await asyncio.to_thread(_store)
    return FileEntryResponse.from_ref(stored)


@router.post("/mkdir", response_model=CreateFolderResponse)
async def create_folder(
    resolver: ResolverDep,
    mutation: MutationServiceDep,
    path: str | None = Query(None, description="Parent directory relative to the sandbox root"),
    name: str | None = Query(None, description="Folder name; a default is used when blank"),
) -> CreateFolderResponse:
    """Create a folder."""

    def _create() -> str:
        return mutation.create_folder(resolver.resolve_directory(path), name)

    created = await asyncio.to_thread(_create)
    return CreateFolderResponse(name=created)


@router.post("/rename", response_model=StatusResponse)
async def rename(
    resolver: ResolverDep,
    mutation: MutationServiceDep,
    path: str | None = Query(None, description="Parent directory relative to the sandbox root"),
    old_name: str | None = Query(None, alias="oldName"),
    new_name: str | None = Query(None, alias="newName"),
) -> StatusResponse:
    """Rename a file or folder within one directory."""

    def _rename() -> None:
        mutation.rename(resolver.resolve_directory(path), old_name, new_name)

    await asyncio.to_thread(_rename)
    return StatusResponse()


@router.post("/delete", response_model=StatusResponse)
async def delete(
    resolver: ResolverDep,
    mutation: MutationServiceDep,
    path: str | None = Query(None, description="Parent directory relative to the sandbox root"),
    name: str | None = Query(None),
    kind: str | None = Query(None, alias="type", description="file or directory"),
) -> StatusResponse:
    """Delete a file, or a folder with everything inside it."""
    entry_kind = parse_entry_kind(kind)

    def _delete() -> None:
        mutation.delete(resolver.resolve_directory(path), name, entry_kind)

    await asyncio.to_thread(_delete)
    return StatusResponse()
