import os
from dataclasses import dataclass
from pathlib import Path

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request
from starlette.types import Message, Receive

from toolkit.config import UploadConfig
from toolkit.errors import (
    InvalidMultipartError,
    NoFileUploadedError,
    PayloadTooLargeError,
    ToolkitError,
    UnsupportedTypeError,
)
from toolkit.logs import audit_event
from toolkit.metrics import bytes_uploaded_total, files_uploaded_total, upload_rejections_total
from toolkit.naming import random_string
from toolkit.sniff import SNIFF_LENGTH, detect_content_type
from toolkit.storage import ensure_dir, safe_file_name, write_file_atomically

RANDOM_NAME_LENGTH = 32


@dataclass(frozen=True)
class UploadedFile:
    assigned_name: str
    original_name: str
    size_bytes: int


def bounded_receive(receive: Receive, limit: int) -> Receive:
    received = 0

    async def wrapped() -> Message:
        nonlocal received
        message = await receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > limit:
                raise PayloadTooLargeError(limit, "the uploaded file is too big")
        return message

    return wrapped


def _content_type_allowed(content_type: str, allowed: frozenset[str]) -> bool:
    if not allowed:
        return True
    full = content_type.strip().lower()
    essence = full.split(";", 1)[0].strip()
    return any(item.strip().lower() in (full, essence) for item in allowed)


def _extension(name: str) -> str:
    # A leading dot counts, so ".bashrc" keeps ".bashrc" as its extension.
    _, dot, suffix = name.rpartition(".")
    return dot + suffix if dot else ""


async def _parse_form(request: Request, limit: int) -> FormData:
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data"):
        raise InvalidMultipartError("request body is not multipart/form-data")
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(limit, "the uploaded file is too big")

    bounded = Request(request.scope, receive=bounded_receive(request.receive, limit))
    try:
        return await bounded.form()
    except MultiPartException as exc:
        raise InvalidMultipartError(exc.message) from exc
    except HTTPException as exc:
        # Starlette converts parser errors to HTTPException inside an app.
        raise InvalidMultipartError(str(exc.detail)) from exc


async def _store_part(part: UploadFile, destination: Path, config: UploadConfig) -> UploadedFile:
    original_name = safe_file_name(part.filename or "")

    head = await part.read(SNIFF_LENGTH)
    content_type = detect_content_type(head)
    if not _content_type_allowed(content_type, config.allowed_content_types):
        raise UnsupportedTypeError(content_type, original_name)
    await part.seek(0)

    if config.rename_files:
        assigned_name = random_string(RANDOM_NAME_LENGTH) + _extension(original_name)
    else:
        assigned_name = original_name

    size = await run_in_threadpool(write_file_atomically, part.file, destination / assigned_name)
    return UploadedFile(assigned_name=assigned_name, original_name=original_name, size_bytes=size)


async def upload_files(
    request: Request, destination_dir: str | os.PathLike, config: UploadConfig = UploadConfig()
) -> list[UploadedFile]:
    """Persist every file part of a multipart request under ``destination_dir``.

    The batch is all-or-abort: the first rejected part fails the whole call.
    Files written before the failure stay on disk and their records are
    attached to the raised error as ``uploaded_files``. Callers that need
    per-file tolerance should send one file per request and use
    ``upload_one_file``.
    """
    uploaded: list[UploadedFile] = []
    request_id = getattr(request.state, "request_id", None)
    try:
        ensure_dir(destination_dir)
        form = await _parse_form(request, config.max_total_bytes)
        try:
            for _, value in form.multi_items():
                # Browsers send an empty filename for an unselected file input.
                if not isinstance(value, UploadFile) or not value.filename:
                    continue
                record = await _store_part(value, Path(destination_dir), config)
                uploaded.append(record)
                files_uploaded_total.inc()
                bytes_uploaded_total.inc(record.size_bytes)
        finally:
            await form.close()
    except ToolkitError as exc:
        exc.uploaded_files = list(uploaded)
        upload_rejections_total.labels(reason=exc.error_code).inc()
        audit_event(
            {
                "action": "upload_rejected",
                "request_id": request_id,
                "reason": exc.error_code,
                "detail": exc.message,
                "persisted_files": len(uploaded),
            }
        )
        raise

    audit_event(
        {
            "action": "upload",
            "request_id": request_id,
            "files": [record.assigned_name for record in uploaded],
            "total_bytes": sum(record.size_bytes for record in uploaded),
        }
    )
    return uploaded


async def upload_one_file(
    request: Request, destination_dir: str | os.PathLike, config: UploadConfig = UploadConfig()
) -> UploadedFile:
    files = await upload_files(request, destination_dir, config)
    if not files:
        raise NoFileUploadedError("request does not contain a file")
    return files[0]
