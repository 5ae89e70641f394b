from typing import Any

from pydantic import BaseModel


class JSONResponseEnvelope(BaseModel):
    error: bool
    message: str
    data: Any | None = None


class UploadedFileResponse(BaseModel):
    assigned_name: str
    original_name: str
    size_bytes: int


class UploadResponse(BaseModel):
    files: list[UploadedFileResponse]


class MessageRequest(BaseModel):
    action: str
    message: str


class MessageResponse(BaseModel):
    message: str
    status_code: int | None = None


class SlugRequest(BaseModel):
    value: str


class SlugResponse(BaseModel):
    slug: str


class ErrorResponse(BaseModel):
    detail: str
    error_code: str
    request_id: str | None = None
