import time
import uuid
from dataclasses import asdict

from fastapi import FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from toolkit.config import JSONConfig, UploadConfig, settings
from toolkit.downloads import download_static_file
from toolkit.errors import ToolkitError
from toolkit.jsonio import error_json, push_json_to_remote, read_json, write_json
from toolkit.logs import log_event, trace_id
from toolkit.metrics import http_request_duration_seconds, metrics_response
from toolkit.naming import slugify
from toolkit.schemas import (
    ErrorResponse,
    MessageRequest,
    MessageResponse,
    SlugRequest,
    SlugResponse,
    UploadedFileResponse,
    UploadResponse,
)
from toolkit.tracing import setup_tracing
from toolkit.uploads import upload_files, upload_one_file

app = FastAPI(title=settings.app_name)
setup_tracing(app)
upload_config = UploadConfig.from_settings(settings)
json_config = JSONConfig.from_settings(settings)

COMMON_ERROR_RESPONSES = {
    500: {"model": ErrorResponse, "description": "Internal server error"},
}


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None and hasattr(route, "path"):
        return str(route.path)
    return request.url.path


def _log_request_error(request: Request, status_code: int, error_class: str, detail: str) -> None:
    log_event(
        {
            "event": "request_error",
            "request_id": _request_id(request),
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "error_class": error_class,
            "detail": detail,
        }
    )


def _plain_error(request: Request, exc: ToolkitError) -> Response:
    _log_request_error(request, exc.status_code, exc.error_code, exc.message)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def _json_error(request: Request, exc: Exception, status_code: int, error_class: str) -> Response:
    _log_request_error(request, status_code, error_class, str(exc))
    return error_json(exc, status_code)


@app.middleware("http")
async def request_context_and_logging(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    start = time.perf_counter()

    response = await call_next(request)
    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    response.headers["X-Request-ID"] = request_id
    http_request_duration_seconds.labels(
        method=request.method,
        route=_route_label(request),
        status_code=str(response.status_code),
    ).observe(duration_ms / 1000.0)

    log_event(
        {
            "event": "request_completed",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
    )
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    _log_request_error(request, 500, "unhandled_exception", str(exc))
    return JSONResponse(
        status_code=500,
        content={
            "detail": "internal server error",
            "error_code": "internal_error",
            "request_id": _request_id(request),
            "trace_id": trace_id(),
        },
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/version")
def version() -> dict[str, str]:
    return {"app_name": settings.app_name, "app_version": settings.app_version}


@app.get("/metrics")
def metrics() -> Response:
    return metrics_response()


@app.post("/v1/upload", response_model=UploadResponse, responses={**COMMON_ERROR_RESPONSES})
async def upload(request: Request) -> Response:
    try:
        files = await upload_files(request, settings.upload_dir, upload_config)
    except ToolkitError as exc:
        return _plain_error(request, exc)
    return write_json(200, UploadResponse(files=[UploadedFileResponse(**asdict(record)) for record in files]))


@app.post("/v1/upload-one", response_model=UploadedFileResponse, responses={**COMMON_ERROR_RESPONSES})
async def upload_one(request: Request) -> Response:
    try:
        record = await upload_one_file(request, settings.upload_dir, upload_config)
    except ToolkitError as exc:
        return _plain_error(request, exc)
    return write_json(200, UploadedFileResponse(**asdict(record)))


@app.get("/v1/download/{file_name}")
def download(request: Request, file_name: str, display_name: str | None = Query(default=None, alias="as")) -> Response:
    return download_static_file(request, settings.download_dir, file_name, display_name or file_name)


@app.post("/v1/receive-post", response_model=MessageResponse)
async def receive_post(request: Request) -> Response:
    try:
        await read_json(request, MessageRequest, json_config)
    except ToolkitError as exc:
        return _json_error(request, exc, exc.status_code, exc.error_code)
    return write_json(200, MessageResponse(message="hit the handler okay, and sending response"))


@app.post("/v1/remote-service", response_model=MessageResponse)
async def remote_service(request: Request) -> Response:
    try:
        payload = await read_json(request, MessageRequest, json_config)
        remote = await run_in_threadpool(
            push_json_to_remote,
            settings.remote_service_url,
            payload,
            timeout=settings.remote_timeout_seconds,
        )
    except ToolkitError as exc:
        return _json_error(request, exc, exc.status_code, exc.error_code)
    return write_json(
        200,
        MessageResponse(message="hit the handler okay, and sending response", status_code=remote.status_code),
    )


@app.post("/v1/simulated-service", response_model=MessageResponse)
def simulated_service() -> Response:
    return write_json(200, MessageResponse(message="OK"))


@app.post("/v1/slugify", response_model=SlugResponse)
async def slugify_value(request: Request) -> Response:
    try:
        payload = await read_json(request, SlugRequest, json_config)
    except ToolkitError as exc:
        return _json_error(request, exc, exc.status_code, exc.error_code)
    try:
        slug = slugify(payload.value)
    except ValueError as exc:
        return _json_error(request, exc, 400, "bad_request")
    return write_json(200, SlugResponse(slug=slug))
