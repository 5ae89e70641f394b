import json
import types
from collections.abc import Mapping
from typing import Any, TypeVar, Union, get_args, get_origin

import httpx
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ValidationError
from pydantic.fields import FieldInfo
from starlette.requests import Request
from starlette.responses import JSONResponse

from toolkit.config import JSONConfig
from toolkit.errors import (
    EmptyBodyError,
    InvalidFieldError,
    JSONBodyError,
    JSONEncodingError,
    MalformedJSONError,
    PayloadTooLargeError,
    RemoteServiceError,
    TrailingDataError,
    TypeMismatchError,
    UnknownFieldError,
)
from toolkit.metrics import json_decode_failures_total
from toolkit.schemas import JSONResponseEnvelope

ModelT = TypeVar("ModelT", bound=BaseModel)

JSON_CONTENT_TYPE = "application/json"
_JSON_WHITESPACE = " \t\n\r"

_EXPECTED_KINDS = {
    "string_type": "string",
    "int_type": "integer",
    "int_from_float": "integer",
    "float_type": "number",
    "bool_type": "boolean",
    "dict_type": "object",
    "model_type": "object",
    "model_attributes_type": "object",
    "dataclass_type": "object",
    "list_type": "array",
    "tuple_type": "array",
    "set_type": "array",
    "none_required": "null",
}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


_decoder = json.JSONDecoder(parse_constant=_reject_constant)


def _json_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


async def _read_body(request: Request, limit: int) -> bytes:
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError(limit)
    return bytes(body)


def _field_for_key(model: type[BaseModel], key: str) -> FieldInfo | None:
    for name, info in model.model_fields.items():
        if key == name or key == info.alias or key == info.validation_alias:
            return info
    return None


def _find_unknown_key(annotation: Any, value: Any, path: str) -> str | None:
    """Walk ``value`` alongside ``annotation`` and return the first key with no field."""
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        if not isinstance(value, dict):
            return None
        for key, item in value.items():
            info = _field_for_key(annotation, key)
            if info is None:
                return f"{path}{key}"
            found = _find_unknown_key(info.annotation, item, f"{path}{key}.")
            if found:
                return found
        return None

    origin = get_origin(annotation)
    args = get_args(annotation)
    if origin in (Union, types.UnionType):
        # Only Optional[X] is unambiguous; other unions are left to validation.
        candidates = [arg for arg in args if arg is not type(None)]
        if len(candidates) == 1:
            return _find_unknown_key(candidates[0], value, path)
        return None
    if origin in (list, set, frozenset) and len(args) == 1 and isinstance(value, list):
        for index, item in enumerate(value):
            found = _find_unknown_key(args[0], item, f"{path[:-1]}[{index}].")
            if found:
                return found
        return None
    if origin is dict and len(args) == 2 and isinstance(value, dict):
        for key, item in value.items():
            found = _find_unknown_key(args[1], item, f"{path}{key}.")
            if found:
                return found
    return None


def _error_from_validation(exc: ValidationError) -> JSONBodyError:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"])
    error_type = error["type"]
    if error_type == "extra_forbidden":
        return UnknownFieldError(field)
    if error_type == "json_invalid":
        return MalformedJSONError()
    if error_type in _EXPECTED_KINDS or error_type.endswith(("_type", "_parsing")):
        expected = _EXPECTED_KINDS.get(error_type) or error_type.removesuffix("_type").removesuffix("_parsing")
        return TypeMismatchError(field, expected, _json_kind(error.get("input")))
    return InvalidFieldError(field, error["msg"])


def decode_json(body: bytes, model: type[ModelT], config: JSONConfig = JSONConfig()) -> ModelT:
    """Decode exactly one JSON document from ``body`` into ``model``.

    Errors are raised in a fixed order: size, emptiness, syntax, trailing
    content, unknown keys, then field types.
    """
    if len(body) > config.max_body_bytes:
        raise PayloadTooLargeError(config.max_body_bytes)
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedJSONError(exc.start) from exc

    start = len(text) - len(text.lstrip(_JSON_WHITESPACE))
    if start == len(text):
        raise EmptyBodyError()
    try:
        value, end = _decoder.raw_decode(text, start)
    except json.JSONDecodeError as exc:
        raise MalformedJSONError(exc.pos) from exc
    except (ValueError, RecursionError) as exc:
        # RecursionError: nesting deeper than the interpreter can decode.
        raise MalformedJSONError() from exc
    if text[end:].strip(_JSON_WHITESPACE):
        raise TrailingDataError()

    if not config.allow_unknown_fields:
        unknown = _find_unknown_key(model, value, "")
        if unknown:
            raise UnknownFieldError(unknown)

    try:
        return model.model_validate_json(text[start:end], strict=True)
    except ValidationError as exc:
        raise _error_from_validation(exc) from exc


async def read_json(request: Request, model: type[ModelT], config: JSONConfig = JSONConfig()) -> ModelT:
    try:
        body = await _read_body(request, config.max_body_bytes)
        return decode_json(body, model, config)
    except (JSONBodyError, PayloadTooLargeError) as exc:
        json_decode_failures_total.labels(reason=getattr(exc, "reason", exc.error_code)).inc()
        raise


def write_json(status_code: int, payload: Any, headers: Mapping[str, str] | None = None) -> JSONResponse:
    try:
        response = JSONResponse(
            content=jsonable_encoder(payload),
            status_code=status_code,
            headers=dict(headers) if headers else None,
        )
    except (TypeError, ValueError) as exc:
        raise JSONEncodingError(f"failed to encode JSON response: {exc}") from exc
    # Caller headers are applied first; the JSON content type always wins.
    response.headers["Content-Type"] = JSON_CONTENT_TYPE
    return response


def error_json(err: BaseException, status_code: int = 400) -> JSONResponse:
    envelope = JSONResponseEnvelope(error=True, message=str(err) or type(err).__name__)
    return write_json(status_code, envelope.model_dump(exclude_none=True))


def push_json_to_remote(
    url: str,
    payload: Any,
    method: str = "POST",
    client: httpx.Client | None = None,
    timeout: float = 10.0,
) -> httpx.Response:
    """Send ``payload`` as a JSON body to ``url`` and return the remote response.

    The response is returned whatever its status; only transport failures
    raise. A caller-supplied ``client`` is used as-is and left open.
    """
    try:
        body = json.dumps(jsonable_encoder(payload), separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise JSONEncodingError(f"failed to encode JSON request: {exc}") from exc

    headers = {"Content-Type": JSON_CONTENT_TYPE}
    try:
        if client is not None:
            return client.request(method, url, content=body, headers=headers)
        with httpx.Client(timeout=timeout) as owned_client:
            return owned_client.request(method, url, content=body, headers=headers)
    except httpx.HTTPError as exc:
        raise RemoteServiceError(f"failed to call {url}: {exc}") from exc
