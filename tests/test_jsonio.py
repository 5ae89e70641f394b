import json

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from pydantic import BaseModel

from toolkit.config import JSONConfig
from toolkit.errors import (
    EmptyBodyError,
    InvalidFieldError,
    JSONEncodingError,
    MalformedJSONError,
    PayloadTooLargeError,
    ToolkitError,
    TrailingDataError,
    TypeMismatchError,
    UnknownFieldError,
)
from toolkit.jsonio import decode_json, error_json, read_json, write_json


class Foo(BaseModel):
    foo: str = ""


class Inner(BaseModel):
    name: str = ""


class Outer(BaseModel):
    inner: Inner | None = None
    items: list[Inner] = []


class Required(BaseModel):
    count: int


@pytest.mark.parametrize(
    ("body", "max_size", "allow_unknown", "error"),
    [
        ('{"foo": "bar"}', 1024, False, None),
        ('{"foo": }', 1024, False, MalformedJSONError),
        ('{"foo": 1}', 1024, False, TypeMismatchError),
        ('{"foo": "bar"}{"alpha": "beta"}', 1024, False, TrailingDataError),
        ("", 1024, False, EmptyBodyError),
        (" \n\t", 1024, False, EmptyBodyError),
        ('{"foo": "bar"', 1024, False, MalformedJSONError),
        ('{"food": "bar"}', 1024, False, UnknownFieldError),
        ('{"food": "bar"}', 1024, True, None),
        ('{aiueo: "bar"}', 1024, True, MalformedJSONError),
        ('{"foo": "bar"}', 1, False, PayloadTooLargeError),
        ("Hello world", 5, False, PayloadTooLargeError),
        ("Hello world", 1024, False, MalformedJSONError),
        ('{"foo": NaN}', 1024, False, MalformedJSONError),
        ('  {"foo": "bar"}  \n', 1024, False, None),
    ],
)
def test_decode_json(body: str, max_size: int, allow_unknown: bool, error: type[Exception] | None) -> None:
    config = JSONConfig(max_body_bytes=max_size, allow_unknown_fields=allow_unknown)
    if error is None:
        decode_json(body.encode(), Foo, config)
    else:
        with pytest.raises(error):
            decode_json(body.encode(), Foo, config)


def test_decode_json_sets_fields() -> None:
    decoded = decode_json(b'{"foo":"bar"}', Foo)
    assert decoded.foo == "bar"


def test_malformed_json_reports_offset() -> None:
    with pytest.raises(MalformedJSONError) as exc_info:
        decode_json(b'{"foo": }', Foo)

    assert exc_info.value.offset == 8
    assert "at character 8" in str(exc_info.value)


def test_invalid_utf8_is_malformed() -> None:
    with pytest.raises(MalformedJSONError):
        decode_json(b'{"foo": "\xff"}', Foo)


def test_type_mismatch_names_field_and_kinds() -> None:
    with pytest.raises(TypeMismatchError) as exc_info:
        decode_json(b'{"foo": 1}', Foo)

    exc = exc_info.value
    assert exc.field == "foo"
    assert exc.expected == "string"
    assert exc.actual == "integer"


def test_top_level_array_is_type_mismatch() -> None:
    with pytest.raises(TypeMismatchError) as exc_info:
        decode_json(b'["foo"]', Foo)

    assert exc_info.value.expected == "object"
    assert exc_info.value.actual == "array"


def test_unknown_field_names_key() -> None:
    with pytest.raises(UnknownFieldError) as exc_info:
        decode_json(b'{"food": "bar"}', Foo)

    assert exc_info.value.key == "food"
    assert 'unknown key "food"' in str(exc_info.value)


def test_unknown_field_in_nested_model() -> None:
    with pytest.raises(UnknownFieldError) as exc_info:
        decode_json(b'{"inner": {"name": "x", "extra": 1}}', Outer)

    assert exc_info.value.key == "inner.extra"


def test_unknown_field_in_list_of_models() -> None:
    with pytest.raises(UnknownFieldError) as exc_info:
        decode_json(b'{"items": [{"name": "a"}, {"nme": "b"}]}', Outer)

    assert exc_info.value.key == "items[1].nme"


def test_nested_unknown_fields_allowed_when_configured() -> None:
    decoded = decode_json(
        b'{"inner": {"name": "x", "extra": 1}}',
        Outer,
        JSONConfig(allow_unknown_fields=True),
    )
    assert decoded.inner is not None
    assert decoded.inner.name == "x"


def test_missing_required_field_is_invalid_field() -> None:
    with pytest.raises(InvalidFieldError) as exc_info:
        decode_json(b"{}", Required)

    assert exc_info.value.field == "count"


def test_strict_validation_does_not_coerce_strings() -> None:
    with pytest.raises(TypeMismatchError):
        decode_json(b'{"count": "12"}', Required)


def _build_app(config: JSONConfig) -> FastAPI:
    app = FastAPI()

    @app.post("/echo")
    async def echo(request: Request):
        try:
            payload = await read_json(request, Foo, config)
        except ToolkitError as exc:
            return error_json(exc, exc.status_code)
        return write_json(200, payload)

    return app


def test_read_json_through_request() -> None:
    with TestClient(_build_app(JSONConfig())) as client:
        response = client.post("/echo", content=b'{"foo":"bar"}')

    assert response.status_code == 200
    assert response.json() == {"foo": "bar"}


def test_read_json_rejects_oversized_body() -> None:
    with TestClient(_build_app(JSONConfig(max_body_bytes=8))) as client:
        response = client.post("/echo", content=b'{"foo":"a long value"}')

    assert response.status_code == 413
    assert response.json() == {"error": True, "message": "body must not be larger than 8 bytes"}


def test_read_json_rejects_empty_body() -> None:
    with TestClient(_build_app(JSONConfig())) as client:
        response = client.post("/echo", content=b"")

    assert response.status_code == 400
    assert response.json() == {"error": True, "message": "body must not be empty"}


def test_write_json_applies_headers_then_content_type() -> None:
    response = write_json(201, {"message": "aiueo"}, {"FOO": "BAR", "Content-Type": "text/plain"})

    assert response.status_code == 201
    assert response.headers["foo"] == "BAR"
    assert response.headers.getlist("content-type") == ["application/json"]
    assert json.loads(response.body) == {"message": "aiueo"}


def test_write_json_serializes_models() -> None:
    response = write_json(200, Foo(foo="bar"))

    assert json.loads(response.body) == {"foo": "bar"}


@pytest.mark.parametrize("payload", [{"value": float("nan")}, object()])
def test_write_json_reports_unserializable_payload(payload) -> None:
    with pytest.raises(JSONEncodingError):
        write_json(200, payload)


def test_error_json_uses_envelope_and_status() -> None:
    response = error_json(ValueError("some error"), 500)

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert json.loads(response.body) == {"error": True, "message": "some error"}


def test_error_json_defaults_to_bad_request() -> None:
    response = error_json(RuntimeError())

    assert response.status_code == 400
    payload = json.loads(response.body)
    assert payload["error"] is True
    assert payload["message"] == "RuntimeError"


def test_deeply_nested_body_is_malformed() -> None:
    depth = 200_000
    with pytest.raises(MalformedJSONError):
        decode_json(b"[" * depth + b"]" * depth, Foo)


def test_read_json_rejects_deeply_nested_body() -> None:
    depth = 200_000
    body = b'{"foo":' + b"[" * depth + b"]" * depth + b"}"
    with TestClient(_build_app(JSONConfig())) as client:
        response = client.post("/echo", content=body)

    assert response.status_code == 400
    assert response.json() == {"error": True, "message": "body contains badly-formed JSON"}
