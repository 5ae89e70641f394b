class ToolkitError(Exception):
    """Base error for every failure the toolkit reports to its caller.

    ``status_code`` and ``error_code`` are suggestions for the HTTP layer; the
    toolkit itself never writes an error response except through ``error_json``.
    ``uploaded_files`` holds the records persisted before an upload batch was
    aborted.
    """

    status_code = 500
    error_code = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.uploaded_files: list = []


class PayloadTooLargeError(ToolkitError):
    status_code = 413
    error_code = "payload_too_large"

    def __init__(self, limit: int, message: str | None = None) -> None:
        super().__init__(message or f"body must not be larger than {limit} bytes")
        self.limit = limit


class UnsupportedTypeError(ToolkitError):
    status_code = 415
    error_code = "unsupported_type"

    def __init__(self, content_type: str, file_name: str) -> None:
        super().__init__("the uploaded file type is not permitted")
        self.content_type = content_type
        self.file_name = file_name


class InvalidMultipartError(ToolkitError):
    status_code = 400
    error_code = "invalid_multipart"


class UnsafeFileNameError(ToolkitError):
    status_code = 400
    error_code = "unsafe_file_name"


class NoFileUploadedError(ToolkitError):
    status_code = 400
    error_code = "no_file_uploaded"


class StorageError(ToolkitError):
    status_code = 500
    error_code = "storage_error"


class NotFoundError(ToolkitError):
    status_code = 404
    error_code = "not_found"


class JSONBodyError(ToolkitError):
    status_code = 400
    error_code = "bad_request"
    reason = "invalid"


class MalformedJSONError(JSONBodyError):
    reason = "malformed"

    def __init__(self, offset: int | None = None) -> None:
        if offset is None:
            super().__init__("body contains badly-formed JSON")
        else:
            super().__init__(f"body contains badly-formed JSON (at character {offset})")
        self.offset = offset


class TypeMismatchError(JSONBodyError):
    reason = "type_mismatch"

    def __init__(self, field: str, expected: str, actual: str) -> None:
        if field:
            message = f'body contains incorrect JSON type for field "{field}" (expected {expected}, got {actual})'
        else:
            message = f"body contains incorrect JSON type (expected {expected}, got {actual})"
        super().__init__(message)
        self.field = field
        self.expected = expected
        self.actual = actual


class UnknownFieldError(JSONBodyError):
    reason = "unknown_field"

    def __init__(self, key: str) -> None:
        super().__init__(f'body contains unknown key "{key}"')
        self.key = key


class TrailingDataError(JSONBodyError):
    reason = "trailing_data"

    def __init__(self) -> None:
        super().__init__("body must contain only one JSON value")


class EmptyBodyError(JSONBodyError):
    reason = "empty_body"

    def __init__(self) -> None:
        super().__init__("body must not be empty")


class InvalidFieldError(JSONBodyError):
    reason = "invalid_field"

    def __init__(self, field: str, detail: str) -> None:
        super().__init__(f'body contains invalid value for field "{field}": {detail}')
        self.field = field
        self.detail = detail


class JSONEncodingError(ToolkitError):
    status_code = 500
    error_code = "json_encoding_error"


class RemoteServiceError(ToolkitError):
    status_code = 502
    error_code = "remote_service_error"
