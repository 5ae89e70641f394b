from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

files_uploaded_total = Counter("files_uploaded_total", "Total files persisted by the upload engine")
bytes_uploaded_total = Counter("bytes_uploaded_total", "Total bytes persisted by the upload engine")
upload_rejections_total = Counter("upload_rejections_total", "Total rejected upload requests", ["reason"])
files_downloaded_total = Counter("files_downloaded_total", "Total files served as downloads")
json_decode_failures_total = Counter("json_decode_failures_total", "Total rejected JSON request bodies", ["reason"])

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "route", "status_code"],
)


def metrics_response() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
