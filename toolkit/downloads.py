import os
import stat
from pathlib import Path

from starlette.requests import Request
from starlette.responses import FileResponse, PlainTextResponse, Response

from toolkit.logs import audit_event
from toolkit.metrics import files_downloaded_total


def _resolve_source(source_dir: str | os.PathLike, source_file_name: str) -> tuple[Path, os.stat_result] | None:
    root = Path(source_dir).resolve()
    candidate = (root / source_file_name).resolve()
    if not candidate.is_relative_to(root):
        return None
    try:
        stat_result = candidate.stat()
    except OSError:
        return None
    if not stat.S_ISREG(stat_result.st_mode):
        return None
    return candidate, stat_result


def download_static_file(
    request: Request,
    source_dir: str | os.PathLike,
    source_file_name: str,
    display_file_name: str,
) -> Response:
    """Serve ``source_dir/source_file_name`` as an attachment named ``display_file_name``.

    A missing source, a directory, or a name escaping ``source_dir`` yields a
    plain-text 404 instead of an empty success body.
    """
    request_id = getattr(request.state, "request_id", None)
    resolved = _resolve_source(source_dir, source_file_name)
    if resolved is None:
        audit_event(
            {
                "action": "download_missing",
                "request_id": request_id,
                "source_file_name": source_file_name,
            }
        )
        return PlainTextResponse("file not found", status_code=404)

    path, stat_result = resolved
    quoted_name = display_file_name.replace("\\", "\\\\").replace('"', '\\"')
    files_downloaded_total.inc()
    audit_event(
        {
            "action": "download",
            "request_id": request_id,
            "source_file_name": source_file_name,
            "display_file_name": display_file_name,
            "size_bytes": stat_result.st_size,
        }
    )
    return FileResponse(
        path,
        stat_result=stat_result,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{quoted_name}"'},
    )
