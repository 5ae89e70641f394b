import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from toolkit.errors import StorageError, UnsafeFileNameError

DIRECTORY_MODE = 0o755
FILE_MODE = 0o644
COPY_CHUNK_SIZE = 64 * 1024


def ensure_dir(path: str | os.PathLike) -> None:
    # An existing path is accepted as-is, even when it is a regular file.
    target = Path(path)
    if target.exists():
        return
    try:
        target.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"failed to create directory {target}: {exc}") from exc


def safe_file_name(name: str) -> str:
    """Reduce a client-supplied filename to a single path component.

    Browsers and multipart encoders may send a full or relative path; only the
    final component is kept, whichever separator style the client used.
    """
    if "\x00" in name:
        raise UnsafeFileNameError("file name contains a NUL byte")
    base = name.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if base in ("", ".", ".."):
        raise UnsafeFileNameError(f"file name is not usable: {name!r}")
    return base


def write_file_atomically(source: BinaryIO, destination: str | os.PathLike) -> int:
    """Copy ``source`` to ``destination`` through a temporary sibling file.

    The temporary file is renamed over ``destination`` only after the whole
    stream was written, so a failed copy leaves nothing under the final name.
    Returns the number of bytes copied.
    """
    target = Path(destination)
    try:
        fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-", suffix=".part")
    except OSError as exc:
        raise StorageError(f"failed to create {target}: {exc}") from exc

    written = 0
    replaced = False
    try:
        with os.fdopen(fd, "wb") as out:
            while True:
                chunk = source.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
        os.chmod(temp_name, FILE_MODE)
        os.replace(temp_name, target)
        replaced = True
    except OSError as exc:
        raise StorageError(f"failed to write {target}: {exc}") from exc
    finally:
        if not replaced:
            Path(temp_name).unlink(missing_ok=True)
    return written
