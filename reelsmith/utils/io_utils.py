"""I/O utility functions for file and directory operations."""

# This module is part of reelsmith.utils package

import shutil
import tempfile
from contextlib import contextmanager
from io import BytesIO
from pathlib import Path
from typing import Any, Iterator, Optional

from PIL import Image


@contextmanager
def scoped_workspace(prefix: str, parent: Optional[str] = None, logger: Any = None) -> Iterator[Path]:
    """
    Create a private temporary directory and remove it on every exit path.

    Args:
        prefix: Directory name prefix (e.g. "render-<block_id>-")
        parent: Parent directory (system temp dir when None)
        logger: Optional logger for cleanup diagnostics

    Yields:
        Path to the workspace directory
    """
    if parent:
        Path(parent).mkdir(parents=True, exist_ok=True)
    workspace = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))
    try:
        yield workspace
    finally:
        shutil.rmtree(workspace, ignore_errors=True)
        if workspace.exists() and logger is not None:
            logger.warning(f"Workspace could not be fully removed: {workspace}")


def safe_unlink(path: Optional[Path], logger: Any = None) -> None:
    """Best-effort removal of an intermediate file."""
    if path is None:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        if logger is not None:
            logger.debug(f"Could not delete temp file {path}: {e}")


def write_bytes(path: Path, data: bytes) -> Path:
    """Write bytes to path, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
    return path


def file_extension(filename: Optional[str], default: str = "bin") -> str:
    """
    Extension of an uploaded file name without the dot, lower-cased.

    Args:
        filename: Original file name
        default: Returned when the name has no extension

    Returns:
        Extension string
    """
    if not filename or "." not in filename:
        return default
    ext = filename.rsplit(".", 1)[-1].strip().lower()
    return ext or default


def image_mime_type(data: bytes) -> Optional[str]:
    """
    Identify encoded image bytes with Pillow.

    Args:
        data: Raw image file contents

    Returns:
        MIME type such as "image/png", or None when Pillow cannot identify the data
    """
    try:
        with Image.open(BytesIO(data)) as image:
            image_format = image.format
    except OSError:
        return None
    return Image.MIME.get(image_format) if image_format else None
