"""Utility functions for Reelsmith."""

from reelsmith.utils.io_utils import file_extension, image_mime_type, safe_unlink, scoped_workspace, write_bytes

__all__ = [
    "file_extension",
    "image_mime_type",
    "safe_unlink",
    "scoped_workspace",
    "write_bytes",
]
