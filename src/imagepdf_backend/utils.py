"""
Utility functions for output naming and request metadata.

This module provides helper functions for:
- Sanitizing the user-supplied output document name
- Normalising declared image content types
- Building a Content-Disposition header that survives non-ASCII names
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote

from .models import ImageFormat

# Characters allowed to survive in an output name: ASCII letters and digits,
# CJK unified ideographs (U+4E00-U+9FFF and extension A), hyphen and
# underscore. Compatibility ideographs (U+F900-U+FAFF) and the supplementary
# plane extensions (U+20000 and up) are replaced like any other character.
UNSAFE_NAME_PATTERN = re.compile(r"[^A-Za-z0-9\u3400-\u4dbf\u4e00-\u9fff_-]")

CONTENT_TYPE_FORMATS = {
    "image/jpeg": ImageFormat.JPEG,
    "image/jpg": ImageFormat.JPEG,
    "image/pjpeg": ImageFormat.JPEG,
    "image/png": ImageFormat.PNG,
    "image/webp": ImageFormat.WEBP,
}


def sanitize_output_name(name: Optional[str], fallback: str, extension: str) -> str:
    """
    Build the download filename for a finished document.

    Every character outside the allowed set is replaced by an underscore
    (one underscore per character, no collapsing), and ``extension`` is
    appended exactly once.

    Args:
        name: The name requested by the user, possibly ``None`` or blank
        fallback: Name used when ``name`` is absent or blank
        extension: Output extension without the leading dot

    Returns:
        The sanitized filename including the extension

    Example:
        >>> sanitize_output_name("My:Doc*2024", "converted_images", "pdf")
        "My_Doc_2024.pdf"
        >>> sanitize_output_name("report.PDF", "converted_images", "pdf")
        "report.pdf"
        >>> sanitize_output_name("   ", "converted_images", "pdf")
        "converted_images.pdf"
    """
    stem = (name or "").strip()
    suffix = f".{extension}"
    if stem.lower().endswith(suffix.lower()):
        stem = stem[: -len(suffix)].strip()
    if not stem:
        stem = fallback
    return f"{UNSAFE_NAME_PATTERN.sub('_', stem)}{suffix}"


def resolve_image_format(content_type: Optional[str]) -> Optional[ImageFormat]:
    """
    Map a declared content type to a supported format.

    Media type parameters and letter case are ignored, so
    ``"Image/JPEG; charset=binary"`` resolves to JPEG.

    Returns:
        The matching ImageFormat, or None if the type is not supported
    """
    if not content_type:
        return None
    media_type = content_type.split(";", 1)[0].strip().lower()
    return CONTENT_TYPE_FORMATS.get(media_type)


def content_disposition(filename: str) -> str:
    """
    Build an ``attachment`` Content-Disposition value for ``filename``.

    Header values must be latin-1 encodable, so names with other characters
    get an ASCII fallback plus an RFC 5987 ``filename*`` parameter.
    """
    try:
        filename.encode("ascii")
    except UnicodeEncodeError:
        fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"
    return f'attachment; filename="{filename}"'
