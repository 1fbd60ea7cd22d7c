"""Filename and content-type rules applied to every upload before it is stored."""
import os
import re
from typing import Optional

from filedrop.errors import ForbiddenExtension, ForbiddenMimeType

MAX_FILENAME_LENGTH = 255
# Longer "extensions" are dropped rather than kept at the expense of the stem
MAX_EXTENSION_BYTES = 32
FALLBACK_FILENAME = "file"
GENERIC_MIME_TYPE = "application/octet-stream"

# Control bytes plus characters no common filesystem accepts in a name
_UNSAFE_CHARS = re.compile(r'[\x00-\x1f\x7f<>:"/\\|?*]')
_WHITESPACE = re.compile(r"[ \t\n\r\f\v]+")

BLOCKED_EXTENSIONS = frozenset({
    ".exe", ".bat", ".cmd", ".com", ".pif", ".scr", ".vbs", ".js", ".jar",
    ".app", ".deb", ".pkg", ".dmg", ".rpm", ".msi", ".run", ".bin",
})

ALLOWED_MIME_TYPES = frozenset({
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.oasis.opendocument.text",
    "application/vnd.oasis.opendocument.spreadsheet",
    "application/vnd.oasis.opendocument.presentation",
    "application/rtf",
    "text/plain",
    "text/csv",
    "text/markdown",
    "text/rtf",
    # Images
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/tiff",
    "image/svg+xml",
    "image/x-icon",
    "image/vnd.microsoft.icon",
    "image/heic",
    "image/heif",
    "image/avif",
    # Audio
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/ogg",
    "audio/flac",
    "audio/aac",
    "audio/mp4",
    "audio/webm",
    "audio/x-m4a",
    # Video
    "video/mp4",
    "video/mpeg",
    "video/webm",
    "video/ogg",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
    "video/3gpp",
    # Archives
    "application/zip",
    "application/x-zip-compressed",
    "application/x-rar-compressed",
    "application/vnd.rar",
    "application/x-7z-compressed",
    "application/x-tar",
    "application/gzip",
    "application/x-gzip",
    "application/x-bzip2",
    "application/x-xz",
    # Code and data
    "text/html",
    "text/css",
    "text/xml",
    "text/x-python",
    "text/x-c",
    "text/x-java-source",
    "application/json",
    "application/xml",
    "application/x-yaml",
    "application/sql",
    # Fonts
    "font/ttf",
    "font/otf",
    "font/woff",
    "font/woff2",
    "application/vnd.ms-fontobject",
    # 3-D models
    "model/gltf+json",
    "model/gltf-binary",
    "model/obj",
    "model/stl",
    "application/sla",
    # E-books
    "application/epub+zip",
    "application/x-mobipocket-ebook",
    "application/vnd.amazon.ebook",
    # Generic binary fallback
    GENERIC_MIME_TYPE,
})


def sanitize_filename(name: Optional[str]) -> str:
    """Make a user-supplied filename safe to use as a storage-name basis.

    Strips control and path-unsafe characters and turns whitespace runs into
    underscores. Leading and trailing dots are dropped, and the UTF-8 length
    is capped at MAX_FILENAME_LENGTH bytes while keeping the extension.
    """
    clean = _WHITESPACE.sub("_", (name or "").strip())
    clean = _UNSAFE_CHARS.sub("", clean)
    clean = clean.strip(".")
    clean = fit_name(clean, MAX_FILENAME_LENGTH)
    return clean or FALLBACK_FILENAME


def truncate_utf8(text: str, max_bytes: int) -> str:
    """Cut ``text`` to at most ``max_bytes`` UTF-8 bytes without splitting a character."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max(max_bytes, 0)].decode("utf-8", "ignore")


def fit_name(name: str, max_bytes: int, reserved: str = "") -> str:
    """Shorten the stem of ``name`` so ``stem + reserved + ext`` fits in ``max_bytes``.

    An extension longer than MAX_EXTENSION_BYTES is dropped.
    """
    stem, ext = os.path.splitext(name)
    if len(ext.encode("utf-8")) > MAX_EXTENSION_BYTES:
        stem, ext = name, ""
    room = max_bytes - len(reserved.encode("utf-8")) - len(ext.encode("utf-8"))
    return truncate_utf8(stem, room) + reserved + ext


def file_extension(name: str) -> str:
    """Lower-cased extension including the dot, '' if none."""
    return os.path.splitext(name)[1].lower()


def normalize_mime_type(content_type: Optional[str]) -> str:
    """Drop parameters and case; missing types count as generic binary."""
    if not content_type:
        return GENERIC_MIME_TYPE
    mime = content_type.split(";", 1)[0].strip().lower()
    return mime or GENERIC_MIME_TYPE


def check_extension(safe_name: str) -> None:
    ext = file_extension(safe_name)
    if ext in BLOCKED_EXTENSIONS:
        raise ForbiddenExtension(ext)


def check_mime_type(mime_type: str) -> None:
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ForbiddenMimeType(mime_type)
