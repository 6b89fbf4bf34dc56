"""
security_kernel.validation.sanitize -- scrubbing free-form user input.

Responsibility:
    Cleans strings before they are stored or echoed back: HTML reduced to a
    small formatting allow-list, plain text with markup removed, and
    character-class filters for emails, phone numbers, tax IDs, file names
    and URLs.  Also checks uploaded-file size and content type.

Architecture position:
    Kernel leaf.  Depends on bleach only; the schemas in
    ``validation.schemas`` call these helpers from their field validators.

Invariants:
    - ``sanitize_html`` keeps only b, i, em, strong, p and br, with no
      attributes.  Disallowed tags are stripped, never escaped into text.
    - ``sanitize_url`` returns None for anything that is not an absolute
      http(s) URL.
    - ``sanitize_filename`` output never contains ``..`` or a path separator
      and is at most 255 characters long.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

import bleach

ALLOWED_HTML_TAGS = frozenset({"b", "i", "em", "strong", "p", "br"})
ALLOWED_URL_SCHEMES = frozenset({"http", "https"})

MAX_FILENAME_LENGTH = 255
DEFAULT_MAX_UPLOAD_MB = 10

_PHONE_DISALLOWED = re.compile(r"[^0-9+\-\s()]")
_TAX_ID_DISALLOWED = re.compile(r"[^A-Za-z0-9-]")
_FILENAME_DISALLOWED = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_html(dirty: str) -> str:
    """Rich text limited to basic formatting tags."""
    return bleach.clean(dirty, tags=ALLOWED_HTML_TAGS, attributes={}, strip=True)


def sanitize_text(text: str) -> str:
    """Plain text: every tag removed."""
    return bleach.clean(text, tags=set(), attributes={}, strip=True)


def sanitize_email(email: str) -> str:
    return sanitize_text(email).strip().lower()


def sanitize_phone(phone: str) -> str:
    """Digits, ``+``, ``-``, parentheses and spaces only."""
    return _PHONE_DISALLOWED.sub("", phone).strip()


def sanitize_tax_id(tax_id: str) -> str:
    """Alphanumerics and hyphens, upper-cased."""
    return _TAX_ID_DISALLOWED.sub("", tax_id).upper()


def sanitize_filename(filename: str) -> str:
    cleaned = filename.replace("..", "")
    return _FILENAME_DISALLOWED.sub("_", cleaned)[:MAX_FILENAME_LENGTH]


def sanitize_url(url: str) -> str | None:
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if parts.scheme.lower() not in ALLOWED_URL_SCHEMES or not parts.netloc:
        return None
    return parts.geturl()


@dataclass(frozen=True)
class UploadCheck:
    valid: bool
    error: str | None = None


def validate_file_upload(
    size_bytes: int,
    content_type: str,
    max_size_mb: int = DEFAULT_MAX_UPLOAD_MB,
    allowed_types: tuple[str, ...] | None = None,
) -> UploadCheck:
    """Size limit first, then the content-type allow-list when one is given."""
    if size_bytes > max_size_mb * 1024 * 1024:
        return UploadCheck(False, f"The file exceeds the maximum size of {max_size_mb}MB.")
    if allowed_types is not None and content_type not in allowed_types:
        return UploadCheck(
            False, f"File type not allowed. Allowed: {', '.join(allowed_types)}"
        )
    return UploadCheck(True)
