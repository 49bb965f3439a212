"""
Helpers for building CDN media URLs and for parsing sheet identifiers that may be
given either raw or as full spreadsheet URLs.
"""

import re
from urllib.parse import quote

_SHEET_ID_REGEX = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)(?:/|$|\?|#)")
_RAW_SHEET_ID_REGEX = re.compile(r"^[a-zA-Z0-9_-]+$")
_GID_REGEX = re.compile(r"[?&#]gid=(\d+)", re.IGNORECASE)

# Characters encodeURIComponent leaves alone, on top of quote()'s "_.-~"
_COMPONENT_SAFE = "!*'()"


def parse_sheet_id(value: str | None) -> str:
    """Returns the sheet ID from a raw ID or a spreadsheet URL, or "" if neither."""
    trimmed = (value or "").strip()
    if not trimmed:
        return ""
    if match := _SHEET_ID_REGEX.search(trimmed):
        return match.group(1)
    if _RAW_SHEET_ID_REGEX.match(trimmed):
        return trimmed
    return ""


def parse_gid(value: str | int | None) -> str:
    """Returns the numeric tab GID from a raw number or a URL containing gid=."""
    trimmed = str(value if value is not None else "").strip()
    if not trimmed:
        return ""
    if match := _GID_REGEX.search(trimmed):
        return match.group(1)
    if trimmed.isdigit():
        return trimmed
    return ""


def is_remote_url(url: str | None) -> bool:
    return bool(url) and url.startswith(("http://", "https://"))


def get_image_url(image_filename: str, cdn_base: str = "", lowercase: bool = False) -> str:
    """
    Builds the full image URL for a product image filename.

    With `lowercase=True` the filename is lower-cased first; this variant is
    synced as a fallback key for objects uploaded with lower-case names.
    Without a CDN base the image is served from the local `/images/` path.
    """
    if not image_filename:
        return ""
    name = image_filename.lower() if lowercase else image_filename
    encoded = quote(name, safe=_COMPONENT_SAFE)
    base = (cdn_base or "").rstrip("/")
    if not base:
        return f"/images/{encoded}"
    return f"{base}/{encoded}"


def get_feature_media_url(reference: str, cdn_base: str = "") -> str:
    """
    Resolves a feature media reference (sheet column C) to a full URL. Absolute
    URLs are kept; relative object keys are placed under the CDN base.
    """
    ref = (reference or "").strip()
    if not ref:
        return ""
    if is_remote_url(ref):
        return ref
    encoded = quote(ref.lstrip("/"), safe="/" + _COMPONENT_SAFE)
    base = (cdn_base or "").rstrip("/")
    if not base:
        return f"/images/{encoded}"
    return f"{base}/{encoded}"
