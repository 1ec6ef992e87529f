"""
Helpers for reading post HTML.

Posts embed uploaded images as ``<img src="...">`` where the src can take
several shapes depending on where the editor got it from:

- a bare storage key: ``uploads/image/2024/01/<uuid>.png``
- a proxy route: ``https://blog.example.com/api/v1/files/proxy/uploads/...``
- a direct bucket URL: ``https://<bucket>.s3.<region>.amazonaws.com/uploads/...``
- the dev proxy: ``http://localhost:3000/api/v1/files/proxy/uploads/...``

Everything here is a pure string function. Scanning is a lightweight regex,
not an HTML parser: we only care about img src attributes.
"""

import re
from typing import List, Optional

from app.core.config import settings

IMG_SRC_PATTERN = re.compile(r'<img[^>]+src="([^">]+)"', re.IGNORECASE)
PROXY_ROUTE_MARKER = "/api/v1/files/proxy/"
S3_URL_PATTERN = re.compile(r"https://[^/]+\.s3\.[^/]+\.amazonaws\.com/(.+)")
LOCALHOST_PROXY_PATTERN = re.compile(r"localhost:\d+/api/v1/files/proxy/(.+)")
HTML_TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")

STORAGE_KEY_PREFIX = "uploads/"


def strip_query(url: str) -> str:
    return url.split("?", 1)[0]


def extract_image_urls(content: Optional[str]) -> List[str]:
    """
    Return the src of every <img> tag in document order, query strings removed.

    Duplicates are kept; callers that need a set should de-duplicate.
    """
    if not content:
        return []
    return [strip_query(src) for src in IMG_SRC_PATTERN.findall(content) if src]


def extract_storage_key(url: Optional[str]) -> Optional[str]:
    """
    Resolve an image URL to its storage key.

    Recognizers are tried in a fixed order and the first match wins.
    Returns None for URLs that don't point at our storage.
    """
    if not url:
        return None

    if url.startswith(STORAGE_KEY_PREFIX):
        return url

    if PROXY_ROUTE_MARKER in url:
        key = strip_query(url.split(PROXY_ROUTE_MARKER, 1)[1])
        if key:
            return key

    match = S3_URL_PATTERN.match(url)
    if match:
        return strip_query(match.group(1)) or None

    match = LOCALHOST_PROXY_PATTERN.search(url)
    if match:
        return strip_query(match.group(1)) or None

    return None


def unique_storage_keys(content: Optional[str]) -> List[str]:
    """Resolved keys referenced by the content, first occurrence order, no repeats."""
    keys: List[str] = []
    seen = set()
    for url in extract_image_urls(content):
        key = extract_storage_key(url)
        if key is None or key in seen:
            continue
        seen.add(key)
        keys.append(key)
    return keys


def to_proxy_url(key: str) -> str:
    """Build the public proxy route for a storage key."""
    base = settings.PUBLIC_API_URL.rstrip("/")
    return f"{base}{settings.API_V1_PREFIX}/files/proxy/{key}"


def first_image_src(content: Optional[str]) -> Optional[str]:
    if not content:
        return None
    match = IMG_SRC_PATTERN.search(content)
    return match.group(1) if match else None


def derive_thumbnail(content: Optional[str]) -> Optional[str]:
    """
    Thumbnail for a post: its first image.

    Bucket URLs and bare keys are rewritten to the proxy route so clients never
    see storage URLs. The raw src is used, query string included.
    """
    src = first_image_src(content)
    if src is None:
        return None

    if src.startswith(STORAGE_KEY_PREFIX):
        return to_proxy_url(src)

    if "amazonaws.com" in src:
        parts = src.split("/")
        if "uploads" in parts:
            return to_proxy_url("/".join(parts[parts.index("uploads"):]))
        match = S3_URL_PATTERN.match(src)
        if match:
            return to_proxy_url(match.group(1))

    return src


def generate_excerpt(content: Optional[str], length: int = 150) -> Optional[str]:
    """Plain-text preview: tags removed, whitespace collapsed, cut at `length`."""
    if not content:
        return None
    plain_text = WHITESPACE_PATTERN.sub(" ", HTML_TAG_PATTERN.sub("", content)).strip()
    if not plain_text:
        return None
    if len(plain_text) > length:
        return plain_text[:length] + "..."
    return plain_text
