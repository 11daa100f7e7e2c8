"""
Public URI rendering for published resources.

Persistent resource URIs come from a pattern with placeholders; static
resource URIs always point at the provider's generic public endpoint.
"""
from __future__ import annotations

import re
from typing import Optional

import httpx

from .models import Resource
from .storage.keys import encode_uri_path

__all__ = [
    "GOOGLE_STORAGE_BASE_URI",
    "DEFAULT_PERSISTENT_RESOURCE_URI_PATTERN",
    "BUCKET_PERSISTENT_RESOURCE_URI_PATTERN",
    "render_persistent_resource_uri",
    "append_signature",
    "static_resource_uri",
]

GOOGLE_STORAGE_BASE_URI = "https://storage.googleapis.com/"

DEFAULT_PERSISTENT_RESOURCE_URI_PATTERN = "{baseUri}{keyPrefix}{sha1}/{filename}"

# Used when neither a pattern nor a base URI is configured
BUCKET_PERSISTENT_RESOURCE_URI_PATTERN = "{baseUri}{bucketName}/{keyPrefix}{sha1}/{filename}"

_PLACEHOLDER_RE = re.compile(r"\{(baseUri|bucketName|keyPrefix|sha1|md5|filename|fileExtension)\}")


def render_persistent_resource_uri(
    resource: Resource,
    *,
    pattern: str,
    base_uri: Optional[str],
    bucket_name: str,
    key_prefix: str,
) -> str:
    """
    Substitute the placeholders of a persistent resource URI pattern.

    Path-like values are percent-encoded segment by segment; the base URI is
    inserted verbatim. Substitution is single-pass, so placeholder-like text
    inside a filename is never expanded.

    Examples:
        >>> logo = Resource(sha1="2aae6c35c94fcfb415dbe95f408b9ce91ee846ed", filename="My Logo.svg")
        >>> render_persistent_resource_uri(
        ...     logo, pattern="{baseUri}{sha1}/{filename}",
        ...     base_uri="https://cdn.example/", bucket_name="b", key_prefix="")
        'https://cdn.example/2aae6c35c94fcfb415dbe95f408b9ce91ee846ed/My%20Logo.svg'
    """
    if not pattern:
        if base_uri:
            pattern = DEFAULT_PERSISTENT_RESOURCE_URI_PATTERN
        else:
            base_uri = GOOGLE_STORAGE_BASE_URI
            pattern = BUCKET_PERSISTENT_RESOURCE_URI_PATTERN

    values = {
        "baseUri": base_uri or "",
        "bucketName": encode_uri_path(bucket_name),
        "keyPrefix": encode_uri_path(key_prefix),
        "sha1": resource.sha1,
        "md5": resource.md5 or "",
        "filename": encode_uri_path(resource.filename),
        "fileExtension": encode_uri_path(resource.file_extension),
    }
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], pattern)


def append_signature(uri: str, signed_url: str) -> str:
    """Append the query string of a signed URL to uri."""
    query = httpx.URL(signed_url).query.decode("ascii")
    if not query:
        return uri
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}{query}"


def static_resource_uri(bucket_name: str, key_prefix: str, relative_path: str) -> str:
    """
    Build the public URI of a static resource.

    Examples:
        >>> static_resource_uri("assets", "static/", "Packages/My Site/logo.svg")
        'https://storage.googleapis.com/assets/static/Packages/My%20Site/logo.svg'
    """
    return f"{GOOGLE_STORAGE_BASE_URI}{bucket_name}/{key_prefix}{encode_uri_path(relative_path)}"
