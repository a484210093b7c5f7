"""
Extract the generated image from an inference response.

Model responses differ by model and change without notice: a bare URL, a list
of URLs, file objects that stream bytes, or arbitrarily nested JSON. The search
here works over plain Python values (str, list/tuple, dict) and knows nothing
about the HTTP client or SDK that produced them.
"""
import re
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

MAX_SEARCH_DEPTH = 6

HTTP_URL = re.compile(r"^https?://")
IMAGE_DATA_URL = re.compile(r"^data:image/")

# Keys models commonly put the result under, checked before any other key
PREFERRED_KEYS = (
    "url", "image", "image_url", "asset_url", "uri", "file",
    "output", "outputs", "images", "result", "results", "data", "content", "path",
)


@dataclass
class ExtractedOutput:
    """Either a URL (http(s) or data URL) or raw image bytes."""
    url: Optional[str] = None
    data: Optional[bytes] = None
    content_type: str = "image/png"


def is_usable_url(value: str) -> bool:
    return bool(HTTP_URL.match(value) or IMAGE_DATA_URL.match(value))


def find_first_url(value: Any, depth: int = 0) -> Optional[str]:
    """
    Depth-first search for the first http(s) or image data URL.

    Dict values under PREFERRED_KEYS are searched first, then every value.
    Nothing deeper than MAX_SEARCH_DEPTH is visited.
    """
    if depth > MAX_SEARCH_DEPTH or value is None:
        return None

    if isinstance(value, str):
        return value if is_usable_url(value) else None

    if isinstance(value, (list, tuple)):
        for item in value:
            url = find_first_url(item, depth + 1)
            if url:
                return url
        return None

    if isinstance(value, dict):
        for key in PREFERRED_KEYS:
            if key in value:
                url = find_first_url(value[key], depth + 1)
                if url:
                    return url
        for item in value.values():
            url = find_first_url(item, depth + 1)
            if url:
                return url

    return None


def _is_readable(value: Any) -> bool:
    return callable(getattr(value, "read", None))


def _drain(stream: Any) -> bytes:
    """Read a file-like or iterable-of-chunks output to the end"""
    data = stream.read()
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    return b"".join(bytes(chunk) for chunk in data)


def extract_output(output: Any) -> Optional[ExtractedOutput]:
    """
    Turn an inference response into something that can be persisted.

    Returns:
        ExtractedOutput, or None when no usable image could be found
    """
    if output is None or output == "" or output == [] or output == {}:
        return None

    first = output[0] if isinstance(output, (list, tuple)) and output else output

    if _is_readable(first):
        logger.info("Reading streamed output from the model")
        data = _drain(first)
        if data:
            return ExtractedOutput(data=data)
        return None

    # SDK file objects expose the remote location as a ``url`` attribute
    url_attr = getattr(first, "url", None)
    if isinstance(url_attr, str) and is_usable_url(url_attr):
        return ExtractedOutput(url=url_attr)

    url = find_first_url(output)
    if url:
        return ExtractedOutput(url=url)
    return None
