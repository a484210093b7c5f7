"""
Supabase Storage access for Renoir
"""
import re
import time
import base64
import logging
from typing import Optional, Tuple
from urllib.parse import urlparse, unquote

import httpx
from supabase import Client

from services.errors import StorageError
from services.output_extraction import ExtractedOutput, HTTP_URL, IMAGE_DATA_URL

logger = logging.getLogger(__name__)

INPUT_BUCKET = "input-images"
OUTPUT_BUCKET = "output-images"
OWNED_BUCKETS = (INPUT_BUCKET, OUTPUT_BUCKET)

DATA_URL = re.compile(r"^data:(.*?);base64,(.*)$", re.DOTALL)


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def extension_for(content_type: str) -> str:
    if "jpeg" in content_type or "jpg" in content_type:
        return "jpg"
    if "png" in content_type:
        return "png"
    return "webp"


def storage_key_from_url(url: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Find which owned bucket a public URL points into.

    Returns:
        Tuple of (bucket, object key), or None for missing or foreign URLs
    """
    if not url:
        return None
    try:
        path = unquote(urlparse(url).path)
    except ValueError:
        return None
    for bucket in OWNED_BUCKETS:
        marker = f"/{bucket}/"
        if marker in path:
            key = path.split(marker, 1)[1]
            if key:
                return bucket, key
    return None


class StorageService:
    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    def _upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        storage = self.supabase.storage.from_(bucket)
        storage.upload(
            path=path,
            file=data,
            file_options={"content-type": content_type, "upsert": "false"},
        )
        return storage.get_public_url(path)

    def _upload_with_fallback(self, path: str, data: bytes, content_type: str) -> str:
        """Upload to the output bucket, falling back to the input bucket"""
        try:
            return self._upload(OUTPUT_BUCKET, path, data, content_type)
        except Exception as e:
            logger.warning(f"Output bucket upload failed, trying {INPUT_BUCKET}: {e}")
        return self._upload(INPUT_BUCKET, path, data, content_type)

    async def upload_input(self, data: bytes, filename: Optional[str], content_type: str) -> str:
        """
        Store the user's source image and return its public URL.

        Raises:
            StorageError: If the upload fails
        """
        path = f"input/{_timestamp_ms()}-{filename or 'upload'}"
        try:
            public_url = self._upload(INPUT_BUCKET, path, data, content_type)
        except Exception as e:
            logger.error(f"Upload error for {path}: {e}", exc_info=True)
            raise StorageError("Failed to upload image")

        logger.info(f"Image uploaded successfully: {path}")
        return public_url

    async def _fetch(self, url: str) -> Tuple[Optional[bytes], str]:
        content_type = "image/png"
        if HTTP_URL.match(url):
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await client.get(url)
            if response.status_code != 200:
                logger.warning(f"Fetching generated image returned {response.status_code}")
                return None, content_type
            return response.content, response.headers.get("content-type") or content_type

        if IMAGE_DATA_URL.match(url):
            match = DATA_URL.match(url)
            if match:
                return base64.b64decode(match.group(2)), match.group(1) or content_type

        return None, content_type

    async def persist_output(self, extracted: ExtractedOutput) -> str:
        """
        Copy a generated image into our own bucket and return its public URL.

        Remote and data URLs are best-effort: on any failure the original URL is
        returned. Streamed bytes have nothing to fall back to.

        Raises:
            StorageError: If streamed bytes cannot be stored
        """
        base_path = f"output/{_timestamp_ms()}-generated"

        if extracted.data is not None:
            path = f"{base_path}.{extension_for(extracted.content_type)}"
            try:
                public_url = self._upload_with_fallback(path, extracted.data, extracted.content_type)
            except Exception as e:
                logger.error(f"Upload error for generated image: {e}", exc_info=True)
                raise StorageError("Failed to upload generated image", details=str(e))
            logger.info(f"Generated image uploaded successfully: {path}")
            return public_url

        original_url = extracted.url
        try:
            data, content_type = await self._fetch(original_url)
            if not data:
                return original_url

            path = f"{base_path}.{extension_for(content_type)}"
            public_url = self._upload_with_fallback(path, data, content_type)
            logger.info(f"Generated image persisted to storage: {path}")
            return public_url

        except Exception as e:
            logger.error(f"Failed to persist generated image; returning original URL instead: {e}")
            return original_url

    def remove_by_url(self, url: Optional[str]) -> bool:
        """
        Best-effort removal of an object referenced by public URL.

        Never raises. Returns True when a removal was requested.
        """
        located = storage_key_from_url(url)
        if not located:
            return False

        bucket, key = located
        try:
            self.supabase.storage.from_(bucket).remove([key])
            logger.info(f"Removed {bucket}/{key}")
            return True
        except Exception as e:
            logger.warning(f"Could not remove {bucket}/{key}: {e}")
            return False
