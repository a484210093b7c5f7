"""
Upload normalization for Renoir
"""
import io
import re
import logging
from typing import Optional, Tuple

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"
PASSTHROUGH_TYPES = re.compile(r"^image/(png|jpeg|jpg|webp)$", re.IGNORECASE)


class ImageService:
    def __init__(self, jpeg_quality: int = 95):
        self.jpeg_quality = jpeg_quality
        self.pil_formats = {
            "image/png": "PNG",
            "image/jpeg": "JPEG",
            "image/jpg": "JPEG",
            "image/webp": "WEBP",
        }

    def normalize_upload(self, image_bytes: bytes, content_type: Optional[str]) -> Tuple[bytes, str]:
        """
        Rotate an upload according to its EXIF orientation and drop the metadata.

        Uncommon formats are transcoded to JPEG. Any failure leaves the raw
        bytes untouched, since a sideways image is better than no image.

        Returns:
            Tuple of (image bytes, content type)
        """
        content_type = content_type or DEFAULT_CONTENT_TYPE
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                rotated = ImageOps.exif_transpose(img)

                if PASSTHROUGH_TYPES.match(content_type):
                    target_type = content_type.lower()
                else:
                    target_type = DEFAULT_CONTENT_TYPE

                output = io.BytesIO()
                pil_format = self.pil_formats[target_type]
                if pil_format == "JPEG":
                    if rotated.mode not in ("RGB", "L"):
                        rotated = rotated.convert("RGB")
                    rotated.save(output, format="JPEG", quality=self.jpeg_quality)
                else:
                    rotated.save(output, format=pil_format)

                return output.getvalue(), target_type

        except Exception as e:
            logger.info(f"EXIF normalization skipped: {e}")
            return image_bytes, content_type

    def read_dimensions(self, image_bytes: bytes) -> Optional[Tuple[int, int]]:
        """Get (width, height) of an image, or None when it cannot be decoded"""
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                return img.size
        except Exception as e:
            logger.info(f"Could not read image dimensions: {e}")
            return None

    def detect_content_type(self, image_bytes: bytes) -> Optional[str]:
        """Get the MIME type Pillow recognizes in the bytes, or None when it cannot tell"""
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                return Image.MIME.get(img.format)
        except Exception as e:
            logger.info(f"Could not detect image format: {e}")
            return None
