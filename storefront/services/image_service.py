import io
import uuid
from PIL import Image as PILImage
from flask import current_app

from storefront.services import storage_service


ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}


def validate_image(image_bytes):
    """Validate and sanitize an uploaded option image.

    - Checks file size
    - Verifies it's a real image via Pillow
    - Strips EXIF data by re-encoding
    - Converts to JPEG

    Returns:
        Sanitized JPEG bytes

    Raises:
        ValueError on invalid input
    """
    max_size = current_app.config["MAX_IMAGE_SIZE"]
    if not image_bytes:
        raise ValueError("Empty image file")
    if len(image_bytes) > max_size:
        raise ValueError(f"Image too large: {len(image_bytes)} bytes (max {max_size})")

    try:
        img = PILImage.open(io.BytesIO(image_bytes))
        img.verify()  # verify it's a real image
    except Exception:
        raise ValueError("Invalid image file")

    # Re-open (verify() closes the file) and re-encode to strip EXIF
    img = PILImage.open(io.BytesIO(image_bytes))
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


def store_option_image(image_bytes, content_type=None):
    """Validate, upload and return the public URL of an option image."""
    if content_type and content_type not in ALLOWED_CONTENT_TYPES:
        raise ValueError(f"Unsupported image type: {content_type}")
    jpeg_bytes = validate_image(image_bytes)
    storage_key = f"options/{uuid.uuid4().hex}.jpg"
    storage_service.upload(storage_key, jpeg_bytes)
    return storage_service.get_public_url(storage_key)
