"""Recipe image upload: validate with Pillow, re-encode to WebP, store."""

import io
import logging
import uuid

from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from ..errors import ValidationFailed
from ..schemas import ImageUploadOut
from ..storage.s3_compat import get_store

logger = logging.getLogger("recipehub.images")

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
ALLOWED_FORMATS = {"JPEG", "PNG", "WEBP"}
MAX_BYTES = 5 * 1024 * 1024
MIN_WIDTH, MIN_HEIGHT = 400, 300
MAX_WIDTH, MAX_HEIGHT = 4000, 3000
WEBP_QUALITY = 85


def validate_image(data: bytes, content_type: str | None) -> Image.Image:
    if content_type and content_type.lower() not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailed("Invalid file type. Only JPEG, PNG and WebP are allowed.")
    if not data:
        raise ValidationFailed("No image file provided")
    if len(data) > MAX_BYTES:
        raise ValidationFailed("File too large. Maximum size is 5MB.")

    too_large = f"Image too large. Maximum dimensions are {MAX_WIDTH}x{MAX_HEIGHT} pixels."
    try:
        img = Image.open(io.BytesIO(data))
    except Image.DecompressionBombError as e:
        raise ValidationFailed(too_large) from e
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationFailed("Invalid image file") from e

    if img.format not in ALLOWED_FORMATS:
        raise ValidationFailed("Invalid file type. Only JPEG, PNG and WebP are allowed.")

    # header size only; pixels are decoded after the bounds check
    width, height = img.size
    if width < MIN_WIDTH or height < MIN_HEIGHT:
        raise ValidationFailed(f"Image too small. Minimum dimensions are {MIN_WIDTH}x{MIN_HEIGHT} pixels.")
    if width > MAX_WIDTH or height > MAX_HEIGHT:
        raise ValidationFailed(too_large)

    try:
        img.load()
    except (Image.DecompressionBombError, OSError) as e:
        raise ValidationFailed("Invalid image file") from e
    return img


def to_webp(img: Image.Image) -> bytes:
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
    buf = io.BytesIO()
    img.save(buf, format="WEBP", quality=WEBP_QUALITY)
    return buf.getvalue()


def upload_recipe_image(user_id: str, data: bytes, content_type: str | None) -> ImageUploadOut:
    img = validate_image(data, content_type)
    webp_bytes = to_webp(img)

    key = f"recipes/{user_id}/{uuid.uuid4().hex}.webp"
    result = get_store().put_bytes(key=key, content_type="image/webp", data=webp_bytes)
    logger.info(f"user={user_id} uploaded image key={key} ({len(data)} -> {len(webp_bytes)} bytes)")

    return ImageUploadOut(
        url=result.public_url,
        key=result.key,
        width=img.width,
        height=img.height,
        size=len(webp_bytes),
        content_type="image/webp",
    )


def delete_images(urls: list[str]) -> int:
    """Remove stored objects behind recipe image URLs. Returns how many were deleted.

    URLs not issued by the configured store are skipped. Storage errors are
    logged; the recipe row is already gone by the time this runs.
    """
    if not urls:
        return 0
    store = get_store()
    deleted = 0
    for url in urls:
        key = store.key_for_url(url)
        if key is None:
            continue
        try:
            store.delete(key)
            deleted += 1
        except (BotoCoreError, ClientError, OSError, ValueError) as e:
            logger.warning(f"Could not delete image {key}: {e}")
    return deleted
