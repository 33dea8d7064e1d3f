import base64
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from server.src.modules.anima_errors import ValidationError
from settings import settings

ALLOWED_MIME = {"image/png", "image/jpeg", "image/webp", "image/gif"}


def sniff_mime(data: bytes) -> Optional[str]:
    try:
        with Image.open(BytesIO(data)) as img:
            return Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, OSError):
        return None


def encode_to_data_url(data: bytes, content_type: Optional[str] = None, max_bytes: Optional[int] = None) -> str:
    """Embed an uploaded picture as a ``data:`` URL for ``image_url``."""
    limit = settings.max_image_bytes if max_bytes is None else max_bytes
    if not data:
        raise ValidationError("Image file is empty")
    if len(data) > limit:
        raise ValidationError(f"Image too large (max {limit} bytes)")
    mime = (content_type or "").lower() or sniff_mime(data)
    if mime not in ALLOWED_MIME:
        raise ValidationError("Unsupported file type")
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"
