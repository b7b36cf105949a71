"""Thumbnail resizing for captured tab images."""

import base64
import binascii
import io
from typing import Tuple, Union

from PIL import Image

from .errors import CaptureError


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """Split a base64 ``data:`` URL into (mime type, raw bytes).

    Raises:
        ValueError: If the string is not a base64 data URL.
    """
    if not isinstance(data_url, str) or not data_url.startswith("data:"):
        raise ValueError("Not a data URL")
    header, sep, payload = data_url.partition(",")
    if not sep or not header.endswith(";base64"):
        raise ValueError("Only base64 data URLs are supported")

    mime_type = header[len("data:") : -len(";base64")] or "application/octet-stream"
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def encode_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def target_size(width: int, height: int, target_width: int) -> Tuple[int, int]:
    """Scale (width, height) to target_width keeping the aspect ratio."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size {width}x{height}")
    return target_width, max(1, round(target_width * height / width))


def resize_image(
    image: Union[str, bytes], target_width: int = 300, quality: int = 70
) -> str:
    """Resize a captured image to a fixed width and re-encode it as JPEG.

    Args:
        image: Data URL or raw encoded image bytes.
        target_width: Output width in pixels.
        quality: JPEG quality of the re-encoded thumbnail.

    Returns:
        The thumbnail as a ``data:image/jpeg;base64,...`` URL.

    Raises:
        CaptureError: If the image cannot be decoded or encoded.
    """
    try:
        if isinstance(image, str):
            _, raw = decode_data_url(image)
        else:
            raw = image

        with Image.open(io.BytesIO(raw)) as img:
            size = target_size(img.width, img.height, target_width)
            thumb = img.convert("RGB").resize(size, Image.Resampling.LANCZOS)

        out = io.BytesIO()
        thumb.save(out, format="JPEG", quality=quality)
    except CaptureError:
        raise
    except Exception as e:
        raise CaptureError(f"Failed to resize image: {e}") from e

    return encode_data_url(out.getvalue(), "image/jpeg")
