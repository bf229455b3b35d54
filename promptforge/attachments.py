"""
Multimodal Input Adapter
=========================
Normalizes an optional image attachment into (bytes, media type) so the model
client can send it as a separate content block next to the instruction text.

Accepted shapes:
  - ``data:image/png;base64,....`` URLs (what the browser client posts)
  - bare base64 strings, with or without an explicit media type
  - raw bytes, with or without an explicit media type
"""
from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

from promptforge.errors import InvalidAttachment

MAX_IMAGE_BYTES = 5 * 1024 * 1024

SUPPORTED_MEDIA_TYPES = ("image/png", "image/jpeg", "image/gif", "image/webp")

_DATA_URL_RE = re.compile(r"^data:(?P<media>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^,;]*)*),(?P<data>.*)$", re.DOTALL)

_MEDIA_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}


@dataclass(frozen=True)
class ImagePart:
    data: bytes
    media_type: str

    def to_content_block(self) -> dict:
        """Anthropic Messages API image block."""
        return {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": self.media_type,
                "data": base64.b64encode(self.data).decode("ascii"),
            },
        }


def sniff_media_type(data: bytes) -> str | None:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def _decode_base64(payload: str) -> bytes:
    cleaned = re.sub(r"\s+", "", payload)
    # Browsers sometimes drop padding
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidAttachment(f"Image is not valid base64: {e}")


def normalize_image(image: str | bytes | None, media_type: str | None = None) -> ImagePart | None:
    """Return an ImagePart for ``image`` or None when there is no image.

    Raises InvalidAttachment for undecodable, empty, oversized or
    unsupported images.
    """
    if image is None:
        return None

    if isinstance(image, (bytes, bytearray)):
        data = bytes(image)
    else:
        text = image.strip()
        if not text:
            return None
        match = _DATA_URL_RE.match(text)
        if match:
            if ";base64" not in (match.group("params") or ""):
                raise InvalidAttachment("Only base64-encoded data URLs are supported")
            media_type = media_type or match.group("media")
            text = match.group("data")
        data = _decode_base64(text)

    if not data:
        raise InvalidAttachment("Image is empty")
    if len(data) > MAX_IMAGE_BYTES:
        raise InvalidAttachment(
            f"Image is {len(data)} bytes; the limit is {MAX_IMAGE_BYTES} bytes"
        )

    sniffed = sniff_media_type(data)
    declared = _MEDIA_ALIASES.get((media_type or "").lower(), (media_type or "").lower()) or None
    resolved = sniffed or declared
    if resolved not in SUPPORTED_MEDIA_TYPES:
        raise InvalidAttachment(
            f"Unsupported image type {resolved or 'unknown'}; expected one of {', '.join(SUPPORTED_MEDIA_TYPES)}"
        )
    return ImagePart(data=data, media_type=resolved)
