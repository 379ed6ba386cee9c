from __future__ import annotations

import base64
import binascii
import hashlib
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from signature.exceptions.errors import EmptySignatureError, InvalidSignatureImageError

_MIME_BY_FORMAT = {"PNG": "image/png", "JPEG": "image/jpeg", "GIF": "image/gif"}

# Pixels lighter than this (0..255 luminance) count as paper, not ink.
_INK_THRESHOLD = 245

# Signature pads produce a few hundred pixels per side; anything bigger is refused
# before it is decoded.
_MAX_PIXELS = 4_000_000


def _has_ink(img: Image.Image) -> bool:
    rgba = img.convert("RGBA")
    alpha_max = rgba.getchannel("A").getextrema()[1]
    if alpha_max == 0:
        return False
    flat = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
    flat.alpha_composite(rgba)
    lo, hi = flat.convert("L").getextrema()
    # uniform images (one colour everywhere) carry no strokes either
    return lo < _INK_THRESHOLD and lo != hi


@dataclass(frozen=True)
class SignatureImage:
    """
    Validated hand-drawn signature: raw image bytes plus MIME type.

    Build it with :meth:`from_bytes` or :meth:`from_data_url`; both reject
    empty payloads, undecodable images and blank canvases.
    """
    data: bytes
    mime_type: str
    width: int
    height: int

    @classmethod
    def from_bytes(cls, data: bytes | None) -> "SignatureImage":
        if not data:
            raise EmptySignatureError("A signature image is required to approve.")
        try:
            img = Image.open(BytesIO(data))
            if img.width * img.height > _MAX_PIXELS:
                raise InvalidSignatureImageError(
                    f"Signature image is too large ({img.width}x{img.height} pixels)."
                )
            img.load()
        except Image.DecompressionBombError as ex:
            raise InvalidSignatureImageError(f"Signature image is too large: {ex}") from ex
        except (UnidentifiedImageError, OSError) as ex:
            raise InvalidSignatureImageError(f"Signature image cannot be decoded: {ex}") from ex

        mime = _MIME_BY_FORMAT.get(img.format or "")
        if mime is None:
            raise InvalidSignatureImageError(f"Unsupported signature image format '{img.format}'.")
        if img.width < 1 or img.height < 1:
            raise EmptySignatureError("Signature image has no pixels.")
        if not _has_ink(img):
            raise EmptySignatureError("Signature image is blank.")
        return cls(data=bytes(data), mime_type=mime, width=img.width, height=img.height)

    @classmethod
    def from_data_url(cls, url: str | None) -> "SignatureImage":
        """Accepts ``data:image/<type>;base64,<payload>`` as sent by signature pads."""
        if not url or not url.strip():
            raise EmptySignatureError("A signature image is required to approve.")
        head, sep, payload = url.strip().partition(",")
        if not sep or not head.startswith("data:image/") or not head.endswith(";base64"):
            raise InvalidSignatureImageError("Signature must be a base64 data:image/ URL.")
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as ex:
            raise InvalidSignatureImageError("Signature payload is not valid base64.") from ex
        return cls.from_bytes(raw)

    @property
    def aspect(self) -> float:
        """height / width"""
        return self.height / self.width

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.data).hexdigest()

    def __repr__(self) -> str:
        return f"SignatureImage({self.mime_type}, {self.width}x{self.height}, {len(self.data)} bytes)"
