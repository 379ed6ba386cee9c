from __future__ import annotations

from io import BytesIO
from typing import List

from PIL import Image, UnidentifiedImageError
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from conversion.exceptions.errors import ConversionFailedError

_MARGIN = 36.0
_FONT = "Helvetica"
_FONT_SIZE = 10
_LEADING = 13.0
# Larger uploads are refused before decoding; a 300 dpi A3 scan is ~17M pixels.
_MAX_PIXELS = 40_000_000


def _new_canvas(buf: BytesIO, pagesize) -> canvas.Canvas:
    # invariant=1 strips timestamps and random ids, so equal input gives equal bytes
    return canvas.Canvas(buf, pagesize=pagesize, invariant=1, pageCompression=1)


def image_to_pdf(data: bytes) -> bytes:
    """
    Single-page PDF with the image centred and scaled to fit A4 (never upscaled).
    Multi-frame images (GIF) use their first frame.
    """
    try:
        img = Image.open(BytesIO(data))
        if img.width * img.height > _MAX_PIXELS:
            raise ConversionFailedError(f"Image is too large to render ({img.width}x{img.height} pixels).")
        img.seek(0)
        img = img.convert("RGBA") if img.mode in ("P", "LA", "RGBA") else img.convert("RGB")
    except Image.DecompressionBombError as ex:
        raise ConversionFailedError(f"Image is too large to render: {ex}") from ex
    except (UnidentifiedImageError, OSError) as ex:
        raise ConversionFailedError(f"Image cannot be decoded: {ex}") from ex

    page_w, page_h = A4
    avail_w, avail_h = page_w - 2 * _MARGIN, page_h - 2 * _MARGIN
    scale = min(1.0, avail_w / img.width, avail_h / img.height)
    draw_w, draw_h = img.width * scale, img.height * scale
    x = (page_w - draw_w) / 2
    y = (page_h - draw_h) / 2

    buf = BytesIO()
    c = _new_canvas(buf, A4)
    c.drawImage(ImageReader(img), x, y, width=draw_w, height=draw_h, mask="auto")
    c.showPage()
    c.save()
    return buf.getvalue()


def _wrap(line: str, max_width: float) -> List[str]:
    if not line:
        return [""]
    out: List[str] = []
    current = ""
    for word in line.split(" "):
        candidate = word if not current else f"{current} {word}"
        if stringWidth(candidate, _FONT, _FONT_SIZE) <= max_width:
            current = candidate
            continue
        if current:
            out.append(current)
        # words wider than the line are hard-split
        while stringWidth(word, _FONT, _FONT_SIZE) > max_width and len(word) > 1:
            cut = len(word)
            while cut > 1 and stringWidth(word[:cut], _FONT, _FONT_SIZE) > max_width:
                cut -= 1
            out.append(word[:cut])
            word = word[cut:]
        current = word
    out.append(current)
    return out


def text_to_pdf(data: bytes) -> bytes:
    """Plain text laid out on A4 pages, UTF-8 with latin-1 fallback."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        text = data.decode("latin-1")
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", "    ")

    page_w, page_h = A4
    max_width = page_w - 2 * _MARGIN

    buf = BytesIO()
    c = _new_canvas(buf, A4)
    y = page_h - _MARGIN
    c.setFont(_FONT, _FONT_SIZE)
    for raw in text.split("\n"):
        for line in _wrap(raw, max_width):
            if y < _MARGIN:
                c.showPage()
                c.setFont(_FONT, _FONT_SIZE)
                y = page_h - _MARGIN
            c.drawString(_MARGIN, y - _FONT_SIZE, line)
            y -= _LEADING
    c.showPage()
    c.save()
    return buf.getvalue()
