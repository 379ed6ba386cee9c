"""In-process PDF and signature image fixtures for tests."""
from __future__ import annotations

from io import BytesIO
from typing import Sequence

from PIL import Image, ImageDraw
from pypdf import PdfReader, PdfWriter
from pypdf.generic import RectangleObject
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas


def make_pdf(pages: Sequence[str] = ("Page one", "Page two"), pagesize=A4) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=pagesize, invariant=1)
    for text in pages:
        c.setFont("Helvetica", 14)
        c.drawString(72, pagesize[1] - 100, text)
        c.showPage()
    c.save()
    return buf.getvalue()


def make_signature_png(width: int = 300, height: int = 100, *, blank: bool = False) -> bytes:
    """Transparent PNG with a few strokes (or none if *blank*)."""
    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    if not blank:
        drw = ImageDraw.Draw(img)
        drw.line([(10, 70), (60, 20), (110, 80), (180, 30), (280, 60)], fill=(0, 0, 0, 255), width=4)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_white_jpeg(width: int = 200, height: int = 80) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), (255, 255, 255)).save(buf, format="JPEG")
    return buf.getvalue()


def make_offset_pdf(mediabox=(200, 200, 795, 1042), text: str = "Cropped scan") -> bytes:
    """One-page PDF whose MediaBox does not start at the origin."""
    left, bottom, right, top = mediabox
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(right, top), invariant=1)
    c.setFont("Helvetica", 14)
    c.drawString(left + 72, top - 100, text)
    c.showPage()
    c.save()
    writer = PdfWriter(clone_from=PdfReader(BytesIO(buf.getvalue())))
    page = writer.pages[0]
    page.mediabox = RectangleObject(mediabox)
    page.cropbox = RectangleObject(mediabox)
    out = BytesIO()
    writer.write(out)
    return out.getvalue()
