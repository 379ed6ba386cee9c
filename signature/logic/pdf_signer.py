from __future__ import annotations
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple

from pypdf import PageObject, PdfReader, PdfWriter, Transformation
from pypdf.errors import PdfReadError
from PIL import Image
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..exceptions.errors import AnchorOutOfBoundsError, CorruptInputError
from ..models.label_offsets import LabelOffsets
from ..models.signature_image import SignatureImage
from ..models.signature_placement import SignaturePlacement

# Tolerance for float rounding when checking the stamp box against the page.
_EPS = 0.01


@dataclass(frozen=True)
class PageBox:
    """MediaBox corners of a page in its own user space."""
    left: float
    bottom: float
    right: float
    top: float

    @classmethod
    def of(cls, page: PageObject) -> "PageBox":
        box = page.mediabox
        return cls(float(box.left), float(box.bottom), float(box.right), float(box.top))

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.top - self.bottom


@dataclass(frozen=True)
class RenderLabels:
    """
    Text lines (signer name / role / signing date) painted below the
    signature image in the same overlay.
    """
    name_text: Optional[str] = None
    role_text: Optional[str] = None
    date_text: Optional[str] = None
    offsets: LabelOffsets = field(default_factory=LabelOffsets)
    color_rgb: Tuple[int, int, int] = (0, 0, 0)  # RGB 0–255
    font_size: int = 7

    def lines(self) -> List[Tuple[str, float, str]]:
        """(text, offset below image, font) for every non-empty label."""
        out = []
        if self.name_text:
            out.append((self.name_text, self.offsets.name_below, "Helvetica-Bold"))
        if self.role_text:
            out.append((self.role_text, self.offsets.role_below, "Helvetica"))
        if self.date_text:
            out.append((self.date_text, self.offsets.date_below, "Helvetica"))
        return out


@dataclass(frozen=True)
class SignatureStamp:
    image: SignatureImage
    placement: SignaturePlacement
    labels: Optional[RenderLabels] = None


class PdfSigner:
    """
    Additive signature embedding: every stamp becomes an overlay page that is
    merged onto its target page. Page count, existing content and the text
    layer of the base document are left untouched.
    """

    @staticmethod
    def open_pdf(base_pdf: bytes) -> PdfReader:
        """Parse *base_pdf* fully or raise CorruptInputError."""
        if not base_pdf or not base_pdf.lstrip()[:5].startswith(b"%PDF"):
            raise CorruptInputError("Base document is not a PDF.")
        try:
            reader = PdfReader(BytesIO(base_pdf), strict=False)
            if reader.is_encrypted:
                raise CorruptInputError("Base PDF is encrypted.")
            pages = list(reader.pages)
            for page in pages:
                _ = page.mediabox
        except PdfReadError as ex:
            raise CorruptInputError(f"Base PDF cannot be parsed: {ex}") from ex
        except (ValueError, KeyError, TypeError, AttributeError) as ex:
            raise CorruptInputError(f"Base PDF is malformed: {ex}") from ex
        if not pages:
            raise CorruptInputError("Base PDF has no pages.")
        return reader

    @staticmethod
    def page_box(base_pdf: bytes, page_index: int = -1) -> PageBox:
        reader = PdfSigner.open_pdf(base_pdf)
        idx = PdfSigner._resolve_page(page_index, len(reader.pages))
        return PageBox.of(reader.pages[idx])

    @staticmethod
    def _resolve_page(page_index: int, page_count: int) -> int:
        idx = page_index + page_count if page_index < 0 else page_index
        if idx < 0 or idx >= page_count:
            raise AnchorOutOfBoundsError(
                f"Page index {page_index} is outside a {page_count}-page document.",
                page_index=page_index,
            )
        return idx

    @staticmethod
    def _check_box(stamp: SignatureStamp, page: PageBox, page_index: int) -> None:
        p = stamp.placement
        w, h = p.image_size(stamp.image.aspect)
        below = stamp.labels.offsets.block_height if stamp.labels and stamp.labels.lines() else 0.0
        left, bottom, right, top = p.x, p.y - below, p.x + w, p.y + h
        if (
            left < page.left - _EPS
            or bottom < page.bottom - _EPS
            or right > page.right + _EPS
            or top > page.top + _EPS
        ):
            raise AnchorOutOfBoundsError(
                f"Signature box ({left:.1f}, {bottom:.1f}, {right:.1f}, {top:.1f}) leaves page "
                f"{page_index} ({page.left:.1f}, {page.bottom:.1f}, {page.right:.1f}, {page.top:.1f}).",
                page_index=page_index,
            )

    @staticmethod
    def _make_overlay(page: PageBox, stamps: Sequence[SignatureStamp]) -> bytes:
        """
        One overlay page the size of the target page carrying every stamp for it:
          • signature image (with alpha)
          • optional labels, left-aligned to the signature edge

        The overlay starts at (0, 0); it is shifted onto the page's MediaBox
        origin when merged.
        """
        buf = BytesIO()
        # invariant=1: no creation date / random ids, so same input -> same bytes
        c = canvas.Canvas(buf, pagesize=(page.width, page.height), invariant=1)

        for stamp in stamps:
            p = stamp.placement
            x, y = p.x - page.left, p.y - page.bottom
            target_w, target_h = p.image_size(stamp.image.aspect)
            sig = Image.open(BytesIO(stamp.image.data)).convert("RGBA")
            c.drawImage(ImageReader(sig), x, y, width=target_w, height=target_h, mask="auto")

            labels = stamp.labels
            if labels:
                r, g, b = labels.color_rgb
                c.setFillColorRGB(r / 255.0, g / 255.0, b / 255.0)
                for text, below, font in labels.lines():
                    c.setFont(font, max(5, int(labels.font_size)))
                    c.drawString(x + labels.offsets.x_offset, y - below, text)

        c.showPage()
        c.save()
        return buf.getvalue()

    @staticmethod
    def embed(base_pdf: bytes, stamps: Sequence[SignatureStamp]) -> bytes:
        """
        Return a new PDF with all *stamps* applied to *base_pdf*.

        Placements are in the target page's own coordinates, so on a page
        whose MediaBox is [200 200 795 1042] the lower-left corner is
        (200, 200). Every stamp is validated before anything is composed,
        so a bad anchor never yields a half-signed document.
        """
        reader = PdfSigner.open_pdf(base_pdf)
        page_count = len(reader.pages)

        by_page: Dict[int, List[SignatureStamp]] = {}
        for stamp in stamps:
            idx = PdfSigner._resolve_page(stamp.placement.page_index, page_count)
            PdfSigner._check_box(stamp, PageBox.of(reader.pages[idx]), idx)
            by_page.setdefault(idx, []).append(stamp)

        writer = PdfWriter(clone_from=reader)
        for i, page_stamps in sorted(by_page.items()):
            target = writer.pages[i]
            box = PageBox.of(target)
            overlay = PdfReader(BytesIO(PdfSigner._make_overlay(box, page_stamps))).pages[0]
            target.merge_transformed_page(overlay, Transformation().translate(box.left, box.bottom))

        out = BytesIO()
        writer.write(out)
        return out.getvalue()
