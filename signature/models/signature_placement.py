from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SignaturePlacement:
    """
    Absolute placement on a PDF page (points; 1 pt = 1/72 inch), origin bottom-left.

    ``page_index`` may be negative to count from the end (-1 = last page).
    The image keeps its aspect ratio: it is ``target_width`` wide unless that
    would make it taller than ``max_height``, in which case it is shrunk.
    """
    page_index: int = -1
    x: float = 72 * 4           # 4 inches from left
    y: float = 72 * 1.5         # 1.5 inches from bottom
    target_width: float = 72 * 2.5
    max_height: Optional[float] = None

    def image_size(self, aspect: float) -> tuple[float, float]:
        width = float(self.target_width)
        height = max(6.0, width * aspect)
        if self.max_height is not None and height > self.max_height:
            height = float(self.max_height)
            width = height / aspect if aspect > 0 else width
        return width, height
