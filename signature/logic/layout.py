"""
Default signature slots.

Without an explicit anchor every approval level gets its own slot on the last
page: left to right along the bottom margin, then wrapping to the next row
above once the page width is used up. Slot positions depend only on the page
size and the slot index, so re-signing yields the same layout.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from ..exceptions.errors import AnchorOutOfBoundsError
from ..models.label_offsets import LabelOffsets
from ..models.signature_placement import SignaturePlacement


@dataclass(frozen=True)
class SignatureLayout:
    target_width: float = 150.0
    margin: float = 36.0
    gap: float = 18.0
    image_height_ratio: float = 0.5   # slot image height as a fraction of its width
    offsets: LabelOffsets = field(default_factory=LabelOffsets)
    with_labels: bool = True

    @property
    def image_height(self) -> float:
        return self.target_width * self.image_height_ratio

    @property
    def row_height(self) -> float:
        labels = self.offsets.block_height if self.with_labels else 0.0
        return self.image_height + labels + self.gap

    def columns(self, page_width: float) -> int:
        usable = page_width - 2 * self.margin
        return max(1, int((usable + self.gap) // (self.target_width + self.gap)))

    def placement(
        self,
        slot: int,
        page_width: float,
        page_height: float,
        origin: Tuple[float, float] = (0.0, 0.0),
    ) -> SignaturePlacement:
        """
        Placement for zero-based *slot* on a page of the given size whose
        lower-left corner sits at *origin*.
        """
        if slot < 0:
            raise ValueError("slot must be >= 0")
        cols = self.columns(page_width)
        row, col = divmod(slot, cols)
        labels = self.offsets.block_height if self.with_labels else 0.0
        x = self.margin + col * (self.target_width + self.gap)
        y = self.margin + labels + row * self.row_height
        if y + self.image_height > page_height - self.margin:
            raise AnchorOutOfBoundsError(
                f"No room for signature slot {slot + 1} on the last page.", page_index=-1
            )
        return SignaturePlacement(
            page_index=-1,
            x=origin[0] + x,
            y=origin[1] + y,
            target_width=self.target_width,
            max_height=self.image_height,
        )
