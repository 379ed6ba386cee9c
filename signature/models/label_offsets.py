from __future__ import annotations
from dataclasses import dataclass

@dataclass(frozen=True)
class LabelOffsets:
    """
    Offsets in PDF points (1pt = 1/72 inch), measured DOWN from the bottom edge
    of the signature image to the baseline of each label line.
      - x_offset shifts labels horizontally from the left edge of the signature
    """
    name_below: float = 9.0
    role_below: float = 18.0
    date_below: float = 27.0
    x_offset: float = 0.0

    @property
    def block_height(self) -> float:
        """Vertical space the label block needs below the image."""
        return max(self.name_below, self.role_below, self.date_below) + 3.0
