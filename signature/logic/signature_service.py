# signature/logic/signature_service.py
from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from typing import Optional, Sequence

from core.config.config_service import SignatureConfig
from core.contracts.audit import IAuditLogger

from ..models.label_offsets import LabelOffsets
from ..models.signature_image import SignatureImage
from ..models.signature_placement import SignaturePlacement
from .encryption import SignatureVault
from .layout import SignatureLayout
from .pdf_signer import PdfSigner, RenderLabels, SignatureStamp

logger = logging.getLogger(__name__)

_DATE_FORMAT = "%Y-%m-%d %H:%M UTC"


class SignatureService:
    """
    Signing logic without workflow knowledge.

    Builds stamps (placement + labels) for signers, applies them to a base PDF,
    keeps signature images encrypted at rest and writes an audit event with the
    SHA-256 of every applied signature image.
    """

    def __init__(
        self,
        *,
        config: SignatureConfig,
        vault: SignatureVault,
        audit_logger: Optional[IAuditLogger] = None,
    ) -> None:
        self._cfg = config
        self._vault = vault
        self._audit_logger = audit_logger
        self._offsets = LabelOffsets()
        self._layout = SignatureLayout(
            target_width=float(config.target_width),
            margin=float(config.margin),
            gap=float(config.gap),
            offsets=self._offsets,
            with_labels=bool(config.embed_labels),
        )

    @property
    def layout(self) -> SignatureLayout:
        return self._layout

    # -------- Stamps ---------------------------------------------------------
    def labels_for(self, *, full_name: str, role: str, signed_at: datetime) -> Optional[RenderLabels]:
        if not self._cfg.embed_labels:
            return None
        return RenderLabels(
            name_text=full_name or None,
            role_text=role.replace("_", " ").title() if role else None,
            date_text=signed_at.strftime(_DATE_FORMAT),
            offsets=self._offsets,
            font_size=int(self._cfg.label_font_size),
        )

    def default_placement(self, base_pdf: bytes, slot: int) -> SignaturePlacement:
        """Bottom-row slot *slot* (zero based) on the last page of *base_pdf*."""
        box = PdfSigner.page_box(base_pdf, -1)
        return self._layout.placement(slot, box.width, box.height, origin=(box.left, box.bottom))

    def stamp(
        self,
        image: SignatureImage,
        *,
        base_pdf: bytes,
        slot: int,
        full_name: str,
        role: str,
        signed_at: datetime,
        placement: Optional[SignaturePlacement] = None,
    ) -> SignatureStamp:
        return SignatureStamp(
            image=image,
            placement=placement or self.default_placement(base_pdf, slot),
            labels=self.labels_for(full_name=full_name, role=role, signed_at=signed_at),
        )

    # -------- Signing --------------------------------------------------------
    def sign_pdf(
        self,
        base_pdf: bytes,
        stamps: Sequence[SignatureStamp],
        *,
        reference_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> bytes:
        """Apply *stamps* to *base_pdf* and return the signed PDF bytes."""
        signed = PdfSigner.embed(base_pdf, stamps)
        self._audit(
            reference_id=reference_id,
            user_id=user_id,
            payload={
                "stamps": [
                    {
                        "page_index": s.placement.page_index,
                        "x": s.placement.x,
                        "y": s.placement.y,
                        "width": s.placement.target_width,
                        "signature_sha256": s.image.sha256,
                    }
                    for s in stamps
                ],
                "base_sha256": hashlib.sha256(base_pdf).hexdigest(),
                "artifact_sha256": hashlib.sha256(signed).hexdigest(),
            },
        )
        return signed

    def _audit(self, *, reference_id: Optional[str], user_id: Optional[str], payload: dict) -> None:
        if self._audit_logger is None:
            return
        try:
            self._audit_logger.log(
                "Signature", "sign_pdf", user_id=user_id, reference_id=reference_id, data=payload
            )
        except Exception:
            logger.exception("Signature audit event could not be written")

    # -------- Encrypted signature images ------------------------------------
    def seal_image(self, image: SignatureImage) -> bytes:
        return self._vault.encrypt_bytes(image.data)

    def open_image(self, token: bytes) -> SignatureImage:
        """Decrypt a stored image and validate it again."""
        return SignatureImage.from_bytes(self._vault.decrypt_bytes(token))
