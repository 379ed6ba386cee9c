# signature/logic/encryption.py
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from ..exceptions.errors import SignatureKeyError

logger = logging.getLogger(__name__)


def _parse_keys(lines: Sequence[str]) -> List[Fernet]:
    ferns: List[Fernet] = []
    for raw in lines:
        key = raw.strip()
        if not key or key.startswith("#"):
            continue
        try:
            ferns.append(Fernet(key.encode("ascii")))
        except (ValueError, UnicodeEncodeError):
            # ignore malformed legacy entries
            logger.warning("Ignoring malformed entry in signature key ring")
    return ferns


class SignatureVault:
    """
    Encrypts signature images at rest with a Fernet key ring:
    - first key in the ring is the current key (used for ENCRYPT),
    - remaining keys are legacy keys (used only for DECRYPT).

    The ring lives in a plain text file, one base64 key per line. A missing
    file is created with a fresh key on first use.
    """

    def __init__(self, key_file: Optional[Path] = None, *, keys: Optional[Sequence[bytes]] = None) -> None:
        if key_file is None and not keys:
            raise ValueError("SignatureVault needs a key file or explicit keys")
        self._key_file = Path(key_file) if key_file is not None else None
        self._explicit = [Fernet(k) for k in keys] if keys else None
        self._lock = threading.Lock()
        self._ring: Optional[MultiFernet] = None

    def _load_keyring(self) -> MultiFernet:
        with self._lock:
            if self._ring is not None:
                return self._ring
            if self._explicit:
                self._ring = MultiFernet(self._explicit)
                return self._ring

            if self._key_file is None:
                raise SignatureKeyError("No signature key file or keys configured.")
            if not self._key_file.exists():
                self._key_file.parent.mkdir(parents=True, exist_ok=True)
                self._key_file.write_text(Fernet.generate_key().decode("ascii") + "\n", encoding="ascii")
                if os.name != "nt":
                    os.chmod(self._key_file, 0o600)
                logger.info("Created signature key ring at %s", self._key_file)

            ferns = _parse_keys(self._key_file.read_text(encoding="ascii").splitlines())
            if not ferns:
                raise SignatureKeyError(f"Signature key ring {self._key_file} holds no usable key.")
            self._ring = MultiFernet(ferns)
            return self._ring

    def encrypt_bytes(self, data: bytes) -> bytes:
        """Encrypt 'data' using the CURRENT key."""
        return self._load_keyring().encrypt(data)

    def decrypt_bytes(self, token: bytes) -> bytes:
        """Try the current key first, then legacy keys."""
        try:
            return self._load_keyring().decrypt(token)
        except InvalidToken as ex:
            raise SignatureKeyError("Stored signature image cannot be decrypted with the key ring.") from ex

    def rotate(self) -> bytes:
        """
        Prepend a fresh current key to the ring file and return it.
        Existing tokens stay readable through the legacy keys.
        """
        if self._key_file is None:
            raise ValueError("Key rotation needs a key file")
        self._load_keyring()
        new_key = Fernet.generate_key()
        with self._lock:
            existing = self._key_file.read_text(encoding="ascii")
            self._key_file.write_text(new_key.decode("ascii") + "\n" + existing, encoding="ascii")
            self._ring = None
        logger.info("Rotated signature key ring at %s", self._key_file)
        return new_key
