"""
===============================================================================
Rendering engines – office formats to PDF via LibreOffice (soffice)
-------------------------------------------------------------------------------
Contract
    RenderingEngine.probe()                      -> version string
    RenderingEngine.convert(bytes, fmt, timeout) -> PDF bytes
    RenderingEngine.restart()                    -> fresh profile + probe

    - One engine serves exactly one job at a time (soffice is not reentrant
      on a shared profile). The worker pool enforces this.
    - Every engine owns a private UserInstallation profile directory.
    - Each job converts inside a private temp directory that is always
      removed, so a failed job never leaves a partial PDF behind.

Binary discovery order
    explicit configuration -> LIBREOFFICE_PATH -> well-known install paths
    -> soffice / libreoffice on PATH
===============================================================================
"""
from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from conversion.exceptions.errors import (
    ConversionFailedError,
    ConversionTimeoutError,
    RendererUnavailableError,
)

logger = logging.getLogger(__name__)

_WINDOWS_CANDIDATES: Sequence[str] = (
    r"C:\Program Files\LibreOffice\program\soffice.exe",
    r"C:\Program Files (x86)\LibreOffice\program\soffice.exe",
)
_POSIX_CANDIDATES: Sequence[str] = (
    "/usr/bin/soffice",
    "/usr/lib/libreoffice/program/soffice",
    "/opt/libreoffice/program/soffice",
    "/Applications/LibreOffice.app/Contents/MacOS/soffice",
)


def discover_renderer_binary(configured: Optional[str] = None) -> Optional[str]:
    """Return the first usable soffice executable, or None."""
    for explicit in (configured, os.environ.get("LIBREOFFICE_PATH")):
        if not explicit:
            continue
        resolved = shutil.which(explicit) or (explicit if Path(explicit).is_file() else None)
        if resolved:
            return resolved
        logger.warning("Configured renderer binary not found: %s", explicit)

    candidates = _WINDOWS_CANDIDATES if os.name == "nt" else _POSIX_CANDIDATES
    for candidate in candidates:
        if Path(candidate).is_file():
            return candidate

    return shutil.which("soffice") or shutil.which("libreoffice")


class RenderingEngine(ABC):
    """One single-threaded renderer instance."""

    def __init__(self, slot: int) -> None:
        self.slot = slot

    @abstractmethod
    def probe(self) -> str:
        """No-op invocation; returns a version string or raises RendererUnavailableError."""

    @abstractmethod
    def convert(self, source: bytes, source_format: str, *, timeout: float) -> bytes:
        """Convert *source* (declared extension *source_format*) to PDF bytes."""

    def restart(self) -> str:
        """Reset engine state and probe again."""
        return self.probe()

    def close(self) -> None:
        """Release engine resources."""


class LibreOfficeEngine(RenderingEngine):
    """soffice --headless --convert-to pdf, one process per job."""

    def __init__(
        self,
        slot: int,
        *,
        binary: Optional[str],
        work_root: Optional[Path] = None,
        probe_timeout: float = 10.0,
    ) -> None:
        super().__init__(slot)
        self._binary = binary
        self._probe_timeout = probe_timeout
        root = Path(work_root) if work_root else Path(tempfile.gettempdir()) / "sigura-renderer"
        self._profile_dir = (root / f"profile-{slot}").resolve()
        self._profile_dir.mkdir(parents=True, exist_ok=True)

    # ---- helpers ----------------------------------------------------------- #
    @property
    def binary(self) -> Optional[str]:
        return self._binary

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        # soffice writes into $HOME even with an explicit profile
        env["HOME"] = str(self._profile_dir)
        return env

    def _base_cmd(self) -> list[str]:
        if not self._binary:
            raise RendererUnavailableError("LibreOffice (soffice) was not found on this host.")
        return [
            self._binary,
            f"-env:UserInstallation={self._profile_dir.as_uri()}",
            "--headless",
            "--norestore",
            "--nolockcheck",
        ]

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        """Kill soffice and the soffice.bin children it forks."""
        try:
            if os.name != "nt":
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except (ProcessLookupError, PermissionError):
            pass
        proc.communicate()

    def _run(self, cmd: list[str], *, timeout: float, cwd: Optional[str] = None) -> tuple[int, bytes, bytes]:
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._env(),
                cwd=cwd,
                start_new_session=(os.name != "nt"),
            )
        except OSError as ex:
            raise RendererUnavailableError(f"Cannot start renderer '{self._binary}': {ex}") from ex

        try:
            out, err = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            self._kill(proc)
            raise
        return proc.returncode, out, err

    # ---- RenderingEngine --------------------------------------------------- #
    def probe(self) -> str:
        cmd = self._base_cmd() + ["--version"]
        try:
            code, out, err = self._run(cmd, timeout=self._probe_timeout)
        except subprocess.TimeoutExpired as ex:
            raise RendererUnavailableError(
                f"Renderer did not answer --version within {self._probe_timeout:.0f}s."
            ) from ex
        if code != 0:
            raise RendererUnavailableError(
                f"Renderer probe failed (exit {code}): {err.decode('utf-8', 'replace')[:200]}"
            )
        version = out.decode("utf-8", "replace").strip().splitlines()
        return version[0] if version else "unknown"

    def convert(self, source: bytes, source_format: str, *, timeout: float) -> bytes:
        ext = source_format if source_format.startswith(".") else f".{source_format}"
        with tempfile.TemporaryDirectory(prefix="sigura-conv-") as tmp:
            src = Path(tmp) / f"source{ext.lower()}"
            out_dir = Path(tmp) / "out"
            out_dir.mkdir()
            src.write_bytes(source)

            cmd = self._base_cmd() + ["--convert-to", "pdf", "--outdir", str(out_dir), str(src)]
            try:
                code, _out, err = self._run(cmd, timeout=timeout, cwd=tmp)
            except subprocess.TimeoutExpired as ex:
                raise ConversionTimeoutError(
                    f"Conversion of {ext} did not finish within {timeout:.0f}s."
                ) from ex

            produced = out_dir / "source.pdf"
            if code != 0 or not produced.is_file():
                raise ConversionFailedError(
                    f"Renderer produced no PDF (exit {code}): {err.decode('utf-8', 'replace')[:200]}"
                )
            data = produced.read_bytes()

        if not data.startswith(b"%PDF"):
            raise ConversionFailedError("Renderer output is not a PDF.")
        return data

    def restart(self) -> str:
        # A hung job can leave a locked or half-written profile behind.
        shutil.rmtree(self._profile_dir, ignore_errors=True)
        self._profile_dir.mkdir(parents=True, exist_ok=True)
        return self.probe()

    def close(self) -> None:
        shutil.rmtree(self._profile_dir, ignore_errors=True)
