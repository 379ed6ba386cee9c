"""
===============================================================================
ConversionWorkerPool – bounded access to a fixed set of rendering engines
-------------------------------------------------------------------------------
    pool = ConversionWorkerPool.from_config(cfg.renderer)
    pool.start()                       # --version probe on every engine
    pdf = pool.convert(data, ".docx")  # blocks for a free engine
    pool.shutdown()

Rules
    - An engine serves one job at a time; idle engines sit in a queue.
    - At most ``instances + queue_limit`` callers are admitted. Everyone else
      is turned away with ConversionQueueFullError instead of piling up.
    - An admitted caller waits at most ``queue_wait_seconds`` for an engine.
    - A timed-out job marks the engine suspect: it is restarted and probed
      before it takes more work. An engine failing that probe is retired.
      Without engines the pool is unavailable and refuses work.
===============================================================================
"""
from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Deque, List, Optional, Sequence

from conversion.exceptions.errors import (
    ConversionQueueFullError,
    ConversionTimeoutError,
    RendererUnavailableError,
)
from conversion.logic.format_classifier import extension_of
from conversion.logic.renderer import LibreOfficeEngine, RenderingEngine, discover_renderer_binary
from conversion.models.conversion_job import ConversionJob
from core.config.config_service import RendererConfig

logger = logging.getLogger(__name__)


class PoolState(str, Enum):
    NEW = "new"
    RUNNING = "running"
    UNAVAILABLE = "unavailable"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PoolHealth:
    state: PoolState
    engines: int
    idle: int
    version: Optional[str] = None
    last_error: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.state is PoolState.RUNNING and self.engines > 0


class ConversionWorkerPool:
    def __init__(
        self,
        engines: Sequence[RenderingEngine],
        *,
        job_timeout: float = 30.0,
        queue_limit: int = 16,
        queue_wait: float = 60.0,
        keep_recent: int = 50,
    ) -> None:
        if not engines:
            raise ValueError("ConversionWorkerPool needs at least one engine")
        self._engines: List[RenderingEngine] = list(engines)
        self._job_timeout = float(job_timeout)
        self._queue_wait = float(queue_wait)
        self._admission = threading.BoundedSemaphore(len(self._engines) + max(0, int(queue_limit)))
        # None is the wake-up sentinel for waiters once the pool cannot serve
        self._idle: "queue.Queue[Optional[RenderingEngine]]" = queue.Queue()
        self._lock = threading.Lock()
        self._state = PoolState.NEW
        self._version: Optional[str] = None
        self._last_error: Optional[str] = None
        self._recent: Deque[ConversionJob] = deque(maxlen=keep_recent)

    @classmethod
    def from_config(cls, cfg: RendererConfig, *, work_root: Optional[Path] = None) -> "ConversionWorkerPool":
        binary = discover_renderer_binary(cfg.binary or None)
        if binary is None:
            logger.warning("No LibreOffice installation found; office previews will be unavailable.")
        engines = [
            LibreOfficeEngine(slot, binary=binary, work_root=work_root, probe_timeout=cfg.probe_timeout_seconds)
            for slot in range(max(1, cfg.instances))
        ]
        return cls(
            engines,
            job_timeout=cfg.job_timeout_seconds,
            queue_limit=cfg.queue_limit,
            queue_wait=cfg.queue_wait_seconds,
        )

    # ------------------------------------------------------------------ #
    #  Lifecycle                                                         #
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> PoolState:
        return self._state

    def start(self) -> PoolHealth:
        """Probe every engine. Raises RendererUnavailableError if none answers."""
        with self._lock:
            if self._state is PoolState.RUNNING:
                return self._health_locked()
            if self._state is PoolState.STOPPED:
                raise RendererUnavailableError("Conversion pool has been shut down.")

            healthy: List[RenderingEngine] = []
            for engine in self._engines:
                try:
                    self._version = engine.probe()
                    healthy.append(engine)
                except RendererUnavailableError as ex:
                    self._last_error = str(ex)
                    logger.error("Renderer slot %s failed its startup probe: %s", engine.slot, ex)
                    engine.close()
            self._engines = healthy

            if not healthy:
                self._mark_unavailable_locked()
                raise RendererUnavailableError(self._last_error or "No rendering engine available.")

            for engine in healthy:
                self._idle.put(engine)
            self._state = PoolState.RUNNING
            logger.info("Conversion pool started: %s engine(s), %s", len(healthy), self._version)
            return self._health_locked()

    def health_check(self) -> PoolHealth:
        """Re-probe idle engines; busy ones are checked when their job ends."""
        idle: List[RenderingEngine] = []
        while True:
            try:
                engine = self._idle.get_nowait()
            except queue.Empty:
                break
            if engine is None:
                self._idle.put(None)
                break
            idle.append(engine)

        for engine in idle:
            try:
                self._version = engine.probe()
            except RendererUnavailableError as ex:
                self._last_error = str(ex)
                logger.error("Renderer slot %s failed its health probe: %s", engine.slot, ex)
                self._retire(engine)
                continue
            self._idle.put(engine)

        with self._lock:
            return self._health_locked()

    def shutdown(self) -> None:
        with self._lock:
            if self._state is PoolState.STOPPED:
                return
            self._state = PoolState.STOPPED
            engines, self._engines = self._engines, []
        for engine in engines:
            engine.close()
        self._idle.put(None)
        logger.info("Conversion pool stopped.")

    def __enter__(self) -> "ConversionWorkerPool":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------ #
    #  Work                                                              #
    # ------------------------------------------------------------------ #
    def convert(self, source: bytes, source_format: str, *, source_name: Optional[str] = None) -> bytes:
        """Convert *source* to PDF bytes on the next free engine."""
        if self._state is not PoolState.RUNNING:
            raise RendererUnavailableError(f"Conversion pool is {self._state.value}.")

        fmt = source_format if source_format.startswith(".") else f".{source_format}"
        job = ConversionJob(source_format=fmt.lower(), source_name=source_name)
        self._recent.append(job)

        if not self._admission.acquire(blocking=False):
            job.mark_failed("queue full")
            raise ConversionQueueFullError("Too many conversions in progress; try again shortly.")
        try:
            engine = self._checkout(job)
            try:
                job.mark_running(engine.slot)
                data = engine.convert(source, job.source_format, timeout=self._job_timeout)
            except ConversionTimeoutError as ex:
                job.mark_failed(str(ex))
                logger.warning("Conversion job %s timed out on slot %s", job.job_id, engine.slot)
                self._recover(engine)
                raise
            except RendererUnavailableError as ex:
                job.mark_failed(str(ex))
                self._recover(engine)
                raise
            except Exception as ex:
                job.mark_failed(str(ex))
                self._release(engine)
                raise
            job.mark_succeeded(len(data))
            self._release(engine)
            return data
        finally:
            self._admission.release()

    def convert_file_name(self, source: bytes, file_name: str) -> bytes:
        return self.convert(source, extension_of(file_name), source_name=file_name)

    def recent_jobs(self) -> List[ConversionJob]:
        return list(self._recent)

    # ------------------------------------------------------------------ #
    #  Internals                                                         #
    # ------------------------------------------------------------------ #
    def _checkout(self, job: ConversionJob) -> RenderingEngine:
        try:
            engine = self._idle.get(timeout=self._queue_wait)
        except queue.Empty:
            job.mark_failed("no engine became free")
            raise ConversionQueueFullError(
                f"No rendering engine became free within {self._queue_wait:.0f}s."
            ) from None
        if engine is None:
            self._idle.put(None)
            job.mark_failed("pool unavailable")
            raise RendererUnavailableError(self._last_error or f"Conversion pool is {self._state.value}.")
        return engine

    def _release(self, engine: RenderingEngine) -> None:
        with self._lock:
            alive = self._state is PoolState.RUNNING and engine in self._engines
        if alive:
            self._idle.put(engine)
        else:
            engine.close()

    def _recover(self, engine: RenderingEngine) -> None:
        try:
            engine.restart()
        except RendererUnavailableError as ex:
            self._last_error = str(ex)
            logger.error("Renderer slot %s failed to restart, retiring it: %s", engine.slot, ex)
            self._retire(engine)
            return
        logger.info("Renderer slot %s restarted.", engine.slot)
        self._release(engine)

    def _retire(self, engine: RenderingEngine) -> None:
        engine.close()
        with self._lock:
            if engine in self._engines:
                self._engines.remove(engine)
            if not self._engines and self._state is PoolState.RUNNING:
                self._mark_unavailable_locked()

    def _mark_unavailable_locked(self) -> None:
        self._state = PoolState.UNAVAILABLE
        self._idle.put(None)
        logger.error("Conversion pool is unavailable: %s", self._last_error)

    def _health_locked(self) -> PoolHealth:
        return PoolHealth(
            state=self._state,
            engines=len(self._engines),
            idle=self._idle.qsize() if self._state is PoolState.RUNNING else 0,
            version=self._version,
            last_error=self._last_error,
        )
