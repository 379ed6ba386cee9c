"""
conversion/tests/test_worker_pool.py

Worker pool behaviour with in-process fake engines (no LibreOffice needed).
"""

from __future__ import annotations

import threading
import unittest
from typing import List, Optional

from conversion.exceptions.errors import (
    ConversionFailedError,
    ConversionQueueFullError,
    ConversionTimeoutError,
    RendererUnavailableError,
)
from conversion.logic.renderer import RenderingEngine
from conversion.logic.worker_pool import ConversionWorkerPool, PoolState
from conversion.models.conversion_job import JobStatus

FAKE_PDF = b"%PDF-1.4\n%fake\n"


class FakeEngine(RenderingEngine):
    def __init__(
        self,
        slot: int,
        *,
        probe_ok: bool = True,
        restart_ok: bool = True,
        fail_with: Optional[Exception] = None,
        gate: Optional[threading.Event] = None,
    ) -> None:
        super().__init__(slot)
        self.probe_ok = probe_ok
        self.restart_ok = restart_ok
        self.fail_with = fail_with
        self.gate = gate
        self.started = threading.Event()
        self.calls: List[str] = []
        self.restarts = 0
        self.closed = False

    def probe(self) -> str:
        if not self.probe_ok:
            raise RendererUnavailableError("probe failed")
        return "FakeOffice 1.0"

    def convert(self, source: bytes, source_format: str, *, timeout: float) -> bytes:
        self.calls.append(source_format)
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error
        return FAKE_PDF + source

    def restart(self) -> str:
        self.restarts += 1
        if not self.restart_ok:
            raise RendererUnavailableError("restart failed")
        return self.probe()

    def close(self) -> None:
        self.closed = True


class TestWorkerPoolLifecycle(unittest.TestCase):
    def test_refuses_work_before_start(self) -> None:
        pool = ConversionWorkerPool([FakeEngine(0)])
        with self.assertRaises(RendererUnavailableError):
            pool.convert(b"x", ".docx")

    def test_startup_probe_failure_makes_pool_unavailable(self) -> None:
        pool = ConversionWorkerPool([FakeEngine(0, probe_ok=False)])
        with self.assertRaises(RendererUnavailableError):
            pool.start()
        self.assertIs(pool.state, PoolState.UNAVAILABLE)
        with self.assertRaises(RendererUnavailableError):
            pool.convert(b"x", ".docx")

    def test_start_retires_only_failing_engines(self) -> None:
        good, bad = FakeEngine(0), FakeEngine(1, probe_ok=False)
        pool = ConversionWorkerPool([good, bad])
        health = pool.start()
        self.assertTrue(health.healthy)
        self.assertEqual(health.engines, 1)
        self.assertTrue(bad.closed)

    def test_context_manager_shuts_down(self) -> None:
        engine = FakeEngine(0)
        with ConversionWorkerPool([engine]) as pool:
            self.assertEqual(pool.convert(b"abc", "docx"), FAKE_PDF + b"abc")
        self.assertIs(pool.state, PoolState.STOPPED)
        self.assertTrue(engine.closed)

    def test_health_check_retires_dead_engine(self) -> None:
        engine = FakeEngine(0)
        pool = ConversionWorkerPool([engine])
        pool.start()
        engine.probe_ok = False
        health = pool.health_check()
        self.assertIs(health.state, PoolState.UNAVAILABLE)
        self.assertFalse(health.healthy)


class TestWorkerPoolJobs(unittest.TestCase):
    def test_successful_job_is_recorded(self) -> None:
        pool = ConversionWorkerPool([FakeEngine(0)])
        pool.start()
        out = pool.convert_file_name(b"body", "memo.DOCX")
        self.assertTrue(out.startswith(b"%PDF"))
        job = pool.recent_jobs()[-1]
        self.assertIs(job.status, JobStatus.SUCCEEDED)
        self.assertEqual(job.source_format, ".docx")
        self.assertEqual(job.source_name, "memo.DOCX")
        self.assertEqual(job.output_size, len(out))

    def test_timeout_restarts_engine_and_keeps_serving(self) -> None:
        engine = FakeEngine(0, fail_with=ConversionTimeoutError("too slow"))
        pool = ConversionWorkerPool([engine], job_timeout=0.1)
        pool.start()
        with self.assertRaises(ConversionTimeoutError):
            pool.convert(b"x", ".docx")
        self.assertEqual(engine.restarts, 1)
        self.assertIs(pool.recent_jobs()[-1].status, JobStatus.FAILED)
        self.assertEqual(pool.convert(b"y", ".docx"), FAKE_PDF + b"y")

    def test_timeout_with_failed_restart_retires_engine(self) -> None:
        engine = FakeEngine(0, restart_ok=False, fail_with=ConversionTimeoutError("hung"))
        pool = ConversionWorkerPool([engine])
        pool.start()
        with self.assertRaises(ConversionTimeoutError):
            pool.convert(b"x", ".docx")
        self.assertTrue(engine.closed)
        self.assertIs(pool.state, PoolState.UNAVAILABLE)
        with self.assertRaises(RendererUnavailableError):
            pool.convert(b"x", ".docx")

    def test_failed_conversion_returns_engine(self) -> None:
        engine = FakeEngine(0, fail_with=ConversionFailedError("broken file"))
        pool = ConversionWorkerPool([engine])
        pool.start()
        with self.assertRaises(ConversionFailedError):
            pool.convert(b"x", ".docx")
        self.assertEqual(engine.restarts, 0)
        self.assertEqual(pool.convert(b"y", ".docx"), FAKE_PDF + b"y")

    def test_backpressure_rejects_callers_beyond_queue_limit(self) -> None:
        gate = threading.Event()
        engine = FakeEngine(0, gate=gate)
        pool = ConversionWorkerPool([engine], queue_limit=0)
        pool.start()

        results: List[bytes] = []
        worker = threading.Thread(target=lambda: results.append(pool.convert(b"a", ".docx")))
        worker.start()
        self.assertTrue(engine.started.wait(5))
        try:
            with self.assertRaises(ConversionQueueFullError) as ctx:
                pool.convert(b"b", ".docx")
            self.assertTrue(ctx.exception.retryable)
        finally:
            gate.set()
            worker.join(5)
        self.assertEqual(results, [FAKE_PDF + b"a"])

    def test_waiter_gives_up_after_queue_wait(self) -> None:
        gate = threading.Event()
        engine = FakeEngine(0, gate=gate)
        pool = ConversionWorkerPool([engine], queue_limit=1, queue_wait=0.05)
        pool.start()

        worker = threading.Thread(target=lambda: pool.convert(b"a", ".docx"))
        worker.start()
        self.assertTrue(engine.started.wait(5))
        try:
            with self.assertRaises(ConversionQueueFullError):
                pool.convert(b"b", ".docx")
        finally:
            gate.set()
            worker.join(5)


if __name__ == "__main__":
    unittest.main()
