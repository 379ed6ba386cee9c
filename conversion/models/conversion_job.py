from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ConversionJob:
    """
    One conversion request as seen by the worker pool.
    Ephemeral: only kept in the pool's recent-jobs ring for diagnostics.
    """
    source_format: str
    source_name: Optional[str] = None
    target_format: str = "pdf"
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.QUEUED
    failure_reason: Optional[str] = None
    engine_slot: Optional[int] = None
    queued_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    output_size: Optional[int] = None

    def mark_running(self, engine_slot: int) -> None:
        self.status = JobStatus.RUNNING
        self.engine_slot = engine_slot
        self.started_at = _now()

    def mark_succeeded(self, output_size: int) -> None:
        self.status = JobStatus.SUCCEEDED
        self.output_size = output_size
        self.finished_at = _now()

    def mark_failed(self, reason: str) -> None:
        self.status = JobStatus.FAILED
        self.failure_reason = reason
        self.finished_at = _now()

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.SUCCEEDED, JobStatus.FAILED)
