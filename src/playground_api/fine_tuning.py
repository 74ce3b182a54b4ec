# src/playground_api/fine_tuning.py
"""Simulated fine-tuning jobs.

Jobs never train anything. A job is created pending, becomes running after
a short delay and completed some time later, with made-up result files and
token counts. The transitions go through a TransitionScheduler instead of
raw timers so they can be driven by a fake clock.
"""

import asyncio
import heapq
import itertools
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from playground_api.analytics import isoformat_z, utcnow
from playground_api.config import FineTuningJobRequest, Hyperparameters
from playground_api.errors import InvalidRequest, NotFound
from playground_api.utils import unique_id

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class FineTuningJob:
    id: str
    model: str
    training_file: str
    hyperparameters: Hyperparameters
    created_at: str
    status: JobStatus = JobStatus.PENDING
    validation_file: Optional[str] = None
    finished_at: Optional[str] = None
    result_files: Optional[List[str]] = None
    trained_tokens: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "model": self.model,
            "status": self.status.value,
            "created_at": self.created_at,
            "training_file": self.training_file,
            "hyperparameters": self.hyperparameters.model_dump(),
        }
        optional = {
            "finished_at": self.finished_at,
            "validation_file": self.validation_file,
            "result_files": self.result_files,
            "trained_tokens": self.trained_tokens,
            "error": self.error,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass(order=True)
class ScheduledTransition:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    label: str = field(default="", compare=False)


class TransitionScheduler:
    """Deferred callbacks ordered by due time.

    Nothing runs on its own: ``run_due()`` fires every callback whose time has
    come. In the server a background task calls it periodically; tests call
    it directly with a controlled clock.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._queue: List[ScheduledTransition] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def schedule(self, delay: float, callback: Callable[[], None], label: str = "") -> ScheduledTransition:
        transition = ScheduledTransition(self.clock() + delay, next(self._seq), callback, label)
        with self._lock:
            heapq.heappush(self._queue, transition)
        return transition

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def clear(self):
        with self._lock:
            self._queue.clear()

    def run_due(self, now: Optional[float] = None) -> int:
        """Fire due callbacks in due order; returns how many ran."""
        now = self.clock() if now is None else now
        due = []
        with self._lock:
            while self._queue and self._queue[0].due <= now:
                due.append(heapq.heappop(self._queue))

        for transition in due:
            try:
                transition.callback()
            except Exception as e:
                logger.error(f"Scheduled transition '{transition.label}' failed: {e}", exc_info=True)
        return len(due)

    async def run_forever(self, interval: float = 0.5):
        logger.debug(f"Transition scheduler ticking every {interval}s")
        while True:
            self.run_due()
            await asyncio.sleep(interval)


class FineTuningJobStore:
    """Process-wide list of fine-tuning jobs, newest first. Starts empty."""

    def __init__(self, scheduler: TransitionScheduler, running_after: float = 2.0,
                 completed_after: float = 30.0, rng: Optional[random.Random] = None,
                 wall_clock: Callable[[], datetime] = utcnow):
        self.scheduler = scheduler
        self.running_after = running_after
        self.completed_after = completed_after
        self.rng = rng or random.Random()
        self.wall_clock = wall_clock
        self._jobs: List[FineTuningJob] = []
        self._lock = threading.Lock()

    def _millis(self) -> int:
        return int(self.wall_clock().timestamp() * 1000)

    def list_jobs(self) -> List[FineTuningJob]:
        with self._lock:
            return list(self._jobs)

    def get(self, job_id: str) -> FineTuningJob:
        with self._lock:
            for job in self._jobs:
                if job.id == job_id:
                    return job
        raise NotFound("Job not found")

    def reset(self):
        with self._lock:
            self._jobs.clear()

    def create(self, request: FineTuningJobRequest) -> FineTuningJob:
        if not request.model or not request.training_file:
            raise InvalidRequest("Model and training file are required")

        params = request.hyperparameters or {}
        try:
            hyperparameters = Hyperparameters(
                n_epochs=params.get("n_epochs") or 3,
                batch_size=params.get("batch_size") or 4,
                learning_rate=params.get("learning_rate") or 0.0001,
            )
        except ValidationError as e:
            raise InvalidRequest(f"Invalid hyperparameters: {e.errors()[0]['msg']}") from e

        with self._lock:
            job_id = unique_id(f"ft-job-{self._millis()}", {j.id for j in self._jobs})

            job = FineTuningJob(
                id=job_id,
                model=request.model,
                training_file=request.training_file,
                validation_file=request.validation_file,
                hyperparameters=hyperparameters,
                created_at=isoformat_z(self.wall_clock()),
            )
            self._jobs.insert(0, job)

        self.scheduler.schedule(self.running_after, lambda: self._mark_running(job_id), f"{job_id}:running")
        self.scheduler.schedule(self.completed_after, lambda: self._mark_completed(job_id), f"{job_id}:completed")
        logger.info(f"Created fine-tuning job {job_id} for model '{request.model}'")
        return job

    def delete(self, job_id: Optional[str]):
        if not job_id:
            raise InvalidRequest("Job ID is required")
        with self._lock:
            for index, job in enumerate(self._jobs):
                if job.id == job_id:
                    break
            else:
                raise NotFound("Job not found")
            if job.status is JobStatus.RUNNING:
                raise InvalidRequest("Cannot delete running job")
            del self._jobs[index]
        logger.info(f"Deleted fine-tuning job {job_id}")

    def _find_locked(self, job_id: str) -> Optional[FineTuningJob]:
        return next((j for j in self._jobs if j.id == job_id), None)

    def _mark_running(self, job_id: str):
        with self._lock:
            job = self._find_locked(job_id)
            if job is None or job.status is not JobStatus.PENDING:
                return
            job.status = JobStatus.RUNNING
        logger.debug(f"Fine-tuning job {job_id} is running")

    def _mark_completed(self, job_id: str):
        with self._lock:
            job = self._find_locked(job_id)
            # Deleted jobs simply vanish; their pending transitions become no-ops
            if job is None or job.status is JobStatus.COMPLETED:
                return
            job.status = JobStatus.COMPLETED
            job.finished_at = isoformat_z(self.wall_clock())
            job.result_files = [f"{job.model}-ft-{self._millis()}.bin"]
            job.trained_tokens = self.rng.randrange(50000, 150000)
        logger.info(f"Fine-tuning job {job_id} completed")

    def seed_demo_jobs(self):
        """Preload one finished and one running job, as the playground UI's demo data."""
        now = self.wall_clock()
        demo = [
            FineTuningJob(
                id="ft-job-1",
                model="phi:latest",
                status=JobStatus.COMPLETED,
                created_at=isoformat_z(now - timedelta(hours=24)),
                finished_at=isoformat_z(now - timedelta(hours=23)),
                training_file="training_data.jsonl",
                validation_file="validation_data.jsonl",
                hyperparameters=Hyperparameters(n_epochs=3, batch_size=4, learning_rate=0.0001),
                result_files=["phi-ft-model.bin"],
                trained_tokens=125000,
            ),
            FineTuningJob(
                id="ft-job-2",
                model="phi:latest",
                status=JobStatus.RUNNING,
                created_at=isoformat_z(now - timedelta(hours=2)),
                training_file="custom_training.jsonl",
                hyperparameters=Hyperparameters(n_epochs=5, batch_size=8, learning_rate=0.00005),
                trained_tokens=45000,
            ),
        ]
        with self._lock:
            self._jobs.extend(demo)
