"""Tests for TransitionScheduler and FineTuningJobStore."""

import asyncio
import random
from datetime import datetime, timezone

import pytest

from playground_api.config import FineTuningJobRequest
from playground_api.errors import InvalidRequest, NotFound
from playground_api.fine_tuning import FineTuningJobStore, JobStatus, TransitionScheduler

WALL = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return TransitionScheduler(clock=clock)


@pytest.fixture
def store(scheduler):
    return FineTuningJobStore(scheduler, rng=random.Random(7), wall_clock=lambda: WALL)


def _request(**overrides):
    fields = {"model": "phi", "training_file": "train.jsonl"}
    fields.update(overrides)
    return FineTuningJobRequest(**fields)


class TestTransitionScheduler:

    def test_nothing_runs_before_due(self, scheduler, clock):
        fired = []
        scheduler.schedule(5.0, lambda: fired.append("a"))

        clock.now = 4.9
        assert scheduler.run_due() == 0
        assert fired == []
        assert scheduler.pending() == 1

    def test_runs_in_due_order(self, scheduler, clock):
        fired = []
        scheduler.schedule(3.0, lambda: fired.append("late"))
        scheduler.schedule(1.0, lambda: fired.append("early"))
        scheduler.schedule(1.0, lambda: fired.append("early-2"))

        clock.now = 10.0
        assert scheduler.run_due() == 3
        assert fired == ["early", "early-2", "late"]
        assert scheduler.pending() == 0

    def test_explicit_now_overrides_clock(self, scheduler):
        fired = []
        scheduler.schedule(2.0, lambda: fired.append(1))
        assert scheduler.run_due(now=2.0) == 1
        assert fired == [1]

    def test_failing_callback_does_not_block_others(self, scheduler, clock, caplog):
        fired = []

        def broken():
            raise RuntimeError("kaput")

        scheduler.schedule(1.0, broken, label="broken")
        scheduler.schedule(1.0, lambda: fired.append("ok"))

        clock.now = 1.0
        assert scheduler.run_due() == 2
        assert fired == ["ok"]
        assert "broken" in caplog.text

    def test_clear(self, scheduler):
        scheduler.schedule(1.0, lambda: None)
        scheduler.clear()
        assert scheduler.pending() == 0

    def test_run_forever_ticks(self, clock):
        fired = []
        scheduler = TransitionScheduler(clock=clock)
        scheduler.schedule(0.0, lambda: fired.append(True))

        async def tick_briefly():
            task = asyncio.create_task(scheduler.run_forever(interval=0.01))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(tick_briefly())
        assert fired == [True]


class TestCreateJob:

    def test_new_job(self, store, scheduler):
        job = store.create(_request(validation_file="val.jsonl"))

        assert job.id == f"ft-job-{int(WALL.timestamp() * 1000)}"
        assert job.status is JobStatus.PENDING
        assert job.created_at == "2024-06-15T12:00:00.000Z"
        assert job.validation_file == "val.jsonl"
        assert job.hyperparameters.model_dump() == {"n_epochs": 3, "batch_size": 4, "learning_rate": 0.0001}
        assert scheduler.pending() == 2

    def test_falsy_hyperparameters_take_defaults(self, store):
        job = store.create(_request(hyperparameters={"n_epochs": 0, "batch_size": 16}))
        assert job.hyperparameters.n_epochs == 3
        assert job.hyperparameters.batch_size == 16

    @pytest.mark.parametrize("overrides", [{"model": None}, {"training_file": None}, {"model": ""}])
    def test_required_fields(self, store, overrides):
        with pytest.raises(InvalidRequest) as exc_info:
            store.create(_request(**overrides))
        assert exc_info.value.message == "Model and training file are required"
        assert exc_info.value.status_code == 400

    def test_same_millisecond_ids_get_suffix(self, store):
        ids = [store.create(_request()).id for _ in range(3)]
        base = f"ft-job-{int(WALL.timestamp() * 1000)}"
        assert ids == [base, f"{base}-1", f"{base}-2"]

    def test_newest_first(self, store):
        first = store.create(_request(model="a"))
        second = store.create(_request(model="b"))
        assert [j.id for j in store.list_jobs()] == [second.id, first.id]


class TestLifecycle:

    def test_pending_to_running_to_completed(self, store, clock, scheduler):
        job = store.create(_request())

        clock.now = 1.9
        scheduler.run_due()
        assert store.get(job.id).status is JobStatus.PENDING

        clock.now = 2.0
        scheduler.run_due()
        assert store.get(job.id).status is JobStatus.RUNNING

        clock.now = 30.0
        scheduler.run_due()
        done = store.get(job.id)
        assert done.status is JobStatus.COMPLETED
        assert done.finished_at == "2024-06-15T12:00:00.000Z"
        assert done.result_files == [f"phi-ft-{int(WALL.timestamp() * 1000)}.bin"]
        assert 50000 <= done.trained_tokens < 150000

    def test_to_dict_omits_unset_fields(self, store):
        data = store.create(_request()).to_dict()
        assert data["status"] == "pending"
        assert set(data) == {"id", "model", "status", "created_at", "training_file", "hyperparameters"}

    def test_running_transition_only_from_pending(self, store, clock, scheduler):
        job = store.create(_request())
        store.get(job.id).status = JobStatus.FAILED

        clock.now = 2.0
        scheduler.run_due()
        assert store.get(job.id).status is JobStatus.FAILED


class TestDeleteAndGet:

    def test_get_unknown(self, store):
        with pytest.raises(NotFound):
            store.get("ft-job-404")

    def test_delete_requires_id(self, store):
        with pytest.raises(InvalidRequest, match="Job ID is required"):
            store.delete(None)

    def test_delete_unknown(self, store):
        with pytest.raises(NotFound, match="Job not found"):
            store.delete("ft-job-404")

    def test_delete_running_refused(self, store, clock, scheduler):
        job = store.create(_request())
        clock.now = 2.0
        scheduler.run_due()

        with pytest.raises(InvalidRequest, match="Cannot delete running job"):
            store.delete(job.id)
        assert len(store.list_jobs()) == 1

    def test_delete_pending(self, store):
        job = store.create(_request())
        store.delete(job.id)
        assert store.list_jobs() == []

    def test_transitions_of_deleted_job_are_noops(self, store, clock, scheduler):
        job = store.create(_request())
        store.delete(job.id)

        clock.now = 30.0
        assert scheduler.run_due() == 2
        assert store.list_jobs() == []


class TestDemoJobs:

    def test_seed(self, store):
        store.seed_demo_jobs()
        jobs = {j.id: j for j in store.list_jobs()}
        assert jobs["ft-job-1"].status is JobStatus.COMPLETED
        assert jobs["ft-job-1"].trained_tokens == 125000
        assert jobs["ft-job-2"].status is JobStatus.RUNNING
        assert jobs["ft-job-2"].hyperparameters.learning_rate == 0.00005

    def test_reset(self, store):
        store.seed_demo_jobs()
        store.reset()
        assert store.list_jobs() == []
