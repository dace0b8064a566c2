"""Unit tests for the in-memory job store."""

import re

import pytest

from sprintpoint.jobs.store import (
    InMemoryJobStore,
    JobStateError,
    JobStatus,
    generate_job_id,
)


class FakeClock:
    def __init__(self, now=1_704_067_200.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryJobStore(ttl_seconds=600, clock=clock)


class TestGenerateJobId:
    """Tests for generate_job_id."""

    def test_format(self):
        job_id = generate_job_id(lambda: 1_700_000_000.123)
        assert re.fullmatch(r"job_1700000000123_[0-9a-z]{7}", job_id)

    def test_ids_differ(self):
        assert len({generate_job_id() for _ in range(50)}) == 50


class TestInMemoryJobStore:
    """Tests for InMemoryJobStore."""

    def test_create_and_get(self, store, clock):
        created = store.create("job_1")

        assert created.status is JobStatus.PENDING
        assert created.created_at == clock.now
        fetched = store.get("job_1")
        assert fetched.id == "job_1"
        assert fetched.logs == []
        assert store.get("job_unknown") is None

    def test_snapshots_are_independent(self, store):
        store.create("job_1")
        snapshot = store.get("job_1")
        snapshot.logs.append("tampered")
        snapshot.progress = "tampered"

        assert store.get("job_1").logs == []
        assert store.get("job_1").progress is None

    def test_update_merges_fields(self, store, clock):
        store.create("job_1")
        clock.advance(5)

        job = store.update("job_1", status=JobStatus.PROCESSING, progress="Working")

        assert job.status is JobStatus.PROCESSING
        assert job.progress == "Working"
        assert job.updated_at == clock.now

    def test_update_accepts_status_values(self, store):
        store.create("job_1")
        assert store.update("job_1", status="processing").status is JobStatus.PROCESSING

    def test_update_missing_job(self, store):
        assert store.update("job_missing", progress="x") is None
        assert store.append_log("job_missing", "x") is None

    def test_unknown_fields_rejected(self, store):
        store.create("job_1")
        with pytest.raises(ValueError, match="Unknown job fields: id"):
            store.update("job_1", id="job_2")

    def test_completed_with_result(self, store):
        store.create("job_1")
        store.update("job_1", status=JobStatus.PROCESSING)
        job = store.update("job_1", status=JobStatus.COMPLETED, result={"estimatedPoints": 3})

        assert job.status.terminal
        assert job.to_dict()["result"] == {"estimatedPoints": 3}
        assert "error" not in job.to_dict()

    def test_terminal_states_are_final(self, store):
        store.create("job_1")
        store.update("job_1", status=JobStatus.ERROR, error="boom")

        with pytest.raises(JobStateError):
            store.update("job_1", status=JobStatus.PROCESSING)
        with pytest.raises(JobStateError):
            store.update("job_1", status=JobStatus.COMPLETED, error=None, result={})

    def test_no_backwards_transition(self, store):
        store.create("job_1")
        store.update("job_1", status=JobStatus.PROCESSING)
        with pytest.raises(JobStateError):
            store.update("job_1", status=JobStatus.PENDING)

    def test_result_requires_completed(self, store):
        store.create("job_1")
        with pytest.raises(JobStateError, match="result requires status completed"):
            store.update("job_1", result={"estimatedPoints": 3})
        assert store.get("job_1").result is None

    def test_error_requires_error_status(self, store):
        store.create("job_1")
        with pytest.raises(JobStateError, match="error requires status error"):
            store.update("job_1", status=JobStatus.PROCESSING, error="boom")
        assert store.get("job_1").status is JobStatus.PENDING

    def test_append_log_timestamps(self, store):
        store.create("job_1")
        job = store.append_log("job_1", "Starting estimation...")

        assert job.logs[0].message == "Starting estimation..."
        assert job.logs[0].timestamp == "2024-01-01T00:00:00+00:00"
        assert job.to_dict()["logs"] == [
            {"timestamp": "2024-01-01T00:00:00+00:00", "message": "Starting estimation..."}
        ]

    def test_delete(self, store):
        store.create("job_1")
        assert store.delete("job_1") is True
        assert store.delete("job_1") is False
        assert store.get("job_1") is None

    def test_expired_job_evicted_on_get(self, store, clock):
        store.create("job_1")
        clock.advance(600)
        assert store.get("job_1") is not None

        clock.advance(1)
        assert store.get("job_1") is None
        assert len(store) == 0

    def test_create_sweeps_expired_jobs(self, store, clock):
        store.create("job_old")
        clock.advance(601)
        store.create("job_new")

        assert len(store) == 1
        assert store.get("job_new") is not None

    def test_sweep(self, store, clock):
        store.create("job_1")
        store.create("job_2")
        clock.advance(300)
        store.create("job_3")
        clock.advance(301)

        assert store.sweep() == 2
        assert store.get("job_3") is not None
