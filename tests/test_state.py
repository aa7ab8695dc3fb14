"""Tests for the lock guarded job store."""
from __future__ import annotations

from typing import List, Optional

import pytest

from signflow.catalog import JobStatus
from signflow.errors import ErrorCode, JobNotFoundError, WorkflowError, WriteConflictError
from signflow.models import Job, StatusChange
from signflow.state import State


def _job(job_id: str = "job-1", code: str = "JOB-00001") -> Job:
    return Job(id=job_id, job_code=code, status=JobStatus.RECEIVED)


def test_snapshots_are_isolated_from_the_store() -> None:
    state = State()
    state.add_job(_job())

    snapshot = state.get_job("job-1")
    snapshot.status = "out_for_delivery"
    snapshot.accounts.amount_paid = 99

    stored = state.get_job("job-1")
    assert stored.status == "received"
    assert stored.accounts.amount_paid is None


def test_missing_job_raises_not_found() -> None:
    state = State()
    with pytest.raises(JobNotFoundError) as excinfo:
        state.get_job("nope")
    assert excinfo.value.code == ErrorCode.JOB_NOT_FOUND
    assert excinfo.value.to_dict() == {"error": {"code": "JOB_NOT_FOUND", "message": "Job not found"}}
    # still usable where callers expect a KeyError
    assert isinstance(excinfo.value, KeyError)


def test_commit_status_records_history_and_bumps_version() -> None:
    state = State()
    state.add_job(_job())

    updated = state.commit_status(
        "job-1",
        JobStatus.SALESPERSON_ASSIGNED,
        expected_status="received",
        updated_by="reception.amy",
    )
    assert updated.status == "salesperson_assigned"
    assert updated.version == 2

    history = state.list_status_changes("job-1")
    assert [(change.from_status, change.to_status) for change in history] == [
        ("received", "salesperson_assigned")
    ]
    assert history[0].updated_by == "reception.amy"


def test_commit_status_compares_observed_status() -> None:
    state = State()
    state.add_job(_job())
    state.commit_status("job-1", "salesperson_assigned", expected_status="received")

    with pytest.raises(WriteConflictError):
        state.commit_status("job-1", "salesperson_assigned", expected_status="received")
    assert len(state.list_status_changes("job-1")) == 1


def test_expected_version_mismatch_is_a_conflict() -> None:
    state = State()
    state.add_job(_job())

    with pytest.raises(WriteConflictError) as excinfo:
        state.update_job("job-1", lambda job: {"amount": 10.0}, expected_version=5)
    assert "expected version 5" in excinfo.value.message
    assert state.get_job("job-1").amount == 0


def test_failed_mutation_leaves_job_untouched() -> None:
    state = State()
    state.add_job(_job())

    def explode(job: Job):
        raise WorkflowError(ErrorCode.INVALID_STAGE, "bad data")

    with pytest.raises(WorkflowError):
        state.update_job("job-1", explode)
    assert state.get_job("job-1").version == 1


def test_commit_hook_failure_prevents_the_swap() -> None:
    seen: List[Optional[StatusChange]] = []

    def hook(job: Job, change: Optional[StatusChange]) -> None:
        seen.append(change)
        if change is not None:
            raise WorkflowError(ErrorCode.PERSISTENCE_ERROR, "database unavailable")

    state = State(on_commit=hook)
    state.add_job(_job())

    with pytest.raises(WorkflowError):
        state.commit_status("job-1", "salesperson_assigned", expected_status="received")

    assert seen[0] is None
    assert state.get_job("job-1").status == "received"
    assert state.list_status_changes("job-1") == []


def test_job_codes_continue_after_loaded_jobs() -> None:
    state = State()
    state.load_job(_job("old", "JOB-00041"))
    assert state.next_job_code() == "JOB-00042"


def test_list_jobs_filters_and_orders_newest_first() -> None:
    state = State()
    first = _job("a", "JOB-00001")
    second = _job("b", "JOB-00002").model_copy(update={"status": "design_started"})
    second.created_at = first.created_at.replace(year=first.created_at.year + 1)
    state.add_job(first)
    state.add_job(second)

    assert [job.id for job in state.list_jobs()] == ["b", "a"]
    assert [job.id for job in state.list_jobs(statuses=["received"])] == ["a"]
    assert [job.id for job in state.list_jobs(payment_status="payment_pending")] == ["b", "a"]
    assert state.list_jobs(payment_status="payment_done") == []


def test_activity_feed_is_newest_first() -> None:
    state = State()
    state.record_activity_message("intake", "first")
    state.record_activity_message("payment", "second")
    assert [entry.message for entry in state.recent_activity()] == ["second", "first"]
    assert len(state.recent_activity(limit=1)) == 1
