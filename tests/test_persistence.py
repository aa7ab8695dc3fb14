"""Round trip tests for the SQLAlchemy mirror of the job store."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from signflow.database import build_engine, create_tables, drop_tables
from signflow.db_models import JobRecord, StatusChangeRecord
from signflow.errors import ErrorCode, WorkflowError
from signflow.models import JobCreate
from signflow.services import DatabaseMirror, JobService, PaymentService, WorkflowService
from signflow.state import State


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite://")
    create_tables(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    drop_tables(bind=engine)
    engine.dispose()


def _services(state: State):
    workflow = WorkflowService(state)
    return JobService(state, workflow), workflow, PaymentService(state)


def test_commits_are_mirrored_and_reloaded(session_factory) -> None:
    mirror = DatabaseMirror(session_factory)
    state = State(on_commit=mirror.save)
    jobs, workflow, payments = _services(state)

    job = jobs.create_job(
        JobCreate(customer_name="Ada Prints", amount=500, assigned_salesperson="sales.omar", created_by="amy")
    )
    jobs.update_stage(job.id, "salesperson", {"typeOfSign": "Fascia", "legacyNote": "keep me"})
    payments.record_payment(job.id, 200, "cash", "accounts.sam")

    session = session_factory()
    try:
        record = session.get(JobRecord, job.id)
        assert record.status == "salesperson_assigned"
        assert record.accounts["amount_paid"] == 200
        assert record.salesperson["legacyNote"] == "keep me"
        assert session.query(StatusChangeRecord).count() == 1
    finally:
        session.close()

    reloaded = State()
    assert DatabaseMirror(session_factory).load_into(reloaded) == 1
    restored = reloaded.get_job(job.id)
    assert restored.job_code == job.job_code
    assert restored.receptionist.customerName == "Ada Prints"
    assert restored.salesperson.model_extra["legacyNote"] == "keep me"
    assert restored.accounts.payments[0].amount == 200
    assert restored.version == state.get_job(job.id).version
    assert restored.created_at.tzinfo is not None

    history = reloaded.list_status_changes(job.id)
    assert [change.to_status for change in history] == ["salesperson_assigned"]
    assert reloaded.next_job_code() != job.job_code


def test_mirror_failure_is_reported_as_persistence_error(session_factory) -> None:
    mirror = DatabaseMirror(session_factory)
    state = State(on_commit=mirror.save)
    jobs, workflow, payments = _services(state)
    job = jobs.create_job(JobCreate(customer_name="Ada Prints", amount=500))

    # a second job reusing the code violates the unique constraint
    clash = state.get_job(job.id).model_copy(update={"id": "other-id"})
    with pytest.raises(WorkflowError) as excinfo:
        state.add_job(clash)
    assert excinfo.value.code == ErrorCode.PERSISTENCE_ERROR
    with pytest.raises(WorkflowError):
        state.get_job("other-id")


def test_mirror_without_session_factory_is_a_no_op() -> None:
    mirror = DatabaseMirror()
    state = State(on_commit=mirror.save)
    jobs, _, _ = _services(state)
    job = jobs.create_job(JobCreate(customer_name="Offline"))
    assert mirror.load_into(State()) == 0
    assert state.get_job(job.id).status == "received"


def test_drifted_rows_load_and_malformed_rows_are_skipped(session_factory) -> None:
    created = datetime(2025, 11, 3, 9, 30, tzinfo=timezone.utc)
    session = session_factory()
    try:
        session.add_all(
            [
                JobRecord(
                    id="legacy-1",
                    job_code="JOB-00012",
                    status="design_in_review",
                    amount=500,
                    receptionist={"customerName": "Old Mill Cafe"},
                    salesperson={"images": [{"url": "front.jpg"}], "paymentAmount": "£500"},
                    design={"status": "in_review", "drafts": {"0": {"url": "draft.png"}}},
                    production={"assigned_team": "Workshop A", "assignedWorkers": ["kai"]},
                    accounts={"payment_status": "payment_pending"},
                    version=4,
                    created_at=created,
                ),
                JobRecord(
                    id="broken-1",
                    job_code="JOB-00040",
                    status="received",
                    accounts={"payments": [{"mode": "cash"}]},
                    version=2,
                    created_at=created,
                ),
            ]
        )
        session.commit()
    finally:
        session.close()

    state = State()
    assert DatabaseMirror(session_factory).load_into(state) == 1

    legacy = state.get_job("legacy-1")
    assert legacy.salesperson.paymentAmount == "£500"
    assert legacy.design.drafts == {"0": {"url": "draft.png"}}
    assert legacy.production.assigned_team == "Workshop A"
    assert legacy.version == 4

    with pytest.raises(WorkflowError):
        state.get_job("broken-1")
    assert state.next_job_code() == "JOB-00041"
