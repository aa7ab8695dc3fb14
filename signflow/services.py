"""Service layer implementing intake, stage updates, transitions and payments."""
from __future__ import annotations

import math
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Type
from uuid import uuid4

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .catalog import (
    ROLE_STATUS_FILTERS,
    Department,
    JobStatus,
    PaymentStatus,
    PaymentStatusLike,
    StatusLike,
    status_label,
    status_value,
)
from .db_models import JobRecord, StatusChangeRecord
from .errors import (
    ErrorCode,
    InvalidAmountError,
    InvalidStageError,
    JobFinalizedError,
    LedgerViolationError,
    WorkflowError,
)
from .models import (
    AccountsData,
    DashboardSummary,
    DesignData,
    Job,
    JobCreate,
    JobDashboard,
    JobPage,
    NextStatusOption,
    PaymentResult,
    PaymentSummary,
    PrintingData,
    ProductionData,
    ReceptionistData,
    SalespersonData,
    StageData,
    StatusChange,
    StatusEvent,
    TransitionResult,
    WorkflowValidation,
    utcnow,
)
from .payments import (
    new_payment_record,
    payment_status_for,
    payment_summary,
    refresh_totals,
    resolve_amount_paid,
    resolve_total_amount,
)
from .state import State
from .timeline import derive_job_timelines
from .workflows import (
    can_transition_to,
    get_next_allowed_statuses,
    is_terminal,
    workflow_progress,
)


logger = structlog.get_logger(__name__)

STAGE_MODELS: Dict[str, Type[StageData]] = {
    Department.RECEPTIONIST.value: ReceptionistData,
    Department.SALESPERSON.value: SalespersonData,
    Department.DESIGN.value: DesignData,
    Department.PRODUCTION.value: ProductionData,
    Department.PRINTING.value: PrintingData,
    Department.ACCOUNTS.value: AccountsData,
}

# Written only through the payment ledger and the amount update
LEDGER_FIELDS = frozenset(
    {
        "payments",
        "amount_paid",
        "amountPaid",
        "payment_status",
        "status",
        "amount_remaining",
        "total_amount",
        "totalAmount",
    }
)


class DatabaseMirror:
    """Mirrors committed jobs into SQL tables and reloads them on startup."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session_scope(self):
        if self._session_factory is None:
            yield None
            return
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def load_into(self, state: State) -> int:
        if not self._session_factory:
            return 0
        session = self._session_factory()
        try:
            loaded = 0
            for record in session.query(JobRecord).all():
                try:
                    job = self._job_from_orm(record)
                    changes = [self._change_from_orm(change) for change in record.status_changes]
                except ValidationError as exc:
                    logger.error(
                        "job_load_skipped",
                        job_id=record.id,
                        job_code=record.job_code,
                        errors=exc.error_count(),
                        error=str(exc),
                    )
                    state.reserve_job_code(record.job_code)
                    continue
                state.load_job(job, changes)
                loaded += 1
            return loaded
        finally:
            session.close()

    def save(self, job: Job, change: Optional[StatusChange] = None) -> None:
        """Upsert ``job`` (and its status change) in one transaction."""

        try:
            with self._session_scope() as session:
                if session is None:
                    return
                record = session.get(JobRecord, job.id)
                if record is None:
                    record = JobRecord(id=job.id, created_at=job.created_at)
                    session.add(record)
                record.job_code = job.job_code
                record.status = job.status
                record.amount = job.amount
                record.branch_id = job.branch_id
                for department in Department:
                    blob = getattr(job, department.value)
                    setattr(
                        record,
                        department.value,
                        blob.model_dump(mode="json", exclude_none=True) if blob is not None else None,
                    )
                record.version = job.version
                record.updated_at = job.updated_at
                if change is not None:
                    session.add(
                        StatusChangeRecord(
                            id=change.id,
                            job_id=change.job_id,
                            from_status=change.from_status,
                            to_status=change.to_status,
                            updated_by=change.updated_by,
                            changed_at=change.changed_at,
                        )
                    )
        except SQLAlchemyError as exc:
            logger.error("job_persist_failed", job_id=job.id, error=str(exc))
            raise WorkflowError(
                ErrorCode.PERSISTENCE_ERROR,
                "Failed to save job",
                original_error=exc,
            ) from exc

    @staticmethod
    def _job_from_orm(record: JobRecord) -> Job:
        return Job(
            id=str(record.id),
            job_code=record.job_code,
            status=record.status,
            amount=record.amount or 0.0,
            branch_id=record.branch_id,
            receptionist=record.receptionist,
            salesperson=record.salesperson,
            design=record.design,
            production=record.production,
            printing=record.printing,
            accounts=record.accounts or {},
            version=record.version or 1,
            created_at=_as_utc(record.created_at),
            updated_at=_as_utc(record.updated_at or record.created_at),
        )

    @staticmethod
    def _change_from_orm(record: StatusChangeRecord) -> StatusChange:
        return StatusChange(
            id=str(record.id),
            job_id=str(record.job_id),
            from_status=record.from_status,
            to_status=record.to_status,
            updated_by=record.updated_by,
            changed_at=_as_utc(record.changed_at),
        )


class WorkflowService:
    """Validates and commits department hand-offs."""

    def __init__(self, state: State) -> None:
        self._state = state

    def validate(self, job_id: str, target: StatusLike) -> WorkflowValidation:
        job = self._state.get_job(job_id)
        return can_transition_to(job.status, target, payment_status_for(job))

    def next_statuses(self, job_id: str) -> List[NextStatusOption]:
        job = self._state.get_job(job_id)
        return get_next_allowed_statuses(job.status, payment_status_for(job))

    def history(self, job_id: str) -> List[StatusChange]:
        return self._state.list_status_changes(job_id)

    def transition_job_status(
        self,
        job_id: str,
        new_status: StatusLike,
        updated_by: Optional[str] = None,
        expected_version: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        """Move a job to ``new_status`` when the graph and payment gate allow it."""

        target = status_value(new_status)
        try:
            job = self._state.get_job(job_id)
        except WorkflowError as exc:
            return TransitionResult(success=False, error=exc.message, code=exc.code.value)

        payment_status = payment_status_for(job)
        validation = can_transition_to(job.status, target, payment_status)
        if not validation.allowed:
            code = (
                ErrorCode.PAYMENT_REQUIRED
                if validation.required_payment_status
                else ErrorCode.ILLEGAL_TRANSITION
            )
            logger.info(
                "transition_rejected",
                job_id=job_id,
                from_status=job.status,
                to_status=target,
                payment_status=payment_status.value,
                code=code.value,
            )
            return TransitionResult(
                success=False,
                error=validation.reason,
                code=code.value,
                validation=validation,
            )

        try:
            updated = self._state.commit_status(
                job_id,
                target,
                expected_status=job.status,
                expected_version=expected_version,
                updated_by=updated_by,
                changes=changes,
            )
        except WorkflowError as exc:
            logger.warning(
                "transition_failed",
                job_id=job_id,
                to_status=target,
                code=exc.code.value,
                error=exc.message,
            )
            return TransitionResult(
                success=False,
                error=exc.message,
                code=exc.code.value,
                validation=validation,
            )

        logger.info(
            "status_transitioned",
            job_id=job_id,
            from_status=job.status,
            to_status=target,
            updated_by=updated_by,
        )
        self._state.record_activity_message(
            category="workflow",
            message=f"{updated.job_code} moved to {status_label(target)}.",
        )
        return TransitionResult(success=True, job=updated, validation=validation)


class PaymentService:
    """Append-only payment ledger kept in the accounts blob."""

    def __init__(self, state: State) -> None:
        self._state = state

    def record_payment(
        self,
        job_id: str,
        amount: float,
        mode: str,
        recorded_by: str,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> PaymentResult:
        if not math.isfinite(amount) or amount <= 0:
            logger.warning("payment_rejected", job_id=job_id, amount=str(amount))
            return PaymentResult(
                success=False,
                error="Payment amount must be a positive finite number",
                code=ErrorCode.INVALID_AMOUNT.value,
            )
        record = new_payment_record(amount, mode, recorded_by, notes)
        try:
            job = self._state.append_payment(job_id, record, expected_version=expected_version)
        except WorkflowError as exc:
            logger.warning("payment_failed", job_id=job_id, code=exc.code.value, error=exc.message)
            return PaymentResult(success=False, error=exc.message, code=exc.code.value)

        new_status = PaymentStatus(job.accounts.payment_status)
        logger.info(
            "payment_recorded",
            job_id=job_id,
            payment_id=record.id,
            amount=amount,
            mode=mode,
            amount_paid=resolve_amount_paid(job.accounts),
            payment_status=new_status.value,
        )
        self._state.record_activity_message(
            category="payment",
            message=f"Recorded {mode} payment of {amount:.2f} on {job.job_code}.",
        )
        return PaymentResult(success=True, new_payment_status=new_status, payment=record, job=job)

    def get_payment_summary(self, job_id: str) -> PaymentSummary:
        return payment_summary(self._state.get_job(job_id))


class JobService:
    """Job intake, department updates and dashboard views."""

    def __init__(self, state: State, workflow_service: WorkflowService) -> None:
        self._state = state
        self._workflow = workflow_service

    def create_job(self, payload: JobCreate) -> Job:
        now = utcnow()
        receptionist = ReceptionistData(
            customerName=payload.customer_name,
            phone=payload.phone,
            email=payload.email,
            shopName=payload.shop_name,
            streetAddress=payload.street_address,
            streetNumber=payload.street_number,
            town=payload.town,
            postcode=payload.postcode,
            job_details=payload.job_details,
            priority=payload.priority,
            dateOfVisit=payload.date_of_visit,
            timeOfVisit=payload.time_of_visit,
            dateOfAppointment=payload.date_of_appointment,
            createdBy=payload.created_by,
            createdAt=now.isoformat(),
        )
        job = Job(
            id=str(uuid4()),
            job_code=self._state.next_job_code(),
            status=JobStatus.RECEIVED.value,
            amount=payload.amount,
            branch_id=payload.branch_id,
            receptionist=receptionist,
            accounts=AccountsData(
                payment_status=PaymentStatus.PAYMENT_PENDING.value,
                amount_paid=0.0,
                total_amount=payload.amount,
                payments=[],
            ),
            created_at=now,
            updated_at=now,
        )
        change = None
        if payload.assigned_salesperson:
            # intake and assignment land in a single commit
            target = JobStatus.SALESPERSON_ASSIGNED.value
            validation = can_transition_to(job.status, target, payment_status_for(job))
            if not validation.allowed:
                raise WorkflowError(ErrorCode.ILLEGAL_TRANSITION, validation.reason or "Assignment failed")
            change = StatusChange(
                id=str(uuid4()),
                job_id=job.id,
                from_status=job.status,
                to_status=target,
                updated_by=payload.created_by,
                changed_at=now,
            )
            update = _assignment_changes(job, payload.assigned_salesperson, payload.date_of_appointment)
            update["status"] = target
            job = job.model_copy(update=update)

        self._state.add_job(job, change)
        logger.info(
            "job_created",
            job_id=job.id,
            job_code=job.job_code,
            status=job.status,
            created_by=payload.created_by,
        )
        self._state.record_activity_message(
            category="intake",
            message=f"Created {job.job_code} for {payload.customer_name}.",
        )
        return job

    def get_job(self, job_id: str) -> Job:
        return self._state.get_job(job_id)

    def list_jobs(
        self,
        statuses: Optional[Iterable[StatusLike]] = None,
        payment_status: Optional[PaymentStatusLike] = None,
        page: int = 1,
        limit: int = 50,
    ) -> JobPage:
        jobs = self._state.list_jobs(statuses=statuses, payment_status=payment_status)
        page = max(page, 1)
        limit = max(limit, 1)
        offset = (page - 1) * limit
        return JobPage(items=jobs[offset:offset + limit], page=page, limit=limit, total=len(jobs))

    def list_jobs_for_role(self, role: str, page: int = 1, limit: int = 50) -> JobPage:
        """Jobs sitting in the statuses the given role works on."""

        statuses = ROLE_STATUS_FILTERS.get(role.lower())
        if statuses is None:
            raise ValueError(f"Unknown role: {role}")
        return self.list_jobs(statuses=statuses, page=page, limit=limit)

    def assign_salesperson(
        self,
        job_id: str,
        salesperson: str,
        appointment_date: Optional[str],
        updated_by: Optional[str] = None,
    ) -> TransitionResult:
        """Hand a freshly received job to a salesperson for the site visit."""

        try:
            job = self._state.get_job(job_id)
        except WorkflowError as exc:
            return TransitionResult(success=False, error=exc.message, code=exc.code.value)
        if job.status != JobStatus.RECEIVED.value:
            return TransitionResult(
                success=False,
                error="Job is already assigned",
                code=ErrorCode.ILLEGAL_TRANSITION.value,
            )

        return self._workflow.transition_job_status(
            job_id,
            JobStatus.SALESPERSON_ASSIGNED,
            updated_by=updated_by,
            expected_version=job.version,
            changes=_assignment_changes(job, salesperson, appointment_date),
        )

    def update_stage(
        self,
        job_id: str,
        department: str,
        fields: Dict[str, Any],
        updated_by: Optional[str] = None,
    ) -> Job:
        """Merge ``fields`` into one department blob, validating the result."""

        try:
            key = Department(department).value
        except ValueError as exc:
            raise InvalidStageError(f"Unknown department: {department}") from exc
        if key == Department.ACCOUNTS.value:
            forbidden = sorted(LEDGER_FIELDS.intersection(fields))
            if forbidden:
                raise LedgerViolationError(
                    "Payment fields are managed by the payment ledger: " + ", ".join(forbidden)
                )
        model = STAGE_MODELS[key]

        def mutate(job: Job) -> Dict[str, object]:
            current = getattr(job, key)
            merged = current.model_dump() if current is not None else {}
            merged.update(fields)
            try:
                blob = model.model_validate(merged)
            except ValidationError as exc:
                raise InvalidStageError(f"Invalid {key} data: {exc.errors()[0]['msg']}") from exc
            before = _stage_status(current)
            after = _stage_status(blob)
            if after and after != before and hasattr(blob, "timeline"):
                timestamp = utcnow().isoformat()
                blob.timeline.append(StatusEvent(status=after, timestamp=timestamp))
                if isinstance(blob, DesignData):
                    blob.lastUpdated = timestamp
            return {key: blob}

        job = self._state.update_job(job_id, mutate)
        logger.info(
            "stage_updated",
            job_id=job_id,
            department=key,
            fields=sorted(fields),
            updated_by=updated_by,
        )
        return job

    def update_amount(self, job_id: str, amount: float) -> Job:
        """Set the agreed total; refused once the job has left the workflow."""

        if not math.isfinite(amount) or amount < 0:
            raise InvalidAmountError("Amount must be a finite, non-negative number")

        def mutate(job: Job) -> Dict[str, object]:
            if is_terminal(job.status):
                raise JobFinalizedError(f"Amount of {job.job_code} can no longer change")
            return {"amount": amount, "accounts": refresh_totals(job.accounts, amount)}

        job = self._state.update_job(job_id, mutate)
        logger.info("amount_updated", job_id=job_id, amount=amount)
        return job

    def job_dashboard(self, job_id: str) -> JobDashboard:
        job = self._state.get_job(job_id)
        payment_status = payment_status_for(job)
        return JobDashboard(
            job_id=job.id,
            job_code=job.job_code,
            status=job.status,
            status_label=status_label(job.status),
            payment=payment_summary(job),
            stages=derive_job_timelines(job),
            overall_progress=workflow_progress(job.status),
            next_statuses=get_next_allowed_statuses(job.status, payment_status),
        )

    def dashboard_summary(self) -> DashboardSummary:
        jobs = self._state.list_jobs()
        by_status, by_payment = self._state.status_counts()
        total_collected = sum(resolve_amount_paid(job.accounts) for job in jobs)
        outstanding = sum(
            max(resolve_total_amount(job) - resolve_amount_paid(job.accounts), 0.0) for job in jobs
        )
        return DashboardSummary(
            total_jobs=len(jobs),
            active_jobs=len([job for job in jobs if not is_terminal(job.status)]),
            jobs_by_status=dict(by_status),
            jobs_by_payment_status=dict(by_payment),
            total_collected=round(total_collected, 2),
            outstanding_balance=round(outstanding, 2),
            recent_activity=self._state.recent_activity(limit=6),
        )


def _assignment_changes(job: Job, salesperson: str, appointment_date: Optional[str]) -> Dict[str, object]:
    receptionist = (job.receptionist or ReceptionistData()).model_copy(
        update={
            "assignedSalesperson": salesperson,
            "dateOfAppointment": appointment_date
            or (job.receptionist.dateOfAppointment if job.receptionist else None),
        }
    )
    sales = (job.salesperson or SalespersonData()).model_copy(update={"assigned_to": salesperson})
    return {"receptionist": receptionist, "salesperson": sales}


def _as_utc(value: Optional[datetime]) -> datetime:
    # SQLite hands timestamps back without their offset
    if value is None:
        return utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _stage_status(blob: Optional[StageData]) -> Optional[str]:
    if blob is None:
        return None
    return getattr(blob, "effective_status", None) or getattr(blob, "status", None)
