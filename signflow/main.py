"""FastAPI application exposing the SignFlow job lifecycle workflow."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .bootstrap import seed_initial_data
from .catalog import (
    PAYMENT_STATUS_COLORS,
    PAYMENT_STATUS_LABELS,
    ROLE_STATUS_FILTERS,
    STATUS_COLORS,
    STATUS_LABELS,
    JobStatus,
    PaymentStatus,
)
from .config import get_settings
from .database import SessionLocal, create_tables
from .errors import ErrorCode, WorkflowError
from .models import (
    AmountUpdate,
    DashboardSummary,
    Job,
    JobCreate,
    JobDashboard,
    JobPage,
    NextStatusOption,
    PaymentCreate,
    PaymentRecord,
    PaymentSummary,
    SalespersonAssignment,
    StageUpdate,
    StatusChange,
    TransitionRequest,
    WorkflowValidation,
)
from .services import DatabaseMirror, JobService, PaymentService, WorkflowService
from .state import state
from .workflows import transition_table


settings = get_settings()

logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level, logging.INFO))

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if settings.log_json else structlog.dev.ConsoleRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

ERROR_STATUS_CODES: Dict[ErrorCode, int] = {
    ErrorCode.JOB_NOT_FOUND: 404,
    ErrorCode.ILLEGAL_TRANSITION: 409,
    ErrorCode.WRITE_CONFLICT: 409,
    ErrorCode.JOB_FINALIZED: 409,
    ErrorCode.PAYMENT_REQUIRED: 402,
    ErrorCode.INVALID_STAGE: 400,
    ErrorCode.LEDGER_VIOLATION: 400,
    ErrorCode.INVALID_AMOUNT: 400,
    ErrorCode.PERSISTENCE_ERROR: 500,
}

app = FastAPI(
    title="SignFlow",
    description=(
        "Job lifecycle backend for a sign workshop: intake, site visits, design, "
        "production, printing and payment tracking."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
workflow_service = WorkflowService(state)
payment_service = PaymentService(state)
job_service = JobService(state, workflow_service)
mirror = DatabaseMirror(SessionLocal)

# Create database tables and reload persisted jobs before mirroring new commits
create_tables()
loaded = mirror.load_into(state)
state.attach_commit_hook(mirror.save)
logger.info("jobs_loaded", count=loaded)

if settings.seed_demo_data:
    seed_initial_data(state, job_service, workflow_service, payment_service)


def _status_code(code: Optional[str]) -> int:
    try:
        return ERROR_STATUS_CODES[ErrorCode(code)]
    except (KeyError, ValueError):
        return 400


def _failure_response(code: Optional[str], message: Optional[str], **extra) -> JSONResponse:
    content = {"error": {"code": code, "message": message}}
    content.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=_status_code(code), content=content)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    logger.warning(
        "request_failed",
        path=request.url.path,
        code=exc.code.value,
        error=exc.message,
    )
    return JSONResponse(status_code=ERROR_STATUS_CODES.get(exc.code, 400), content=exc.to_dict())


@app.get("/health", summary="Health check")
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/catalog/statuses", summary="Job and payment status vocabularies")
def catalog_statuses() -> dict:
    return {
        "statuses": [
            {"value": status.value, "label": STATUS_LABELS[status.value], "color": STATUS_COLORS[status.value]}
            for status in JobStatus
        ],
        "payment_statuses": [
            {
                "value": status.value,
                "label": PAYMENT_STATUS_LABELS[status.value],
                "color": PAYMENT_STATUS_COLORS[status.value],
            }
            for status in PaymentStatus
        ],
        "roles": {role: list(statuses) for role, statuses in ROLE_STATUS_FILTERS.items()},
    }


@app.get("/catalog/transitions", summary="Transition graph and payment preconditions")
def catalog_transitions() -> Dict[str, Dict[str, List[str]]]:
    return transition_table()


@app.post("/jobs", response_model=Job, status_code=201, summary="Create a job at reception")
def create_job(payload: JobCreate) -> Job:
    return job_service.create_job(payload)


@app.get("/jobs", response_model=JobPage, summary="List jobs, newest first")
def list_jobs(
    status: Optional[List[str]] = Query(None, description="Repeat to filter on several statuses"),
    payment_status: Optional[PaymentStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=settings.max_page_size),
) -> JobPage:
    return job_service.list_jobs(
        statuses=status,
        payment_status=payment_status,
        page=page,
        limit=limit or settings.page_size,
    )


@app.get("/roles/{role}/jobs", response_model=JobPage, summary="Jobs a role is working on")
def list_jobs_for_role(
    role: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=settings.max_page_size),
) -> JobPage:
    try:
        return job_service.list_jobs_for_role(role, page=page, limit=limit or settings.page_size)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/jobs/{job_id}", response_model=Job, summary="Get job details")
def get_job(job_id: str) -> Job:
    return job_service.get_job(job_id)


@app.patch("/jobs/{job_id}/stages/{department}", response_model=Job, summary="Update department data")
def update_stage(job_id: str, department: str, payload: StageUpdate) -> Job:
    return job_service.update_stage(job_id, department, payload.fields, updated_by=payload.updated_by)


@app.post("/jobs/{job_id}/assign-salesperson", response_model=Job, summary="Assign a salesperson")
def assign_salesperson(job_id: str, payload: SalespersonAssignment):
    result = job_service.assign_salesperson(
        job_id,
        payload.salesperson,
        payload.appointment_date,
        updated_by=payload.updated_by,
    )
    if not result.success:
        return _failure_response(result.code, result.error)
    return result.job


@app.put("/jobs/{job_id}/amount", response_model=Job, summary="Set the agreed total")
def update_amount(job_id: str, payload: AmountUpdate) -> Job:
    return job_service.update_amount(job_id, payload.amount)


@app.get(
    "/jobs/{job_id}/next-statuses",
    response_model=List[NextStatusOption],
    summary="Statuses the job may move to next",
)
def next_statuses(job_id: str) -> List[NextStatusOption]:
    return workflow_service.next_statuses(job_id)


@app.post(
    "/jobs/{job_id}/validate-transition",
    response_model=WorkflowValidation,
    summary="Check a transition without applying it",
)
def validate_transition(job_id: str, payload: TransitionRequest) -> WorkflowValidation:
    return workflow_service.validate(job_id, payload.status)


@app.post("/jobs/{job_id}/transition", response_model=Job, summary="Move a job to its next status")
def transition_job(job_id: str, payload: TransitionRequest):
    result = workflow_service.transition_job_status(
        job_id,
        payload.status,
        updated_by=payload.updated_by,
        expected_version=payload.expected_version,
    )
    if not result.success:
        validation = result.validation.model_dump(mode="json") if result.validation else None
        return _failure_response(result.code, result.error, validation=validation)
    return result.job


@app.get("/jobs/{job_id}/history", response_model=List[StatusChange], summary="Status change history")
def job_history(job_id: str) -> List[StatusChange]:
    return workflow_service.history(job_id)


@app.post(
    "/jobs/{job_id}/payments",
    response_model=PaymentRecord,
    status_code=201,
    summary="Record a payment",
)
def record_payment(job_id: str, payload: PaymentCreate):
    result = payment_service.record_payment(
        job_id,
        payload.amount,
        payload.mode,
        payload.recorded_by,
        notes=payload.notes,
        expected_version=payload.expected_version,
    )
    if not result.success:
        return _failure_response(result.code, result.error)
    return result.payment


@app.get("/jobs/{job_id}/payments", response_model=PaymentSummary, summary="Payment summary")
def payment_summary(job_id: str) -> PaymentSummary:
    return payment_service.get_payment_summary(job_id)


@app.get("/jobs/{job_id}/timeline", response_model=JobDashboard, summary="Department timelines")
def job_timeline(job_id: str) -> JobDashboard:
    return job_service.job_dashboard(job_id)


@app.get("/dashboard/summary", response_model=DashboardSummary, summary="Dashboard metrics")
def dashboard_summary() -> DashboardSummary:
    return job_service.dashboard_summary()
