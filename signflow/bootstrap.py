"""Bootstrap utilities to seed the service with representative jobs."""
from __future__ import annotations

from typing import Iterable

from .catalog import JobStatus
from .errors import ErrorCode, WorkflowError
from .models import JobCreate
from .services import JobService, PaymentService, WorkflowService
from .state import State


def _advance(
    workflow_service: WorkflowService,
    job_id: str,
    statuses: Iterable[JobStatus],
    updated_by: str,
) -> None:
    for status in statuses:
        result = workflow_service.transition_job_status(job_id, status, updated_by=updated_by)
        if not result.success:
            raise WorkflowError(ErrorCode(result.code), result.error or "Seed transition failed")


def seed_initial_data(
    state: State,
    job_service: JobService,
    workflow_service: WorkflowService,
    payment_service: PaymentService,
) -> None:
    """Populate the store with jobs spread across the departments."""

    if state.seeded or state.list_jobs():
        return

    # Fresh enquiry still waiting at the front desk
    job_service.create_job(
        JobCreate(
            customer_name="Corner Bakery",
            phone="07700 900123",
            shop_name="Corner Bakery",
            street_address="High Street",
            street_number="14",
            town="Leeds",
            postcode="LS1 4AP",
            job_details="Illuminated fascia sign above the shop front",
            priority="normal",
            created_by="reception.amy",
        )
    )

    # Visited by sales, artwork in progress
    job = job_service.create_job(
        JobCreate(
            customer_name="Hartley Dental",
            phone="07700 900456",
            email="practice@hartleydental.example",
            town="York",
            job_details="Window vinyl and opening hours panel",
            date_of_appointment="2026-03-02",
            assigned_salesperson="sales.omar",
            amount=850.0,
            created_by="reception.amy",
        )
    )
    job_service.update_stage(
        job.id,
        "salesperson",
        {
            "status": "visited",
            "typeOfSign": "Window vinyl",
            "material": "Frosted vinyl",
            "signMeasurements": "2400 x 900 mm",
            "visitedAt": "2026-03-02T10:30:00Z",
            "submittedAt": "2026-03-02T16:00:00Z",
        },
        updated_by="sales.omar",
    )
    _advance(workflow_service, job.id, [JobStatus.SITE_VISITED, JobStatus.DESIGN_STARTED], "sales.omar")
    job_service.update_stage(
        job.id,
        "design",
        {"designer": "design.li", "status": "in_progress"},
        updated_by="design.li",
    )

    # Advance paid, on the workshop floor
    job = job_service.create_job(
        JobCreate(
            customer_name="Riverside Motors",
            phone="07700 900789",
            town="Harrogate",
            job_details="Double sided post sign for the forecourt",
            date_of_appointment="2026-02-20",
            assigned_salesperson="sales.omar",
            amount=2400.0,
            branch_id=1,
            created_by="reception.dev",
        )
    )
    job_service.update_stage(
        job.id,
        "salesperson",
        {
            "status": "submitted",
            "typeOfSign": "Post sign",
            "material": "Aluminium composite",
            "signMeasurements": "1800 x 1200 mm",
        },
        updated_by="sales.omar",
    )
    _advance(
        workflow_service,
        job.id,
        [
            JobStatus.SITE_VISITED,
            JobStatus.DESIGN_STARTED,
            JobStatus.DESIGN_IN_REVIEW,
            JobStatus.DESIGN_APPROVED,
        ],
        "design.li",
    )
    job_service.update_stage(
        job.id,
        "design",
        {"designer": "design.li", "status": "approved"},
        updated_by="design.li",
    )
    job_service.update_stage(
        job.id,
        "accounts",
        {"invoice_no": "INV-2026-031", "invoiceDate": "2026-02-24"},
        updated_by="accounts.sam",
    )
    payment_service.record_payment(job.id, 1000.0, "bank_transfer", "accounts.sam", notes="Advance")
    _advance(workflow_service, job.id, [JobStatus.PRODUCTION_STARTED], "production.kai")
    job_service.update_stage(
        job.id,
        "production",
        {
            "status": "production_started",
            "assigned_team": ["production.kai", "production.jo"],
            "start_date": "2026-02-26",
            "estimatedCompletion": "2026-03-06",
        },
        updated_by="production.kai",
    )

    # Paid in full and leaving the workshop
    job = job_service.create_job(
        JobCreate(
            customer_name="Northern Lights Cafe",
            town="Leeds",
            job_details="Neon style LED wall sign",
            date_of_appointment="2026-01-28",
            assigned_salesperson="sales.priya",
            amount=1250.0,
            branch_id=1,
            created_by="reception.dev",
        )
    )
    _advance(
        workflow_service,
        job.id,
        [
            JobStatus.SITE_VISITED,
            JobStatus.DESIGN_STARTED,
            JobStatus.DESIGN_IN_REVIEW,
            JobStatus.DESIGN_APPROVED,
        ],
        "design.li",
    )
    payment_service.record_payment(job.id, 500.0, "card", "accounts.sam", notes="Advance")
    _advance(
        workflow_service,
        job.id,
        [
            JobStatus.PRODUCTION_STARTED,
            JobStatus.PRINTING_QUEUED,
            JobStatus.PRINTING_STARTED,
            JobStatus.PRINTING_COMPLETED,
            JobStatus.FRAMING_STARTED,
            JobStatus.PRODUCTION_COMPLETED,
        ],
        "production.kai",
    )
    job_service.update_stage(
        job.id,
        "printing",
        {"status": "print_complete", "printStartedAt": "2026-02-04", "printCompletedAt": "2026-02-05"},
        updated_by="printing.ben",
    )
    job_service.update_stage(job.id, "production", {"status": "done"}, updated_by="production.kai")
    payment_service.record_payment(job.id, 750.0, "card", "accounts.sam", notes="Balance")
    _advance(workflow_service, job.id, [JobStatus.OUT_FOR_DELIVERY], "production.kai")

    state.mark_seeded()
