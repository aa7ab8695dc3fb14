"""Status vocabularies and display metadata shared with the stored job JSON."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Union


class JobStatus(str, Enum):
    """Workflow status owning a job, in hand-off order."""

    RECEIVED = "received"
    SALESPERSON_ASSIGNED = "salesperson_assigned"
    SITE_VISITED = "site_visited"
    DESIGN_STARTED = "design_started"
    DESIGN_IN_REVIEW = "design_in_review"
    DESIGN_APPROVED = "design_approved"
    PRODUCTION_STARTED = "production_started"
    PRINTING_QUEUED = "printing_queued"
    PRINTING_STARTED = "printing_started"
    PRINTING_COMPLETED = "printing_completed"
    FRAMING_STARTED = "framing_started"
    PRODUCTION_COMPLETED = "production_completed"
    OUT_FOR_DELIVERY = "out_for_delivery"


class PaymentStatus(str, Enum):
    """Accounts dimension of a job, derived from amounts."""

    PAYMENT_PENDING = "payment_pending"
    PARTIALLY_PAID = "partially_paid"
    PAYMENT_DONE = "payment_done"


class Department(str, Enum):
    """Departments owning one data blob each on a job."""

    RECEPTIONIST = "receptionist"
    SALESPERSON = "salesperson"
    DESIGN = "design"
    PRODUCTION = "production"
    PRINTING = "printing"
    ACCOUNTS = "accounts"


StatusLike = Union[JobStatus, str]
PaymentStatusLike = Union[PaymentStatus, str]


STATUS_LABELS: Dict[str, str] = {
    JobStatus.RECEIVED.value: "Received",
    JobStatus.SALESPERSON_ASSIGNED.value: "Salesperson Assigned",
    JobStatus.SITE_VISITED.value: "Site Visited",
    JobStatus.DESIGN_STARTED.value: "Design Started",
    JobStatus.DESIGN_IN_REVIEW.value: "Design In Review",
    JobStatus.DESIGN_APPROVED.value: "Design Approved",
    JobStatus.PRODUCTION_STARTED.value: "Production Started",
    JobStatus.PRINTING_QUEUED.value: "At Printing",
    JobStatus.PRINTING_STARTED.value: "Printing Started",
    JobStatus.PRINTING_COMPLETED.value: "Printing Completed",
    JobStatus.FRAMING_STARTED.value: "Framing / Assembly",
    JobStatus.PRODUCTION_COMPLETED.value: "Production Completed",
    JobStatus.OUT_FOR_DELIVERY.value: "Out for Delivery",
}

PAYMENT_STATUS_LABELS: Dict[str, str] = {
    PaymentStatus.PAYMENT_PENDING.value: "Payment Pending",
    PaymentStatus.PARTIALLY_PAID.value: "Partially Paid",
    PaymentStatus.PAYMENT_DONE.value: "Paid in Full",
}

STATUS_COLORS: Dict[str, str] = {
    JobStatus.RECEIVED.value: "warning",
    JobStatus.SALESPERSON_ASSIGNED.value: "info",
    JobStatus.SITE_VISITED.value: "info",
    JobStatus.DESIGN_STARTED.value: "info",
    JobStatus.DESIGN_IN_REVIEW.value: "warning",
    JobStatus.DESIGN_APPROVED.value: "success",
    JobStatus.PRODUCTION_STARTED.value: "info",
    JobStatus.PRINTING_QUEUED.value: "warning",
    JobStatus.PRINTING_STARTED.value: "info",
    JobStatus.PRINTING_COMPLETED.value: "success",
    JobStatus.FRAMING_STARTED.value: "info",
    JobStatus.PRODUCTION_COMPLETED.value: "success",
    JobStatus.OUT_FOR_DELIVERY.value: "success",
}

PAYMENT_STATUS_COLORS: Dict[str, str] = {
    PaymentStatus.PAYMENT_PENDING.value: "error",
    PaymentStatus.PARTIALLY_PAID.value: "warning",
    PaymentStatus.PAYMENT_DONE.value: "success",
}

_ALL_STATUSES: List[str] = [status.value for status in JobStatus]

ROLE_STATUS_FILTERS: Dict[str, List[str]] = {
    "receptionist": [JobStatus.RECEIVED.value, JobStatus.SALESPERSON_ASSIGNED.value],
    "salesperson": [JobStatus.SALESPERSON_ASSIGNED.value, JobStatus.SITE_VISITED.value],
    "designer": [JobStatus.DESIGN_STARTED.value, JobStatus.DESIGN_IN_REVIEW.value],
    "production": [
        JobStatus.DESIGN_APPROVED.value,
        JobStatus.PRODUCTION_STARTED.value,
        JobStatus.PRINTING_QUEUED.value,
        JobStatus.PRINTING_STARTED.value,
        JobStatus.PRINTING_COMPLETED.value,
        JobStatus.FRAMING_STARTED.value,
        JobStatus.PRODUCTION_COMPLETED.value,
    ],
    "printing": [
        JobStatus.PRINTING_QUEUED.value,
        JobStatus.PRINTING_STARTED.value,
        JobStatus.PRINTING_COMPLETED.value,
    ],
    "accounts": list(_ALL_STATUSES),
    "admin": list(_ALL_STATUSES),
}


def status_value(status: StatusLike) -> str:
    """Return the stored string form of a status or payment status."""

    if isinstance(status, Enum):
        return str(status.value)
    return str(status)


def status_label(status: StatusLike) -> str:
    value = status_value(status)
    return STATUS_LABELS.get(value, value)


def payment_status_label(status: PaymentStatusLike) -> str:
    value = status_value(status)
    return PAYMENT_STATUS_LABELS.get(value, value)
