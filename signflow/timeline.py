"""Per-department milestone timelines derived from raw stage blobs.

Departments record progress in their own loosely structured blob, so each one
gets a dedicated derivation. All of them follow the same shape: an absent blob
yields an empty timeline, a fixed ordered list of milestones is evaluated
against the blob, and the first unfinished milestone is flagged as current.

Status strings are matched by substring (``"review" in status``) to stay
compatible with the values already stored by the department flows.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .catalog import Department, PaymentStatus, status_value
from .models import (
    AccountsData,
    DesignData,
    Job,
    PrintingData,
    ProductionData,
    ReceptionistData,
    SalespersonData,
    StageTimeline,
    StatusEvent,
    TimelineItem,
)


COMPLETED_STATUSES = frozenset(
    {
        "completed",
        "approved",
        "done",
        "production_complete",
        "print_complete",
        "paid",
        "payment_done",
    }
)

SITE_VISITED_STATUSES = frozenset({"visited", "site_visited", "submitted", "completed"})

DEPARTMENT_TITLES: Dict[str, str] = {
    Department.RECEPTIONIST.value: "Receptionist",
    Department.SALESPERSON.value: "Salesperson",
    Department.DESIGN.value: "Designer",
    Department.PRODUCTION.value: "Production",
    Department.PRINTING.value: "Printing",
    Department.ACCOUNTS.value: "Accounts",
}

# (label, completed, timestamp)
Milestone = Tuple[str, bool, Optional[object]]


def is_completed(status: Optional[str]) -> bool:
    """True when ``status`` is one of the terminal words any department uses."""

    if not status:
        return False
    return status.strip().lower() in COMPLETED_STATUSES


def format_timestamp(value: Optional[object]) -> Optional[str]:
    """Render an ISO date or datetime as ``05 Mar 2025``; other text is kept."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.strftime("%d %b %Y")
    text = str(value).strip()
    if not text:
        return None
    candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(candidate).strftime("%d %b %Y")
    except ValueError:
        return text


def build_timeline(milestones: Sequence[Milestone]) -> List[TimelineItem]:
    """Turn evaluated milestones into items, flagging the current one.

    The current item is the first one not completed, and only when nothing
    after it is completed; a timeline with a gap has no current item.
    """

    items = [
        TimelineItem(label=label, completed=completed, timestamp=format_timestamp(timestamp))
        for label, completed, timestamp in milestones
    ]
    for index, item in enumerate(items):
        if item.completed:
            continue
        if not any(later.completed for later in items[index + 1:]):
            item.current = True
        break
    return items


def calculate_progress(timeline: Sequence[TimelineItem]) -> int:
    """Percentage of completed milestones, rounded half up; 0 when empty."""

    if not timeline:
        return 0
    completed = sum(1 for item in timeline if item.completed)
    return int(math.floor(100 * completed / len(timeline) + 0.5))


def _normalized(status: Optional[str]) -> str:
    return (status or "").strip().lower()


def _contains_any(status: str, needles: Iterable[str]) -> bool:
    return any(needle in status for needle in needles)


def _first_event(events: Sequence[StatusEvent], predicate: Callable[[str], bool]) -> Optional[str]:
    for event in events:
        if predicate(_normalized(event.status)):
            return event.timestamp
    return None


def derive_receptionist_timeline(data: Optional[ReceptionistData]) -> List[TimelineItem]:
    if data is None:
        return []
    return build_timeline(
        [
            ("Job Received", True, data.createdAt),
            ("Customer Details", bool(data.customer_name), None),
            ("Salesperson Assigned", bool(data.assignedSalesperson), None),
            ("Appointment Scheduled", bool(data.dateOfAppointment), data.dateOfAppointment),
        ]
    )


def derive_salesperson_timeline(data: Optional[SalespersonData]) -> List[TimelineItem]:
    if data is None:
        return []
    status = _normalized(data.status)
    has_details = data.has_site_details
    visited = status in SITE_VISITED_STATUSES or is_completed(status) or has_details
    submitted = bool(data.typeOfSign and data.material and data.sign_measurements)
    return build_timeline(
        [
            ("Assigned", True, None),
            ("Site Visit Scheduled", bool(status) or has_details, None),
            ("Site Visited", visited, data.visitedAt),
            ("Details Submitted", submitted, data.submittedAt),
        ]
    )


def derive_design_timeline(data: Optional[DesignData]) -> List[TimelineItem]:
    if data is None:
        return []
    status = _normalized(data.status)
    started = bool(status) and status != "pending"
    drafted = "review" in status or "approved" in status
    approved = "approved" in status
    started_at = _first_event(data.timeline, lambda value: value == "in_progress")
    approved_at = _first_event(data.timeline, lambda value: "approved" in value)
    return build_timeline(
        [
            ("Design Started", started, started_at),
            ("Draft Created", drafted, None),
            ("Sent for Review", drafted, None),
            ("Client Feedback", approved, None),
            ("Design Approved", approved, approved_at or (data.lastUpdated if approved else None)),
        ]
    )


def derive_production_timeline(data: Optional[ProductionData]) -> List[TimelineItem]:
    if data is None:
        return []
    status = _normalized(data.effective_status)
    done = is_completed(status)
    queued = bool(status) or bool(data.team)
    started = _contains_any(status, ("started", "in_progress", "printing", "framing", "done"))
    at_printing = _contains_any(status, ("printing", "framing", "done"))
    framing = _contains_any(status, ("framing", "done"))
    return build_timeline(
        [
            ("Queued", queued, None),
            ("Production Started", started, data.started_at),
            ("Sent to Printing", at_printing, None),
            ("Framing", framing, None),
            ("Production Complete", done, data.completion_at),
        ]
    )


def derive_printing_timeline(data: Optional[PrintingData]) -> List[TimelineItem]:
    if data is None:
        return []
    status = _normalized(data.effective_status)
    done = is_completed(status)
    started = status == "print_started" or "started" in status or done
    return build_timeline(
        [
            ("Received at Printing", bool(status), None),
            ("Printing Started", started, data.printStartedAt),
            ("Printing Complete", done, data.printCompletedAt),
        ]
    )


def derive_accounts_timeline(data: Optional[AccountsData]) -> List[TimelineItem]:
    if data is None:
        return []
    payment_status = _normalized(data.effective_payment_status)
    invoiced = bool(data.invoice_number)
    paid_in_full = is_completed(payment_status)
    advance = payment_status == PaymentStatus.PARTIALLY_PAID.value or paid_in_full
    first_payment = data.payments[0].recorded_at or data.payments[0].date if data.payments else None
    last_payment = data.payments[-1].recorded_at or data.payments[-1].date if data.payments else None
    return build_timeline(
        [
            ("Invoice Generated", invoiced, data.invoiceDate),
            ("Invoice Sent", invoiced, None),
            ("Advance Received", advance, first_payment if advance else None),
            ("Payment Complete", paid_in_full, last_payment if paid_in_full else None),
        ]
    )


_DERIVERS: Dict[str, Callable[..., List[TimelineItem]]] = {
    Department.RECEPTIONIST.value: derive_receptionist_timeline,
    Department.SALESPERSON.value: derive_salesperson_timeline,
    Department.DESIGN.value: derive_design_timeline,
    Department.PRODUCTION.value: derive_production_timeline,
    Department.PRINTING.value: derive_printing_timeline,
    Department.ACCOUNTS.value: derive_accounts_timeline,
}


def derive_timeline(department: Department | str, data) -> List[TimelineItem]:
    key = status_value(department)
    try:
        deriver = _DERIVERS[key]
    except KeyError as exc:
        raise ValueError(f"Unknown department: {key}") from exc
    return deriver(data)


def derive_job_timelines(job: Job) -> List[StageTimeline]:
    """Timelines for all six departments of ``job`` in hand-off order."""

    stages: List[StageTimeline] = []
    for department in Department:
        items = derive_timeline(department, getattr(job, department.value))
        stages.append(
            StageTimeline(
                department=department.value,
                title=DEPARTMENT_TITLES[department.value],
                items=items,
                progress=calculate_progress(items),
            )
        )
    return stages
