"""Tests for department timeline derivation and progress."""
from __future__ import annotations

import pytest

from signflow.catalog import Department
from signflow.models import (
    AccountsData,
    DesignData,
    Job,
    PaymentRecord,
    PrintingData,
    ProductionData,
    ReceptionistData,
    SalespersonData,
    TimelineItem,
)
from signflow.timeline import (
    build_timeline,
    calculate_progress,
    derive_accounts_timeline,
    derive_design_timeline,
    derive_job_timelines,
    derive_printing_timeline,
    derive_production_timeline,
    derive_receptionist_timeline,
    derive_salesperson_timeline,
    derive_timeline,
    format_timestamp,
    is_completed,
)


BLOB_SAMPLES = [
    (Department.RECEPTIONIST, ReceptionistData(customerName="Ada")),
    (Department.RECEPTIONIST, ReceptionistData(client_name="Ada", assignedSalesperson="omar", dateOfAppointment="2026-01-02")),
    (Department.SALESPERSON, SalespersonData()),
    (Department.SALESPERSON, SalespersonData(status="visited", typeOfSign="Fascia")),
    (Department.DESIGN, DesignData(status="pending")),
    (Department.DESIGN, DesignData(status="in_review")),
    (Department.DESIGN, DesignData(status="approved")),
    (Department.PRODUCTION, ProductionData(status="production_started")),
    (Department.PRODUCTION, ProductionData(current_status="done")),
    (Department.PRINTING, PrintingData(printStatus="print_started")),
    (Department.PRINTING, PrintingData(status="print_complete")),
    (Department.ACCOUNTS, AccountsData()),
    (Department.ACCOUNTS, AccountsData(invoice_no="INV-1", payment_status="partially_paid")),
    # a gap: the later milestone is complete, the earlier one is not
    (Department.RECEPTIONIST, ReceptionistData(assignedSalesperson="omar")),
]


@pytest.mark.parametrize("department, blob", BLOB_SAMPLES)
def test_at_most_one_current_milestone(department: Department, blob) -> None:
    items = derive_timeline(department, blob)
    current = [index for index, item in enumerate(items) if item.current]
    assert len(current) <= 1
    if current:
        index = current[0]
        assert not items[index].completed
        assert all(item.completed for item in items[:index])
        assert not any(item.completed for item in items[index + 1:])
    assert 0 <= calculate_progress(items) <= 100


@pytest.mark.parametrize("department", list(Department))
def test_absent_blob_gives_empty_timeline(department: Department) -> None:
    items = derive_timeline(department, None)
    assert items == []
    assert calculate_progress(items) == 0


def test_unknown_department_is_rejected() -> None:
    with pytest.raises(ValueError):
        derive_timeline("marketing", None)


def test_production_framing_marks_completion_current() -> None:
    items = derive_production_timeline(ProductionData(status="framing_started"))
    assert [item.label for item in items] == [
        "Queued",
        "Production Started",
        "Sent to Printing",
        "Framing",
        "Production Complete",
    ]
    assert [item.completed for item in items] == [True, True, True, True, False]
    assert [item.current for item in items] == [False, False, False, False, True]
    assert calculate_progress(items) == 80


def test_production_team_and_dates() -> None:
    items = derive_production_timeline(
        ProductionData(assignedTeam="Workshop A", startDate="2026-02-26", end_date="2026-03-06")
    )
    assert items[0].completed is True
    assert items[1].current is True
    assert items[1].timestamp == "26 Feb 2026"
    assert items[4].timestamp == "06 Mar 2026"


def test_receptionist_gap_has_no_current_item() -> None:
    items = derive_receptionist_timeline(ReceptionistData(assignedSalesperson="omar"))
    assert [item.completed for item in items] == [True, False, True, False]
    assert not any(item.current for item in items)


def test_salesperson_site_details_imply_visit() -> None:
    items = derive_salesperson_timeline(
        SalespersonData(typeOfSign="Fascia", material="Dibond", measurements="3000 x 600", visitedAt="2026-01-05T09:00:00Z")
    )
    assert all(item.completed for item in items)
    assert items[2].timestamp == "05 Jan 2026"
    assert calculate_progress(items) == 100


def test_design_uses_timeline_entries_for_timestamps() -> None:
    blob = DesignData(
        status="approved",
        timeline=[
            {"status": "in_progress", "timestamp": "2026-01-10T08:00:00Z"},
            {"status": "approved", "timestamp": "2026-01-14T12:00:00Z"},
        ],
    )
    items = derive_design_timeline(blob)
    assert all(item.completed for item in items)
    assert items[0].timestamp == "10 Jan 2026"
    assert items[-1].timestamp == "14 Jan 2026"


def test_design_review_completes_drafts_only() -> None:
    items = derive_design_timeline(DesignData(status="in_review"))
    assert [item.completed for item in items] == [True, True, True, False, False]
    assert items[3].current is True
    assert calculate_progress(items) == 60


def test_printing_started_by_legacy_field() -> None:
    items = derive_printing_timeline(PrintingData(printStatus="print_started", printStartedAt="2026-02-01"))
    assert [item.completed for item in items] == [True, True, False]
    assert items[1].timestamp == "01 Feb 2026"
    assert items[2].current is True


def test_accounts_payments_feed_timestamps() -> None:
    blob = AccountsData(
        invoiceNumber="INV-7",
        payment_status="payment_done",
        payments=[
            PaymentRecord(amount=100, mode="cash", date="2026-03-01"),
            PaymentRecord(amount=900, mode="card", date="2026-03-09"),
        ],
    )
    items = derive_accounts_timeline(blob)
    assert all(item.completed for item in items)
    assert items[2].timestamp == "01 Mar 2026"
    assert items[3].timestamp == "09 Mar 2026"


def test_progress_rounds_half_up() -> None:
    items = [
        TimelineItem(label="a", completed=True),
        TimelineItem(label="b", completed=False),
        TimelineItem(label="c", completed=False),
        TimelineItem(label="d", completed=False),
        TimelineItem(label="e", completed=False),
        TimelineItem(label="f", completed=False),
        TimelineItem(label="g", completed=False),
        TimelineItem(label="h", completed=False),
    ]
    # 12.5 rounds up
    assert calculate_progress(items) == 13
    assert calculate_progress([]) == 0
    assert build_timeline([]) == []


def test_completion_vocabulary_is_case_insensitive() -> None:
    assert is_completed("Approved")
    assert is_completed(" PAYMENT_DONE ")
    assert not is_completed("in_progress")
    assert not is_completed(None)


def test_format_timestamp_keeps_unparseable_text() -> None:
    assert format_timestamp("2026-04-05") == "05 Apr 2026"
    assert format_timestamp("next Tuesday") == "next Tuesday"
    assert format_timestamp("") is None


def test_job_timelines_cover_every_department() -> None:
    job = Job(id="j", job_code="JOB-00009", status="received", receptionist=ReceptionistData(customerName="Ada"))
    stages = derive_job_timelines(job)
    assert [stage.department for stage in stages] == [department.value for department in Department]
    assert stages[0].progress == 50
    assert stages[2].items == []
    # accounts defaults to an empty blob
    assert [item.completed for item in stages[5].items] == [False, False, False, False]
    assert stages[5].items[0].current is True


def test_design_done_only_completes_started() -> None:
    items = derive_design_timeline(DesignData(status="done"))
    assert [item.completed for item in items] == [True, False, False, False, False]
    assert items[1].current is True


def test_production_completed_word_only_completes_final_milestone() -> None:
    items = derive_production_timeline(ProductionData(status="completed"))
    assert [item.completed for item in items] == [True, False, False, False, True]
    # the gap leaves no current milestone
    assert not any(item.current for item in items)


def test_drifted_blob_shapes_still_derive() -> None:
    job = Job(
        id="legacy",
        job_code="JOB-00077",
        status="design_started",
        design={"status": "in_review", "drafts": {"0": {"url": "draft-a.png"}}, "timeline": [{"note": "imported"}]},
        salesperson={"status": "visited", "images": [{"url": "a.png"}], "paymentAmount": "£500"},
    )
    assert job.salesperson.paymentAmount == "£500"
    assert job.design.drafts == {"0": {"url": "draft-a.png"}}

    stages = {stage.department: stage for stage in derive_job_timelines(job)}
    assert [item.completed for item in stages["design"].items] == [True, True, True, False, False]
    assert stages["salesperson"].items[2].completed is True
