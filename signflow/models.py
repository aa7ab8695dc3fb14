"""Domain and API models for the SignFlow job lifecycle service."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .catalog import PaymentStatus, status_value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatusEvent(BaseModel):
    """Status change entry kept inside a department blob."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    status: Optional[str] = None
    timestamp: Optional[str] = None


class StageData(BaseModel):
    """Base for department blobs.

    Blobs are written by independent department flows and have drifted over
    time, so unknown keys are kept and numbers sent where text is expected are
    accepted as text.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class ReceptionistData(StageData):
    customerName: Optional[str] = None
    client_name: Optional[str] = None
    phone: Optional[str] = None
    client_phone: Optional[str] = None
    email: Optional[str] = None
    shopName: Optional[str] = None
    streetAddress: Optional[str] = None
    streetNumber: Optional[str] = None
    town: Optional[str] = None
    postcode: Optional[str] = None
    assignedSalesperson: Optional[str] = None
    dateOfAppointment: Optional[str] = None
    dateOfVisit: Optional[str] = None
    timeOfVisit: Optional[str] = None
    job_details: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    createdBy: Optional[str] = None
    createdAt: Optional[str] = None

    @property
    def customer_name(self) -> Optional[str]:
        return self.customerName or self.client_name


class SalespersonData(StageData):
    assigned_to: Optional[str] = None
    status: Optional[str] = None
    typeOfSign: Optional[str] = None
    material: Optional[str] = None
    signMeasurements: Optional[str] = None
    measurements: Optional[str] = None
    windowMeasurements: Optional[str] = None
    timeForProduction: Optional[str] = None
    productionTime: Optional[str] = None
    timeForFitting: Optional[str] = None
    fittingTime: Optional[str] = None
    # quoted prices such as "£500" were stored as text
    paymentAmount: Optional[Union[float, str]] = None
    modeOfPayment: Optional[str] = None
    extraDetails: Optional[str] = None
    notes: Optional[str] = None
    images: List[Any] = Field(default_factory=list)
    visitedAt: Optional[str] = None
    submittedAt: Optional[str] = None

    @property
    def sign_measurements(self) -> Optional[str]:
        return self.signMeasurements or self.measurements

    @property
    def has_site_details(self) -> bool:
        return any(
            (self.typeOfSign, self.material, self.sign_measurements, self.extraDetails)
        )


class DesignData(StageData):
    designer: Optional[str] = None
    status: Optional[str] = None
    files: List[Any] = Field(default_factory=list)
    # older designs keyed drafts by their number
    drafts: Union[List[Any], Dict[str, Any]] = Field(default_factory=list)
    comments: Optional[str] = None
    lastUpdated: Optional[str] = None
    timeline: List[StatusEvent] = Field(default_factory=list)


class ProductionData(StageData):
    status: Optional[str] = None
    current_status: Optional[str] = None
    assigned_team: Optional[Union[List[Any], str]] = None
    assignedTeam: Optional[Union[List[Any], str]] = None
    assignedWorkers: Optional[List[Any]] = None
    start_date: Optional[str] = None
    startDate: Optional[str] = None
    productionStartedAt: Optional[str] = None
    end_date: Optional[str] = None
    estimatedCompletion: Optional[str] = None
    materials: Optional[str] = None
    timeline: List[StatusEvent] = Field(default_factory=list)

    @property
    def effective_status(self) -> Optional[str]:
        return self.status or self.current_status

    @property
    def team(self) -> List[Any]:
        for candidate in (self.assigned_team, self.assignedTeam, self.assignedWorkers):
            if isinstance(candidate, list) and candidate:
                return list(candidate)
            if isinstance(candidate, str) and candidate.strip():
                return [candidate]
        return []

    @property
    def started_at(self) -> Optional[str]:
        return self.start_date or self.startDate or self.productionStartedAt

    @property
    def completion_at(self) -> Optional[str]:
        return self.estimatedCompletion or self.end_date


class PrintingData(StageData):
    status: Optional[str] = None
    printStatus: Optional[str] = None
    printer_assigned: Optional[str] = None
    material: Optional[str] = None
    printMaterial: Optional[str] = None
    printSize: Optional[str] = None
    printQuantity: Optional[str] = None
    printNotes: Optional[str] = None
    printStartedAt: Optional[str] = None
    printCompletedAt: Optional[str] = None
    timeline: List[StatusEvent] = Field(default_factory=list)

    @property
    def effective_status(self) -> Optional[str]:
        return self.status or self.printStatus


class PaymentRecord(BaseModel):
    """Immutable ledger entry stored in ``accounts.payments``."""

    model_config = ConfigDict(extra="allow", frozen=True, coerce_numbers_to_str=True)

    id: Optional[str] = None
    amount: float
    mode: str = ""
    recorded_by: Optional[str] = None
    received_by: Optional[str] = None
    recorded_at: Optional[datetime] = None
    date: Optional[str] = None
    notes: Optional[str] = None

    @property
    def recorder(self) -> Optional[str]:
        return self.recorded_by or self.received_by


class AccountsData(StageData):
    invoice_no: Optional[str] = None
    invoiceNumber: Optional[str] = None
    invoiceDate: Optional[str] = None
    payment_status: Optional[str] = None
    status: Optional[str] = None
    amount_paid: Optional[float] = None
    amountPaid: Optional[float] = None
    total_amount: Optional[float] = None
    totalAmount: Optional[float] = None
    amount_remaining: Optional[float] = None
    paymentMethod: Optional[str] = None
    payments: List[PaymentRecord] = Field(default_factory=list)

    @property
    def invoice_number(self) -> Optional[str]:
        return self.invoice_no or self.invoiceNumber

    @property
    def effective_payment_status(self) -> Optional[str]:
        return self.payment_status or self.status


class Job(BaseModel):
    """A sign job tracked from intake to payment."""

    id: str
    job_code: str = ""
    status: str
    amount: float = 0.0
    branch_id: Optional[int] = None
    receptionist: Optional[ReceptionistData] = None
    salesperson: Optional[SalespersonData] = None
    design: Optional[DesignData] = None
    production: Optional[ProductionData] = None
    printing: Optional[PrintingData] = None
    accounts: AccountsData = Field(default_factory=AccountsData)
    version: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("status", mode="before")
    @classmethod
    def _status_as_string(cls, value: Any) -> Any:
        if value is None:
            return value
        return status_value(value)


class JobCreate(BaseModel):
    """Intake payload captured by the receptionist."""

    customer_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    shop_name: Optional[str] = None
    street_address: Optional[str] = None
    street_number: Optional[str] = None
    town: Optional[str] = None
    postcode: Optional[str] = None
    job_details: Optional[str] = None
    priority: Optional[str] = None
    date_of_visit: Optional[str] = None
    time_of_visit: Optional[str] = None
    date_of_appointment: Optional[str] = None
    assigned_salesperson: Optional[str] = None
    amount: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    branch_id: Optional[int] = None
    created_by: Optional[str] = None


class StageUpdate(BaseModel):
    """Fields merged into a department blob."""

    fields: Dict[str, Any] = Field(default_factory=dict)
    updated_by: Optional[str] = None


class SalespersonAssignment(BaseModel):
    salesperson: str = Field(..., min_length=1)
    appointment_date: str = Field(..., min_length=1)
    updated_by: Optional[str] = None


class AmountUpdate(BaseModel):
    amount: float = Field(..., ge=0, allow_inf_nan=False)


class PaymentCreate(BaseModel):
    """Payment captured by accounts."""

    amount: float = Field(..., gt=0, allow_inf_nan=False)
    mode: str = Field(..., min_length=1)
    recorded_by: str = Field(..., min_length=1)
    notes: Optional[str] = None
    expected_version: Optional[int] = None


class TransitionRequest(BaseModel):
    status: str = Field(..., min_length=1)
    updated_by: Optional[str] = None
    expected_version: Optional[int] = None


class WorkflowValidation(BaseModel):
    """Outcome of checking a requested status change."""

    allowed: bool
    reason: Optional[str] = None
    required_payment_status: Optional[List[PaymentStatus]] = None


class NextStatusOption(BaseModel):
    status: str
    label: str
    blocked: bool
    reason: Optional[str] = None


class TransitionResult(BaseModel):
    success: bool
    job: Optional[Job] = None
    error: Optional[str] = None
    code: Optional[str] = None
    validation: Optional[WorkflowValidation] = None


class PaymentResult(BaseModel):
    success: bool
    new_payment_status: Optional[PaymentStatus] = None
    payment: Optional[PaymentRecord] = None
    job: Optional[Job] = None
    error: Optional[str] = None
    code: Optional[str] = None


class PaymentSummary(BaseModel):
    payment_status: PaymentStatus
    payment_status_label: str
    total_amount: float
    amount_paid: float
    amount_remaining: float
    payments: List[PaymentRecord] = Field(default_factory=list)


class TimelineItem(BaseModel):
    """One milestone in a department timeline."""

    label: str
    timestamp: Optional[str] = None
    completed: bool = False
    current: bool = False


class StageTimeline(BaseModel):
    department: str
    title: str
    items: List[TimelineItem]
    progress: int = Field(..., ge=0, le=100)


class JobDashboard(BaseModel):
    """Per-job view combining timelines, payment state and next actions."""

    job_id: str
    job_code: str
    status: str
    status_label: str
    payment: PaymentSummary
    stages: List[StageTimeline]
    overall_progress: int = Field(..., ge=0, le=100)
    next_statuses: List[NextStatusOption]


class StatusChange(BaseModel):
    """Committed status transition kept in the job history."""

    id: str
    job_id: str
    from_status: str
    to_status: str
    updated_by: Optional[str] = None
    changed_at: datetime = Field(default_factory=utcnow)


class ActivityEntry(BaseModel):
    """Log entry describing recent job events."""

    id: str
    message: str
    created_at: datetime
    category: str


class JobPage(BaseModel):
    items: List[Job]
    page: int
    limit: int
    total: int


class DashboardSummary(BaseModel):
    """Aggregated counters consumed by the admin dashboard."""

    total_jobs: int
    active_jobs: int
    jobs_by_status: Dict[str, int]
    jobs_by_payment_status: Dict[str, int]
    total_collected: float
    outstanding_balance: float
    recent_activity: List[ActivityEntry]
