"""Payment status derivation and ledger helpers."""
from __future__ import annotations

from typing import Optional
from uuid import uuid4

from .catalog import PaymentStatus, payment_status_label
from .models import AccountsData, Job, PaymentRecord, PaymentSummary, utcnow


def calculate_payment_status(total_amount: float, amount_paid: float) -> PaymentStatus:
    """Map the agreed total and the amount paid so far onto a payment status.

    Total for every input: nothing paid (or a negative amount) is pending, and
    paying at least the total is done, including when the total is still 0.
    """

    if amount_paid <= 0:
        return PaymentStatus.PAYMENT_PENDING
    if amount_paid >= total_amount:
        return PaymentStatus.PAYMENT_DONE
    return PaymentStatus.PARTIALLY_PAID


def resolve_total_amount(job: Job) -> float:
    accounts = job.accounts
    for candidate in (job.amount, accounts.total_amount, accounts.totalAmount):
        if candidate:
            return float(candidate)
    return 0.0


def resolve_amount_paid(accounts: AccountsData) -> float:
    for candidate in (accounts.amount_paid, accounts.amountPaid):
        if candidate:
            return float(candidate)
    return 0.0


def payment_status_for(job: Job) -> PaymentStatus:
    return calculate_payment_status(resolve_total_amount(job), resolve_amount_paid(job.accounts))


def new_payment_record(
    amount: float,
    mode: str,
    recorded_by: str,
    notes: Optional[str] = None,
) -> PaymentRecord:
    return PaymentRecord(
        id=f"pay_{uuid4().hex[:12]}",
        amount=amount,
        mode=mode,
        recorded_by=recorded_by,
        recorded_at=utcnow(),
        notes=notes,
    )


def apply_payment(accounts: AccountsData, record: PaymentRecord, total_amount: float) -> AccountsData:
    """Return a new accounts blob with ``record`` appended and totals refreshed."""

    amount_paid = resolve_amount_paid(accounts) + record.amount
    payment_status = calculate_payment_status(total_amount, amount_paid)
    return accounts.model_copy(
        update={
            "payments": [*accounts.payments, record],
            "amount_paid": amount_paid,
            "payment_status": payment_status.value,
            "total_amount": total_amount,
            "amount_remaining": max(total_amount - amount_paid, 0.0),
        }
    )


def refresh_totals(accounts: AccountsData, total_amount: float) -> AccountsData:
    """Recompute the stored payment fields after the agreed total changed."""

    amount_paid = resolve_amount_paid(accounts)
    return accounts.model_copy(
        update={
            "amount_paid": amount_paid,
            "payment_status": calculate_payment_status(total_amount, amount_paid).value,
            "total_amount": total_amount,
            "amount_remaining": max(total_amount - amount_paid, 0.0),
        }
    )


def payment_summary(job: Job) -> PaymentSummary:
    total_amount = resolve_total_amount(job)
    amount_paid = resolve_amount_paid(job.accounts)
    status = calculate_payment_status(total_amount, amount_paid)
    return PaymentSummary(
        payment_status=status,
        payment_status_label=payment_status_label(status),
        total_amount=total_amount,
        amount_paid=amount_paid,
        amount_remaining=max(total_amount - amount_paid, 0.0),
        payments=list(job.accounts.payments),
    )
