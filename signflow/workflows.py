"""Transition graph and payment gated validation for job status changes."""
from __future__ import annotations

import math
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from .catalog import (
    JobStatus,
    PaymentStatus,
    PaymentStatusLike,
    StatusLike,
    payment_status_label,
    status_label,
    status_value,
)
from .models import NextStatusOption, WorkflowValidation


STATUS_TRANSITIONS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        JobStatus.RECEIVED.value: (JobStatus.SALESPERSON_ASSIGNED.value,),
        JobStatus.SALESPERSON_ASSIGNED.value: (JobStatus.SITE_VISITED.value,),
        JobStatus.SITE_VISITED.value: (JobStatus.DESIGN_STARTED.value,),
        JobStatus.DESIGN_STARTED.value: (JobStatus.DESIGN_IN_REVIEW.value,),
        # review can send the job back to the designer for changes
        JobStatus.DESIGN_IN_REVIEW.value: (
            JobStatus.DESIGN_APPROVED.value,
            JobStatus.DESIGN_STARTED.value,
        ),
        JobStatus.DESIGN_APPROVED.value: (JobStatus.PRODUCTION_STARTED.value,),
        JobStatus.PRODUCTION_STARTED.value: (JobStatus.PRINTING_QUEUED.value,),
        JobStatus.PRINTING_QUEUED.value: (JobStatus.PRINTING_STARTED.value,),
        JobStatus.PRINTING_STARTED.value: (JobStatus.PRINTING_COMPLETED.value,),
        JobStatus.PRINTING_COMPLETED.value: (JobStatus.FRAMING_STARTED.value,),
        JobStatus.FRAMING_STARTED.value: (JobStatus.PRODUCTION_COMPLETED.value,),
        JobStatus.PRODUCTION_COMPLETED.value: (JobStatus.OUT_FOR_DELIVERY.value,),
        JobStatus.OUT_FOR_DELIVERY.value: (),
    }
)

PAYMENT_PRECONDITIONS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        JobStatus.PRODUCTION_STARTED.value: (
            PaymentStatus.PARTIALLY_PAID.value,
            PaymentStatus.PAYMENT_DONE.value,
        ),
        JobStatus.OUT_FOR_DELIVERY.value: (PaymentStatus.PAYMENT_DONE.value,),
    }
)

PAYMENT_STATUS_RANK: Mapping[str, int] = MappingProxyType(
    {
        PaymentStatus.PAYMENT_PENDING.value: 0,
        PaymentStatus.PARTIALLY_PAID.value: 1,
        PaymentStatus.PAYMENT_DONE.value: 2,
    }
)


def allowed_next_statuses(current: StatusLike) -> Tuple[str, ...]:
    """Return the legal next statuses; unknown and terminal statuses have none."""

    return STATUS_TRANSITIONS.get(status_value(current), ())


def is_terminal(status: StatusLike) -> bool:
    value = status_value(status)
    return value in STATUS_TRANSITIONS and not STATUS_TRANSITIONS[value]


def payment_status_rank(payment_status: PaymentStatusLike) -> int:
    return PAYMENT_STATUS_RANK.get(status_value(payment_status), 0)


def can_transition_to(
    current: StatusLike,
    target: StatusLike,
    payment_status: PaymentStatusLike = PaymentStatus.PAYMENT_PENDING,
) -> WorkflowValidation:
    """Decide whether ``current`` may move to ``target`` given the payment state."""

    current_value = status_value(current)
    target_value = status_value(target)
    payment_value = status_value(payment_status)
    allowed_next = allowed_next_statuses(current_value)

    if target_value not in allowed_next:
        alternatives = ", ".join(status_label(status) for status in allowed_next) or "none"
        return WorkflowValidation(
            allowed=False,
            reason=(
                f'Cannot transition from "{status_label(current_value)}" to '
                f'"{status_label(target_value)}". Allowed next: {alternatives}'
            ),
        )

    required_payment = PAYMENT_PRECONDITIONS.get(target_value)
    if required_payment and payment_value not in required_payment:
        accepted = " or ".join(payment_status_label(status) for status in required_payment)
        return WorkflowValidation(
            allowed=False,
            reason=(
                f'"{status_label(target_value)}" requires payment status: {accepted}. '
                f"Current: {payment_status_label(payment_value)}"
            ),
            required_payment_status=[PaymentStatus(status) for status in required_payment],
        )

    return WorkflowValidation(allowed=True)


def get_next_allowed_statuses(
    current: StatusLike,
    payment_status: PaymentStatusLike = PaymentStatus.PAYMENT_PENDING,
) -> List[NextStatusOption]:
    """Annotate every reachable status with whether it is currently blocked."""

    options: List[NextStatusOption] = []
    for status in allowed_next_statuses(current):
        validation = can_transition_to(current, status, payment_status)
        options.append(
            NextStatusOption(
                status=status,
                label=status_label(status),
                blocked=not validation.allowed,
                reason=validation.reason,
            )
        )
    return options


def transition_table() -> Dict[str, Dict[str, List[str]]]:
    """Plain dict view of the graph and preconditions for API consumers."""

    return {
        "transitions": {status: list(targets) for status, targets in STATUS_TRANSITIONS.items()},
        "payment_preconditions": {
            status: list(required) for status, required in PAYMENT_PRECONDITIONS.items()
        },
    }


def workflow_progress(status: StatusLike) -> int:
    """Position of ``status`` along the hand-off order as a 0..100 percentage."""

    order = [member.value for member in JobStatus]
    value = status_value(status)
    if value not in order:
        return 0
    return int(math.floor(100 * order.index(value) / (len(order) - 1) + 0.5))
