"""Structured errors raised by the job store and services."""
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class ErrorCode(str, Enum):
    """Machine readable failure categories."""

    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    WRITE_CONFLICT = "WRITE_CONFLICT"
    LEDGER_VIOLATION = "LEDGER_VIOLATION"
    INVALID_STAGE = "INVALID_STAGE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    JOB_FINALIZED = "JOB_FINALIZED"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"


class WorkflowError(Exception):
    """Base exception carrying an error code and a user facing message."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        original_error: Optional[Exception] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {"error": {"code": self.code.value, "message": self.message}}


class JobNotFoundError(WorkflowError, KeyError):
    """Raised when a job id is not present in the store."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(ErrorCode.JOB_NOT_FOUND, "Job not found")


class WriteConflictError(WorkflowError):
    """A compare-and-swap commit observed a different job state."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.WRITE_CONFLICT, message)


class LedgerViolationError(WorkflowError):
    """An update tried to rewrite the append-only payment ledger."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.LEDGER_VIOLATION, message)


class InvalidStageError(WorkflowError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_STAGE, message)


class InvalidAmountError(WorkflowError):
    """A payment or total that is not a finite, non-negative number."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_AMOUNT, message)


class JobFinalizedError(WorkflowError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.JOB_FINALIZED, message)
