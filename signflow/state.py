"""In-memory job store backing the SignFlow API.

Every mutation runs under one lock and re-reads the job inside it, so two
concurrent commits against the same job never lose each other's update.
Readers always receive deep copies; a snapshot can be inspected freely without
affecting the stored job.

An optional commit hook (the database mirror) is invoked inside the lock
before the in-memory swap. If it raises, the store is left untouched.
"""
from __future__ import annotations

import re
from collections import Counter, deque
from threading import Lock
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from .catalog import PaymentStatusLike, StatusLike, status_value
from .errors import JobNotFoundError, WriteConflictError
from .models import ActivityEntry, Job, PaymentRecord, StatusChange, utcnow
from .payments import apply_payment, payment_status_for, resolve_total_amount


CommitHook = Callable[[Job, Optional[StatusChange]], None]

_JOB_CODE = re.compile(r"JOB-(\d+)")


class State:
    """Stores jobs, their status history and the activity feed."""

    def __init__(self, on_commit: Optional[CommitHook] = None) -> None:
        self._jobs: Dict[str, Job] = {}
        self._status_changes: Dict[str, List[StatusChange]] = {}
        self._activity: Deque[ActivityEntry] = deque(maxlen=50)
        self._last_job_number = 0
        self._on_commit = on_commit
        self._lock = Lock()
        self._seeded = False

    @property
    def seeded(self) -> bool:
        return self._seeded

    def attach_commit_hook(self, on_commit: Optional[CommitHook]) -> None:
        with self._lock:
            self._on_commit = on_commit

    # Job operations -------------------------------------------------------
    def next_job_code(self) -> str:
        with self._lock:
            self._last_job_number += 1
            return f"JOB-{self._last_job_number:05d}"

    def add_job(self, job: Job, change: Optional[StatusChange] = None) -> Job:
        """Store a new job; ``change`` records a status it reached during intake."""

        with self._lock:
            self._publish(job, change)
            self._store(job)
            self._status_changes[job.id] = [change] if change is not None else []
        return job

    def load_job(self, job: Job, changes: Iterable[StatusChange] = ()) -> None:
        """Register a job read back from the database without re-publishing it."""

        with self._lock:
            self._store(job)
            self._status_changes[job.id] = list(changes)

    def reserve_job_code(self, job_code: Optional[str]) -> None:
        """Keep ``job_code`` out of circulation without storing a job."""

        with self._lock:
            self._reserve(job_code)

    def get_job(self, job_id: str) -> Job:
        with self._lock:
            return self._get(job_id).model_copy(deep=True)

    def list_jobs(
        self,
        statuses: Optional[Iterable[StatusLike]] = None,
        payment_status: Optional[PaymentStatusLike] = None,
    ) -> List[Job]:
        """Return matching jobs, newest first."""

        wanted = {status_value(status) for status in statuses} if statuses else None
        wanted_payment = status_value(payment_status) if payment_status else None
        with self._lock:
            jobs = [job.model_copy(deep=True) for job in self._jobs.values()]
        if wanted is not None:
            jobs = [job for job in jobs if job.status in wanted]
        if wanted_payment is not None:
            jobs = [job for job in jobs if payment_status_for(job).value == wanted_payment]
        return sorted(jobs, key=lambda job: (job.created_at, job.job_code), reverse=True)

    def commit_status(
        self,
        job_id: str,
        new_status: StatusLike,
        expected_status: StatusLike,
        expected_version: Optional[int] = None,
        updated_by: Optional[str] = None,
        changes: Optional[Dict[str, object]] = None,
    ) -> Job:
        """Compare-and-swap the job status and append the history entry.

        Fails when the stored status is no longer the one the caller validated
        against, or when ``expected_version`` is given and differs. ``changes``
        are extra field updates committed together with the status.
        """

        with self._lock:
            job = self._get(job_id)
            if job.status != status_value(expected_status):
                raise WriteConflictError(
                    f"Job status changed to '{job.status}' while the transition was being applied"
                )
            self._check_version(job, expected_version)
            update = dict(changes or {})
            update.update(
                {
                    "status": status_value(new_status),
                    "version": job.version + 1,
                    "updated_at": utcnow(),
                }
            )
            updated = job.model_copy(update=update)
            change = StatusChange(
                id=str(uuid4()),
                job_id=job_id,
                from_status=job.status,
                to_status=updated.status,
                updated_by=updated_by,
                changed_at=updated.updated_at,
            )
            self._publish(updated, change)
            self._jobs[job_id] = updated
            self._status_changes.setdefault(job_id, []).append(change)
            return updated.model_copy(deep=True)

    def append_payment(
        self,
        job_id: str,
        record: PaymentRecord,
        expected_version: Optional[int] = None,
    ) -> Job:
        """Atomically append ``record`` to the ledger and bump the paid total."""

        with self._lock:
            job = self._get(job_id)
            self._check_version(job, expected_version)
            accounts = apply_payment(job.accounts, record, resolve_total_amount(job))
            updated = job.model_copy(
                update={
                    "accounts": accounts,
                    "version": job.version + 1,
                    "updated_at": utcnow(),
                }
            )
            self._publish(updated, None)
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    def update_job(
        self,
        job_id: str,
        mutate: Callable[[Job], Dict[str, object]],
        expected_version: Optional[int] = None,
    ) -> Job:
        """Apply the field updates returned by ``mutate`` to the current job.

        ``mutate`` runs under the store lock against a private copy and must
        not call back into the store. Raising from it aborts the update.
        """

        with self._lock:
            job = self._get(job_id)
            self._check_version(job, expected_version)
            update = dict(mutate(job.model_copy(deep=True)))
            update.update({"version": job.version + 1, "updated_at": utcnow()})
            updated = job.model_copy(update=update)
            self._publish(updated, None)
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    # Status history -------------------------------------------------------
    def list_status_changes(self, job_id: str) -> List[StatusChange]:
        with self._lock:
            self._get(job_id)
            return list(self._status_changes.get(job_id, []))

    # Activity -------------------------------------------------------------
    def record_activity(self, entry: ActivityEntry) -> None:
        with self._lock:
            self._activity.appendleft(entry)

    def record_activity_message(self, category: str, message: str) -> None:
        entry = ActivityEntry(
            id=str(uuid4()),
            message=message,
            category=category,
            created_at=utcnow(),
        )
        self.record_activity(entry)

    def recent_activity(self, limit: int = 10) -> List[ActivityEntry]:
        with self._lock:
            return list(self._activity)[:limit]

    # Aggregates -----------------------------------------------------------
    def status_counts(self) -> Tuple[Counter, Counter]:
        jobs = self.list_jobs()
        by_status = Counter(job.status for job in jobs)
        by_payment = Counter(payment_status_for(job).value for job in jobs)
        return by_status, by_payment

    # Seed helpers ---------------------------------------------------------
    def mark_seeded(self) -> None:
        self._seeded = True

    # Internal utilities ---------------------------------------------------
    def _get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _store(self, job: Job) -> None:
        self._jobs[job.id] = job.model_copy(deep=True)
        self._reserve(job.job_code)

    def _reserve(self, job_code: Optional[str]) -> None:
        match = _JOB_CODE.fullmatch(job_code or "")
        if match:
            self._last_job_number = max(self._last_job_number, int(match.group(1)))

    def _publish(self, job: Job, change: Optional[StatusChange]) -> None:
        if self._on_commit is not None:
            self._on_commit(job, change)

    @staticmethod
    def _check_version(job: Job, expected_version: Optional[int]) -> None:
        if expected_version is not None and job.version != expected_version:
            raise WriteConflictError(
                f"Job was modified concurrently (expected version {expected_version}, found {job.version})"
            )


state = State()
"""Module-level singleton used by the API."""
