"""
Shared exception definitions for all stores.

Hierarchy:
- StoreError (base for all store exceptions)
  - GridStoreError (cell/grid errors)
  - JobStoreError (conquest job errors)
"""


# =========================
# Base exception
# =========================

class StoreError(Exception):
    """Base exception for all store-related errors."""
    retryable: bool = True


class UnexpectedResult(StoreError):
    retryable = True
    # the "how did this happen" exception, e.g. a row vanishing mid-transaction


# =========================
# GridStore exceptions
# =========================

class GridStoreError(StoreError):
    """Base exception for grid store errors."""
    retryable = True


# =========================
# JobStore exceptions
# =========================

class JobStoreError(StoreError):
    """Base exception for job store errors."""
    retryable = True


class JobNotFound(JobStoreError):
    retryable = False

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class InvalidJobTransition(JobStoreError):
    """An illegal status change was requested. This is a programming error."""
    retryable = False

    def __init__(self, job_id: str, current_status: str, target_status: str):
        super().__init__(f"Job {job_id}: cannot transition from {current_status} to {target_status}")
        self.job_id = job_id
        self.current_status = current_status
        self.target_status = target_status
