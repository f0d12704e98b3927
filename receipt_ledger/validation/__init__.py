"""Submission validation package."""

from receipt_ledger.validation.submission import (
    REQUIRED_FIELDS,
    BuildRequest,
    SubmissionValidator,
)

__all__ = ["REQUIRED_FIELDS", "BuildRequest", "SubmissionValidator"]
