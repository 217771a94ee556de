"""Reconciliation engine package: cascading writes behind a single-writer queue."""

from budget_ledger.engine.reconciler import (
    BatchSubmissionError,
    BulkAssignmentError,
    ReconciliationEngine,
    ReconciliationError,
    create_engine,
)
from budget_ledger.engine.writer import SerialWriter

__all__ = [
    "BatchSubmissionError",
    "BulkAssignmentError",
    "ReconciliationEngine",
    "ReconciliationError",
    "SerialWriter",
    "create_engine",
]
