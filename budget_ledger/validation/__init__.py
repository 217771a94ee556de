"""Write-time validation package."""

from budget_ledger.validation.validator import ValidationFailedError, WriteValidator

__all__ = ["ValidationFailedError", "WriteValidator"]
