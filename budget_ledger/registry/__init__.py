"""Settings registry editing package."""

from budget_ledger.registry.editor import RegistryEditError, SettingsEditor

__all__ = ["RegistryEditError", "SettingsEditor"]
