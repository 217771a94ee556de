"""
Settings Registry Editing

The registry is loaded wholesale, edited locally, and saved wholesale.
SettingsEditor holds the local working copy between load and save.

DESIGN DECISION: Staff entries are addressed by a stable surrogate ID,
never by list position. Two operators each holding an editor on the same
roster can no longer delete "entry #3" and hit different people because
the list shifted underneath one of them. (Saving is still last-write-wins.)

Category and proposer keys are renamed in place, keeping mapping order,
since order is display order.
"""

from decimal import Decimal
from typing import Optional

from budget_ledger.models.records import SettingsRegistry, StaffEntry


class RegistryEditError(ValueError):
    """An edit referenced a key or entry that does not exist, or collides."""
    pass


def _rename_key(mapping: dict, old: str, new: str) -> dict:
    """Copy of `mapping` with `old` renamed to `new`, order preserved."""
    if old not in mapping:
        raise RegistryEditError(f"No such key: {old}")
    if new != old and new in mapping:
        raise RegistryEditError(f"Key already exists: {new}")
    return {(new if k == old else k): v for k, v in mapping.items()}


class SettingsEditor:
    """
    Working copy of a SettingsRegistry.

    Usage:
        editor = SettingsEditor(await engine.load_settings())
        editor.set_category("Roads", Decimal("500000"))
        staff_id = editor.add_staff("Chen")
        await engine.save_settings(editor.registry)
    """

    def __init__(self, registry: Optional[SettingsRegistry] = None):
        self._registry = (registry or SettingsRegistry()).model_copy(deep=True)

    @property
    def registry(self) -> SettingsRegistry:
        """Snapshot of the edited registry."""
        return self._registry.model_copy(deep=True)

    # ---- categories -----------------------------------------------------

    def set_category(self, name: str, ceiling: Decimal) -> None:
        """Add a category or change its ceiling."""
        name = name.strip()
        if not name:
            raise RegistryEditError("Category name is required")
        self._registry.categories[name] = Decimal(ceiling)

    def rename_category(self, old: str, new: str) -> None:
        """
        Rename a category key.

        Existing project lines keep the old name; they show up as orphans
        in the analysis until edited.
        """
        self._registry.categories = _rename_key(self._registry.categories, old, new.strip())

    def remove_category(self, name: str) -> None:
        if self._registry.categories.pop(name, None) is None:
            raise RegistryEditError(f"No such category: {name}")

    # ---- proposers ------------------------------------------------------

    def set_suggester(self, name: str, quota: Decimal) -> None:
        """Add a proposer or change their quota."""
        name = name.strip()
        if not name:
            raise RegistryEditError("Proposer name is required")
        self._registry.suggesters[name] = Decimal(quota)

    def rename_suggester(self, old: str, new: str) -> None:
        self._registry.suggesters = _rename_key(self._registry.suggesters, old, new.strip())

    def remove_suggester(self, name: str) -> None:
        if self._registry.suggesters.pop(name, None) is None:
            raise RegistryEditError(f"No such proposer: {name}")

    # ---- staff ----------------------------------------------------------

    def _staff_index(self, staff_id: str) -> int:
        for idx, entry in enumerate(self._registry.staff):
            if entry.id == staff_id:
                return idx
        raise RegistryEditError(f"No such staff entry: {staff_id}")

    def add_staff(self, name: str) -> str:
        """Append a roster entry. Duplicate names are allowed. Returns its ID."""
        entry = StaffEntry(name=name)
        self._registry.staff.append(entry)
        return entry.id

    def rename_staff(self, staff_id: str, name: str) -> None:
        idx = self._staff_index(staff_id)
        self._registry.staff[idx] = StaffEntry(id=staff_id, name=name)

    def remove_staff(self, staff_id: str) -> None:
        del self._registry.staff[self._staff_index(staff_id)]
