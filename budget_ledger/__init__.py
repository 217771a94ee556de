"""
Construction Budget Ledger - Source Package

Reconciles construction projects, split into per-category budget lines,
against procurement cases (tenders) and the payments drawn on them.

DESIGN PRINCIPLES:
1. Stored records stay flat; every total is derived on read
2. Cross-collection references are kept consistent by the engine alone
3. Validate before writing, fail visibly, never half-succeed silently
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Construction Budget Ledger Team"
