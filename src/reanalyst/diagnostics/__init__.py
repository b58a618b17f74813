"""Diagnostics module - reconciliation, published state and quick fixes."""

from reanalyst.diagnostics.actions import ActionsIndex, apply_fix
from reanalyst.diagnostics.reconciler import (
    REMOVE_UNUSED_TITLE,
    Reconciliation,
    is_removable,
    is_unused_argument,
    reconcile,
)
from reanalyst.diagnostics.state import DiagnosticsState

__all__ = [
    "ActionsIndex",
    "DiagnosticsState",
    "REMOVE_UNUSED_TITLE",
    "Reconciliation",
    "apply_fix",
    "is_removable",
    "is_unused_argument",
    "reconcile",
]
