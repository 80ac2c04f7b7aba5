from .mirror_reconciler import mirror_reconciler_task

__all__ = [
    "mirror_reconciler_task",
]
