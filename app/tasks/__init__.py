from .cron import *

__all__ = [
    # Scheduled/Cron Tasks
    "mirror_reconciler_task",
]
