from .archival_sync_service import (
    ArchivalSyncService,
    build_snapshot,
    get_archival_sync_service,
)
from .archive_query_service import ArchiveQueryService, get_archive_query_service

__all__ = [
    "ArchivalSyncService",
    "ArchiveQueryService",
    "build_snapshot",
    "get_archival_sync_service",
    "get_archive_query_service",
]
