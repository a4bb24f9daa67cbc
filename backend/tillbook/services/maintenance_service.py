# Overview: Scheduled housekeeping for the invoice file bucket.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from flask import current_app

from ..time_utils import utcnow, to_utc_z
from .storage_service import LocalBucket, StorageError, get_bucket


MSG_EMPTY_BUCKET = "No files to cleanup"
MSG_NOTHING_OLD = "No old files to cleanup"
MSG_DONE = "Cleanup completed"


@dataclass(frozen=True)
class DeleteOutcome:
    file_name: str
    success: bool
    error: str | None = None

    def to_dict(self) -> dict:
        data = {"fileName": self.file_name, "success": self.success}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class CleanupResult:
    message: str
    total_files: int
    cutoff: datetime
    results: list[DeleteOutcome] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "deletedCount": self.deleted_count,
            "failedCount": self.failed_count,
            "totalFilesInBucket": self.total_files,
            "cutoffDate": to_utc_z(self.cutoff),
            "results": [r.to_dict() for r in self.results],
        }


def cleanup_old_files(
    *,
    bucket: LocalBucket | None = None,
    retention_days: int | None = None,
    now: datetime | None = None,
) -> CleanupResult:
    """
    Delete bucket objects created before now - retention_days.

    One failed deletion does not stop the run; each outcome is reported
    and failures are left for the next run. Raises StorageError only when
    the bucket cannot be listed at all.
    """
    logger = current_app.logger
    if retention_days is None:
        retention_days = current_app.config.get("FILE_RETENTION_DAYS", 14)
    if retention_days < 0:
        raise ValueError("retention_days must be >= 0")

    bucket = bucket or get_bucket()
    cutoff = (now or utcnow()) - timedelta(days=retention_days)
    logger.info("Deleting files in %s older than %s", bucket.name, to_utc_z(cutoff))

    try:
        files = bucket.list_files()
    except StorageError:
        logger.exception("Error listing files in %s", bucket.name)
        raise

    if not files:
        logger.info("No files found in %s", bucket.name)
        return CleanupResult(message=MSG_EMPTY_BUCKET, total_files=0, cutoff=cutoff)

    old_files = [f for f in files if f.created_at < cutoff]
    logger.info("Found %d of %d files to delete", len(old_files), len(files))
    if not old_files:
        return CleanupResult(message=MSG_NOTHING_OLD, total_files=len(files), cutoff=cutoff)

    results = []
    for stored in old_files:
        try:
            bucket.remove(stored.name)
        except Exception as exc:
            logger.error("Error deleting %s: %s", stored.name, exc)
            results.append(DeleteOutcome(stored.name, False, str(exc) or "Unknown error"))
        else:
            results.append(DeleteOutcome(stored.name, True))

    result = CleanupResult(message=MSG_DONE, total_files=len(files), cutoff=cutoff, results=results)
    logger.info("Cleanup complete. Deleted: %d, Failed: %d", result.deleted_count, result.failed_count)
    return result
