"""
Best-effort removal of backup-region artifacts after a round trip.

Each artifact is deleted independently; a failure is logged and recorded in
the returned report and never stops the remaining deletions.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List

from .assets import Asset
from .errors import CleanupError
from .job_tracker import Job
from .logging_config import log_cleanup

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    region: str
    started_at: str = ""
    finished_at: str = ""
    deleted: List[str] = field(default_factory=list)
    errors: List[CleanupError] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.errors


def _attempt(report: CleanupReport, resource: str, resource_id: str, delete: Callable[[str], None]) -> None:
    try:
        delete(resource_id)
    except Exception as e:  # any failure stays with this resource
        error = CleanupError(resource, resource_id, e)
        report.errors.append(error)
        log_cleanup(logger, report.region, resource, resource_id, False, str(e))
        return
    report.deleted.append(f"{resource}:{resource_id}")
    log_cleanup(logger, report.region, resource, resource_id, True)


def cleanup_backup(region, backup_asset: Asset, job: Job) -> CleanupReport:
    """Delete the copied-in asset, the job's first output asset and the job"""
    report = CleanupReport(region=region.name, started_at=datetime.now(timezone.utc).isoformat())

    _attempt(report, "asset", backup_asset.asset_id, region.assets.delete)
    output_id = job.first_output_asset_id
    if output_id:
        _attempt(report, "output asset", output_id, region.assets.delete)
    _attempt(report, "job", job.job_id, region.jobs.delete)

    report.finished_at = datetime.now(timezone.utc).isoformat()
    if report.errors:
        logger.warning(f"Cleanup of {region.name} left {len(report.errors)} artifacts behind")
    return report
