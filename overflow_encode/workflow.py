"""
One encode request end to end: upload, route, encode and, on overflow,
the round trip through the backup region.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .assets import Asset, AssetCreationOptions
from .cleanup import CleanupReport, cleanup_backup
from .config import Config
from .errors import InputError, JobTerminalNonSuccess, PartialCopyFailure
from .job_tracker import Job, JobState
from .logging_config import log_route_decision
from .orchestrator import JobOrchestrator
from .queue_inspector import pending_count
from .regions import CopyDirection, Regions
from .replicator import AssetReplicator, ReplicationResult
from .router import Route, choose

logger = logging.getLogger(__name__)


def resolve_upload_path(upload_path: str) -> Path:
    try:
        path = Path(upload_path).expanduser().resolve()
    except (OSError, RuntimeError) as e:
        raise InputError(f"Cannot resolve {upload_path}: {e}") from e
    if not path.is_file():
        raise InputError(f"File does not exist: {path}")
    return path


@dataclass
class EncodeOutcome:
    route: Route
    pending: int
    source_asset: Asset
    job: Job
    output_asset: Optional[Asset] = None
    copy_out: Optional[ReplicationResult] = None
    copy_back: Optional[ReplicationResult] = None
    cleanup: Optional[CleanupReport] = None

    @property
    def succeeded(self) -> bool:
        return self.job.state is JobState.FINISHED


class EncodeWorkflow:
    def __init__(self, config: Config, regions: Regions, orchestrator: Optional[JobOrchestrator] = None,
                 replicator: Optional[AssetReplicator] = None):
        self.config = config
        self.regions = regions
        self.orchestrator = orchestrator or JobOrchestrator(
            config.encoder_name,
            poll_seconds=config.job_poll_seconds,
            timeout_seconds=config.job_timeout_seconds,
        )
        self.replicator = replicator or AssetReplicator(
            regions,
            manifest_extension=config.manifest_extension,
            primary_fallback=config.primary_file_fallback,
            max_workers=config.copy_max_workers,
            skip_existing=config.copy_skip_existing,
        )

    def _check_copy(self, result: ReplicationResult, direction: CopyDirection) -> None:
        status = result.transfer
        if status.files_skipped:
            logger.warning(f"Copy {direction.value} skipped {status.files_skipped} files")
        if status.files_failed:
            for name, reason in status.failures:
                logger.error(f"Copy {direction.value} failed for {name}: {reason}")
            if self.config.fail_on_partial_copy:
                raise PartialCopyFailure(status)
            logger.warning(f"Continuing with {status.files_failed} files missing from {result.asset.asset_id}")

    def run(self, upload_path: str, cancel_event: Optional[threading.Event] = None) -> EncodeOutcome:
        path = resolve_upload_path(upload_path)
        primary, backup = self.regions.primary, self.regions.backup
        profile = self.config.encode_profile

        # Uploads always land in the primary region, which also serves the results
        asset = primary.assets.upload_single_file(str(path), AssetCreationOptions.NONE)

        pending = pending_count(primary)
        route = choose(pending, self.config.queue_threshold)
        log_route_decision(logger, pending, self.config.queue_threshold, route.value)

        if route is Route.PRIMARY:
            logger.info(f"starting encoding of {path}, primary region")
            job = self.orchestrator.submit(asset, profile, primary, cancel_event=cancel_event)
            output = primary.assets.get(job.first_output_asset_id) if job.first_output_asset_id else None
            return EncodeOutcome(route=route, pending=pending, source_asset=asset, job=job, output_asset=output)

        logger.info(f"copying {path} to the backup region")
        copy_out = self.replicator.copy(asset, CopyDirection.PRIMARY_TO_BACKUP)
        self._check_copy(copy_out, CopyDirection.PRIMARY_TO_BACKUP)

        logger.info(f"starting encoding of {path}, backup region")
        job = self.orchestrator.submit(copy_out.asset, profile, backup, cancel_event=cancel_event)
        if job.state is not JobState.FINISHED:
            if self.config.abort_copy_back_on_job_failure:
                raise JobTerminalNonSuccess(job)
            logger.warning(f"Backup job {job.job_id} ended {job.state.value}; copying its output back anyway")

        logger.info("copying encoded video files back to the primary region")
        backup_output = backup.assets.get(job.first_output_asset_id)
        copy_back = self.replicator.copy(backup_output, CopyDirection.BACKUP_TO_PRIMARY)
        self._check_copy(copy_back, CopyDirection.BACKUP_TO_PRIMARY)

        report = None
        if self.config.delete_backup_artifacts and job.state is JobState.FINISHED:
            report = cleanup_backup(backup, copy_out.asset, job)

        return EncodeOutcome(
            route=route,
            pending=pending,
            source_asset=asset,
            job=job,
            output_asset=copy_back.asset,
            copy_out=copy_out,
            copy_back=copy_back,
            cleanup=report,
        )
