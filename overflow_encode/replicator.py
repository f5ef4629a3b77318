"""
Asset replication between the primary and backup regions.

A copy creates a fresh asset shell in the destination region, copies the
source container server-side, then registers whatever actually landed in the
destination container as the new asset's files.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .assets import Asset, AssetFile
from .errors import PrimaryFileNotFound
from .logging_config import log_transfer
from .regions import CopyDirection, Regions
from .storage import ProgressRecorder, TransferStatus

logger = logging.getLogger(__name__)


@dataclass
class ReplicationResult:
    asset: Asset
    transfer: TransferStatus

    @property
    def complete(self) -> bool:
        return self.transfer.complete


def designate_primary(files: List[AssetFile], previous_primary: str, manifest_extension: str = ".ism",
                      fallback: str = "none") -> Optional[AssetFile]:
    """Mark at most one file as primary.

    The file named like the source's primary file wins, then the first file
    (by name) with the manifest extension. `fallback` decides what happens
    when neither exists: "none" leaves no primary file, "first" takes the
    first file by name, "error" raises PrimaryFileNotFound.
    """
    for f in files:
        f.is_primary = False

    ordered = sorted(files, key=lambda f: f.name)
    chosen = None
    if previous_primary:
        chosen = next((f for f in ordered if f.name.lower() == previous_primary.lower()), None)
    if chosen is None:
        chosen = next((f for f in ordered if f.name.lower().endswith(manifest_extension.lower())), None)

    if chosen is None:
        if fallback == "first" and ordered:
            chosen = ordered[0]
        elif fallback == "error":
            raise PrimaryFileNotFound(
                f"No file matches '{previous_primary}' or ends in '{manifest_extension}'"
            )
        else:
            logger.warning(f"No primary file designated among {len(files)} files")
            return None

    chosen.is_primary = True
    return chosen


class AssetReplicator:
    def __init__(self, regions: Regions, manifest_extension: str = ".ism", primary_fallback: str = "none",
                 max_workers: int = 8, skip_existing: bool = True,
                 progress: Optional[Callable[[TransferStatus], None]] = None):
        self.regions = regions
        self.manifest_extension = manifest_extension
        self.primary_fallback = primary_fallback
        self.max_workers = max_workers
        self.skip_existing = skip_existing
        self.progress = progress

    def copy(self, source_asset: Asset, direction: CopyDirection) -> ReplicationResult:
        """Copy an entire asset from one region to the other"""
        source, destination = self.regions.for_direction(direction)
        target = destination.assets.create(source_asset.name, source_asset.options)

        primary = source_asset.primary_file
        previous_primary = primary.name if primary else ""

        recorder = ProgressRecorder(self.progress)
        status = destination.storage.copy_directory(
            source.storage, source_asset.container, target.container,
            recorder=recorder, max_workers=self.max_workers, skip_existing=self.skip_existing,
        )
        log_transfer(logger, direction.value, status,
                     {'source_asset': source_asset.asset_id, 'target_asset': target.asset_id})

        # Register the files actually present in the destination container
        files = [
            AssetFile(name=blob.name, size=blob.size)
            for blob in destination.storage.list_blobs(target.container)
            if blob.size > 0
        ]
        designate_primary(files, previous_primary, self.manifest_extension, self.primary_fallback)
        target.files = files
        destination.assets.save(target)

        logger.info(f"Asset '{target.name}' copied {direction.value} as {target.asset_id} "
                    f"with {len(files)} files")
        return ReplicationResult(asset=target, transfer=status)
