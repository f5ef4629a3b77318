"""
Asset catalog: logical bundles of files kept in a region's DynamoDB table,
with their objects stored under a per-asset container in the region bucket.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import AssetNotFound
from .retry import NO_RETRY, RetryPolicy
from .storage import BundleStorage

logger = logging.getLogger(__name__)


class AssetCreationOptions(Enum):
    """Asset creation options enumeration"""
    NONE = "none"
    STORAGE_ENCRYPTED = "storage_encrypted"
    COMMON_ENCRYPTION_PROTECTED = "common_encryption_protected"
    ENVELOPE_ENCRYPTION_PROTECTED = "envelope_encryption_protected"


@dataclass
class AssetFile:
    name: str
    size: int = 0
    is_primary: bool = False


@dataclass
class Asset:
    """Named bundle of files living in one region"""
    asset_id: str
    name: str
    region: str
    container: str
    options: AssetCreationOptions = AssetCreationOptions.NONE
    files: List[AssetFile] = field(default_factory=list)
    created_at: str = ""

    @property
    def primary_files(self) -> List[AssetFile]:
        return [f for f in self.files if f.is_primary]

    @property
    def primary_file(self) -> Optional[AssetFile]:
        primaries = self.primary_files
        return primaries[0] if primaries else None

    def file_sizes(self) -> Dict[str, int]:
        return {f.name: f.size for f in self.files}

    def to_item(self) -> Dict[str, Any]:
        return {
            'asset_id': self.asset_id,
            'name': self.name,
            'region': self.region,
            'container': self.container,
            'options': self.options.value,
            'files': [{'name': f.name, 'size': f.size, 'is_primary': f.is_primary} for f in self.files],
            'created_at': self.created_at,
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Asset":
        # DynamoDB hands numbers back as Decimal
        files = [
            AssetFile(name=f['name'], size=int(f.get('size', 0)), is_primary=bool(f.get('is_primary', False)))
            for f in item.get('files', [])
        ]
        return cls(
            asset_id=item['asset_id'],
            name=item['name'],
            region=item.get('region', ''),
            container=item['container'],
            options=AssetCreationOptions(item.get('options', AssetCreationOptions.NONE.value)),
            files=files,
            created_at=item.get('created_at', ''),
        )


class AssetCatalog:
    """DynamoDB-backed asset registry for one region"""

    def __init__(self, table, storage: BundleStorage, region_name: str, retry: RetryPolicy = NO_RETRY):
        self.table = table
        self.storage = storage
        self.region_name = region_name
        self.retry = retry

    def create(self, name: str, options: AssetCreationOptions = AssetCreationOptions.NONE) -> Asset:
        """Create an empty asset shell with its own container"""
        asset_id = uuid.uuid4().hex
        asset = Asset(
            asset_id=asset_id,
            name=name,
            region=self.region_name,
            container=f"asset-{asset_id}",
            options=options,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self.save(asset)
        logger.info(f"Created asset '{name}' ({asset_id}) in {self.region_name}")
        return asset

    def save(self, asset: Asset) -> None:
        self.retry.call(self.region_name, f"save asset {asset.asset_id}", self.table.put_item, Item=asset.to_item())

    def get(self, asset_id: str) -> Asset:
        response = self.retry.call(self.region_name, f"get asset {asset_id}", self.table.get_item,
                                   Key={'asset_id': asset_id})
        if 'Item' not in response:
            raise AssetNotFound(self.region_name, asset_id)
        return Asset.from_item(response['Item'])

    def delete(self, asset_id: str) -> None:
        """Delete the asset's objects and its catalog record"""
        asset = self.get(asset_id)
        self.storage.delete_container(asset.container)
        self.retry.call(self.region_name, f"delete asset {asset_id}", self.table.delete_item,
                        Key={'asset_id': asset_id})
        logger.info(f"Deleted asset {asset_id} from {self.region_name}")

    def upload_single_file(self, local_path: str,
                           options: AssetCreationOptions = AssetCreationOptions.NONE) -> Asset:
        """Create an asset named after the file and upload the file as its primary file"""
        path = Path(local_path)
        asset = self.create(path.stem, options)
        logger.info(f"Upload {path.name}")
        size = self.storage.upload_file(str(path), asset.container, path.name)
        asset.files = [AssetFile(name=path.name, size=size, is_primary=True)]
        self.save(asset)
        logger.info(f"Done uploading {path.name}")
        return asset
