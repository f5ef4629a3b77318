"""
Region handles: the storage, asset catalog, job tracker and processor
catalog of the primary and backup regions, built once from configuration.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import boto3
from botocore.config import Config as BotoConfig

from .assets import AssetCatalog
from .config import Config, RegionSettings
from .job_tracker import JobTracker
from .processors import ProcessorCatalog
from .retry import RetryPolicy, guarded
from .storage import BundleStorage

logger = logging.getLogger(__name__)


class CopyDirection(Enum):
    PRIMARY_TO_BACKUP = "primary-to-backup"
    BACKUP_TO_PRIMARY = "backup-to-primary"


@dataclass(frozen=True)
class RegionContext:
    """Read-only bundle of one region's service handles"""
    name: str
    storage: BundleStorage
    assets: AssetCatalog
    jobs: JobTracker
    processors: ProcessorCatalog

    @classmethod
    def from_settings(cls, settings: RegionSettings, retry: RetryPolicy) -> "RegionContext":
        session = build_session(settings)
        client_config = BotoConfig(retries={'max_attempts': 3, 'mode': 'standard'})
        kwargs = {'region_name': settings.aws_region, 'config': client_config}
        if settings.endpoint_url:
            kwargs['endpoint_url'] = settings.endpoint_url

        s3_client = session.client('s3', **kwargs)
        sqs_client = session.client('sqs', **kwargs)
        dynamodb = session.resource('dynamodb', **kwargs)

        storage = BundleStorage(s3_client, settings.bucket, settings.storage_prefix, settings.name, retry)
        return cls(
            name=settings.name,
            storage=storage,
            assets=AssetCatalog(dynamodb.Table(settings.assets_table), storage, settings.name, retry),
            jobs=JobTracker(dynamodb.Table(settings.jobs_table), sqs_client, settings.job_queue_url,
                            settings.name, retry),
            processors=ProcessorCatalog(dynamodb.Table(settings.processors_table), settings.name, retry),
        )


@dataclass(frozen=True)
class Regions:
    primary: RegionContext
    backup: RegionContext

    def for_direction(self, direction: CopyDirection) -> Tuple[RegionContext, RegionContext]:
        """(source, destination) for a copy direction"""
        if direction is CopyDirection.PRIMARY_TO_BACKUP:
            return self.primary, self.backup
        return self.backup, self.primary


def build_session(settings: RegionSettings) -> boto3.session.Session:
    """Session for a region, assuming the configured role when there is one"""
    session = boto3.session.Session(
        aws_access_key_id=settings.access_key_id,
        aws_secret_access_key=settings.secret_access_key,
        region_name=settings.aws_region,
    )
    if not settings.role_arn:
        return session

    sts = session.client('sts')
    params = {
        'RoleArn': settings.role_arn,
        'RoleSessionName': f"overflow-encode-{settings.name}",
        'DurationSeconds': 3600,
    }
    if settings.external_id:
        params['ExternalId'] = settings.external_id
    response = guarded(settings.name, "assume role", sts.assume_role, **params)
    creds = response['Credentials']
    logger.info(f"Assumed {settings.role_arn} for the {settings.name} region")
    return boto3.session.Session(
        aws_access_key_id=creds['AccessKeyId'],
        aws_secret_access_key=creds['SecretAccessKey'],
        aws_session_token=creds['SessionToken'],
        region_name=settings.aws_region,
    )


def build_regions(config: Config) -> Regions:
    retry = RetryPolicy(attempts=config.region_retry_attempts, max_wait=config.region_retry_max_wait)
    return Regions(
        primary=RegionContext.from_settings(config.primary, retry),
        backup=RegionContext.from_settings(config.backup, retry),
    )
