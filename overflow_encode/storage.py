#!/usr/bin/env python3
"""
Bundle storage for one region
Each asset owns a container (a key prefix) inside the region bucket
"""

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlparse
import logging

from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import ConfigurationError
from .retry import NO_RETRY, RetryPolicy

logger = logging.getLogger(__name__)

MULTIPART_THRESHOLD = 100 * 1024 * 1024  # 100MB


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """Parse S3 URI into bucket and key prefix"""
    if not uri.startswith('s3://'):
        raise ConfigurationError(f"Not an S3 URI: {uri}")

    parsed = urlparse(uri)
    bucket = parsed.netloc
    if not bucket:
        raise ConfigurationError(f"S3 URI has no bucket: {uri}")
    prefix = parsed.path.strip('/')
    return bucket, prefix


def format_elapsed(seconds: float) -> str:
    """HH:MM:SS.cc"""
    centis = int(round(seconds * 100))
    hours, rem = divmod(centis, 360000)
    minutes, rem = divmod(rem, 6000)
    secs, centis = divmod(rem, 100)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{centis:02d}"


@dataclass
class BlobInfo:
    """Object inside a container, named relative to the container root"""
    name: str
    size: int


@dataclass
class TransferStatus:
    """Outcome of a bundle copy"""
    bytes_transferred: int = 0
    files_transferred: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    elapsed_seconds: float = 0.0
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def files_processed(self) -> int:
        return self.files_transferred + self.files_skipped + self.files_failed

    @property
    def complete(self) -> bool:
        return self.files_failed == 0

    def __str__(self) -> str:
        return (f"Elapsed: {format_elapsed(self.elapsed_seconds)} "
                f"files transferred: {self.files_transferred} total bytes: {self.bytes_transferred}, "
                f"failed: {self.files_failed}, skipped: {self.files_skipped}")


class ProgressRecorder:
    """Thread-safe running counters for a bundle copy.

    Every update produces a snapshot that is handed to the optional callback.
    """

    def __init__(self, callback: Optional[Callable[[TransferStatus], None]] = None):
        self._lock = threading.Lock()
        self._status = TransferStatus()
        self._callback = callback

    def _emit(self) -> TransferStatus:
        snapshot = TransferStatus(
            bytes_transferred=self._status.bytes_transferred,
            files_transferred=self._status.files_transferred,
            files_skipped=self._status.files_skipped,
            files_failed=self._status.files_failed,
            failures=list(self._status.failures),
        )
        return snapshot

    def _report(self, update: Callable[[TransferStatus], None]) -> None:
        with self._lock:
            update(self._status)
            snapshot = self._emit()
        if self._callback:
            self._callback(snapshot)

    def transferred(self, nbytes: int) -> None:
        def update(s: TransferStatus) -> None:
            s.files_transferred += 1
            s.bytes_transferred += nbytes
        self._report(update)

    def skipped(self) -> None:
        def update(s: TransferStatus) -> None:
            s.files_skipped += 1
        self._report(update)

    def failed(self, name: str, reason: str) -> None:
        def update(s: TransferStatus) -> None:
            s.files_failed += 1
            s.failures.append((name, reason))
        self._report(update)

    @property
    def files_processed(self) -> int:
        with self._lock:
            return self._status.files_processed

    def finish(self, elapsed_seconds: float) -> TransferStatus:
        with self._lock:
            status = self._emit()
        status.elapsed_seconds = elapsed_seconds
        return status

    def __str__(self) -> str:
        with self._lock:
            s = self._status
            return (f"Transferred bytes: {s.bytes_transferred}; Transferred: {s.files_transferred}; "
                    f"Skipped: {s.files_skipped}, Failed: {s.files_failed}")


class BundleStorage:
    """S3 bucket of one region, addressed per container"""

    def __init__(self, s3_client, bucket: str, root_prefix: str = "", region_name: str = "",
                 retry: RetryPolicy = NO_RETRY):
        self.s3_client = s3_client
        self.bucket = bucket
        self.root_prefix = root_prefix.strip('/')
        self.region_name = region_name or bucket
        self.retry = retry

    def _container_prefix(self, container: str) -> str:
        parts = [p for p in (self.root_prefix, container.strip('/')) if p]
        return '/'.join(parts) + '/'

    def _key(self, container: str, name: str) -> str:
        return self._container_prefix(container) + name.lstrip('/')

    def container_uri(self, container: str) -> str:
        return f"s3://{self.bucket}/{self._container_prefix(container)}"

    def _get_content_type(self, name: str, default: str = "application/octet-stream") -> str:
        """Determine content type based on file extension"""
        ext = Path(name).suffix.lower()

        content_types = {
            '.json': 'application/json',
            '.mp4': 'video/mp4',
            '.ism': 'application/xml',
            '.ismc': 'application/xml',
            '.m3u8': 'application/vnd.apple.mpegurl',
            '.mpd': 'application/dash+xml',
            '.vtt': 'text/vtt',
            '.ts': 'video/mp2t',
        }

        return content_types.get(ext, default)

    def upload_file(self, local_path: str, container: str, name: str) -> int:
        """Upload a local file into a container, returning its size"""
        key = self._key(container, name)
        file_size = os.path.getsize(local_path)
        extra_args = {'ContentType': self._get_content_type(name)}
        config = None

        # Use multipart upload for files > 100MB
        if file_size > MULTIPART_THRESHOLD:
            extra_args['ServerSideEncryption'] = 'AES256'
            config = TransferConfig(
                multipart_threshold=1024 * 1024 * 25,  # 25MB
                max_concurrency=10,
                multipart_chunksize=1024 * 1024 * 25,  # 25MB
                use_threads=True
            )

        kwargs = {'ExtraArgs': extra_args}
        if config is not None:
            kwargs['Config'] = config
        self.retry.call(self.region_name, f"upload {key}", self.s3_client.upload_file,
                        local_path, self.bucket, key, **kwargs)
        logger.info(f"Uploaded {local_path} to s3://{self.bucket}/{key} ({file_size} bytes)")
        return file_size

    def _list_page_blobs(self, container: str) -> List[BlobInfo]:
        prefix = self._container_prefix(container)
        paginator = self.s3_client.get_paginator('list_objects_v2')
        blobs = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for obj in page.get('Contents', []):
                blobs.append(BlobInfo(name=obj['Key'][len(prefix):], size=int(obj.get('Size', 0))))
        return blobs

    def list_blobs(self, container: str) -> List[BlobInfo]:
        """List every object under a container, nested keys included"""
        return self.retry.call(self.region_name, f"list {container}", self._list_page_blobs, container)

    def blob_size(self, container: str, name: str) -> Optional[int]:
        """Fetch an object's length, None when it does not exist"""
        try:
            response = self.s3_client.head_object(Bucket=self.bucket, Key=self._key(container, name))
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code in ('404', 'NoSuchKey', 'NotFound'):
                return None
            raise
        return int(response.get('ContentLength', 0))

    def _delete_all(self, container: str) -> int:
        prefix = self._container_prefix(container)
        paginator = self.s3_client.get_paginator('list_objects_v2')
        deleted = 0
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            objects = [{'Key': obj['Key']} for obj in page.get('Contents', [])]
            # delete_objects accepts at most 1000 keys, which is also the page size
            if objects:
                response = self.s3_client.delete_objects(Bucket=self.bucket, Delete={'Objects': objects, 'Quiet': True})
                errors = response.get('Errors', [])
                if errors:
                    raise ClientError({'Error': {'Code': errors[0].get('Code', 'DeleteFailed'),
                                                 'Message': errors[0].get('Message', '')}}, 'DeleteObjects')
                deleted += len(objects)
        return deleted

    def delete_container(self, container: str) -> int:
        """Delete every object under a container"""
        deleted = self.retry.call(self.region_name, f"delete {container}", self._delete_all, container)
        logger.info(f"Deleted {deleted} objects from {self.container_uri(container)}")
        return deleted

    def _copy_one(self, source: "BundleStorage", source_container: str, blob: BlobInfo,
                  dest_container: str, recorder: ProgressRecorder, skip_existing: bool,
                  transfer_config: TransferConfig) -> None:
        try:
            if skip_existing and self.blob_size(dest_container, blob.name) == blob.size:
                recorder.skipped()
                logger.debug(f"Skipped {blob.name}: already present with {blob.size} bytes")
                return
            self.s3_client.copy(
                {'Bucket': source.bucket, 'Key': source._key(source_container, blob.name)},
                self.bucket,
                self._key(dest_container, blob.name),
                SourceClient=source.s3_client,
                Config=transfer_config,
            )
            recorder.transferred(blob.size)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Copy failed for {blob.name}: {e}")
            recorder.failed(blob.name, str(e))

    def copy_directory(self, source: "BundleStorage", source_container: str, dest_container: str,
                       recorder: Optional[ProgressRecorder] = None, max_workers: int = 8,
                       skip_existing: bool = True) -> TransferStatus:
        """Server-side recursive copy of a container from another region into this one.

        Individual object failures are counted in the returned status and do
        not abort the rest of the bundle.
        """
        recorder = recorder or ProgressRecorder()
        start = time.monotonic()
        blobs = source.list_blobs(source_container)
        transfer_config = TransferConfig(max_concurrency=4, use_threads=True)

        logger.info(f"Copying {len(blobs)} objects from {source.container_uri(source_container)} "
                    f"to {self.container_uri(dest_container)}")
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            futures = [
                executor.submit(self._copy_one, source, source_container, blob, dest_container,
                                recorder, skip_existing, transfer_config)
                for blob in blobs
            ]
            for future in futures:
                future.result()

        status = recorder.finish(time.monotonic() - start)
        logger.info(str(status))
        return status
