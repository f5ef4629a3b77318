"""
Error taxonomy for the overflow encoder.

Configuration and input errors are fatal for the process. Region errors are
retried at the boundary (see retry.py) before they propagate. Partial copy
and job outcomes are carried on return values and only become exceptions
when the workflow policy says so.
"""

from typing import Optional


class OverflowEncodeError(Exception):
    """Base class for every error raised by this package"""
    pass


class ConfigurationError(OverflowEncodeError):
    """Missing or invalid region credentials, endpoints or settings"""
    pass


class InputError(OverflowEncodeError):
    """Local upload file does not exist or cannot be resolved"""
    pass


class RegionUnavailable(OverflowEncodeError):
    """A call against a region's storage, catalog or job service failed"""

    def __init__(self, region: str, operation: str, cause: Optional[BaseException] = None):
        self.region = region
        self.operation = operation
        self.cause = cause
        message = f"{region}: {operation} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ProcessorNotFound(OverflowEncodeError):
    """No processor matches the configured encoder name"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown media processor: {name}")


class AssetNotFound(OverflowEncodeError):
    def __init__(self, region: str, asset_id: str):
        self.region = region
        self.asset_id = asset_id
        super().__init__(f"{region}: asset {asset_id} not found")


class JobNotFound(OverflowEncodeError):
    def __init__(self, region: str, job_id: str):
        self.region = region
        self.job_id = job_id
        super().__init__(f"{region}: job {job_id} not found")


class InvalidStateTransition(OverflowEncodeError):
    """A job state change was illegal or lost a race with another writer"""
    pass


class PrimaryFileNotFound(OverflowEncodeError):
    """No file of a copied asset qualifies as its primary file"""
    pass


class PartialCopyFailure(OverflowEncodeError):
    """A bundle copy finished with failed files"""

    def __init__(self, status, message: Optional[str] = None):
        self.status = status
        super().__init__(message or f"Bundle copy incomplete: {status}")


class JobTerminalNonSuccess(OverflowEncodeError):
    """An encode job ended in error or canceled"""

    def __init__(self, job):
        self.job = job
        detail = f" ({job.error_message})" if job.error_message else ""
        super().__init__(f"Job {job.job_id} ended in state {job.state.value}{detail}")


class JobTimeout(OverflowEncodeError):
    """A job did not reach a terminal state before the deadline"""

    def __init__(self, job_id: str, timeout: float):
        self.job_id = job_id
        self.timeout = timeout
        super().__init__(f"Job {job_id} not terminal after {timeout:.0f}s")


class CleanupError(OverflowEncodeError):
    """Deleting one backup artifact failed. Recorded, never raised to callers."""

    def __init__(self, resource: str, resource_id: str, cause: BaseException):
        self.resource = resource
        self.resource_id = resource_id
        self.cause = cause
        super().__init__(f"Failed to delete {resource} {resource_id}: {cause}")
