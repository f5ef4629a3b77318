"""
Queue inspection: how many encode jobs are waiting in a region.
"""

import logging

from .job_tracker import JobState

logger = logging.getLogger(__name__)


def pending_count(region) -> int:
    """Number of queued jobs in the region. Region errors propagate."""
    count = region.jobs.count_in_state(JobState.QUEUED)
    logger.info(f"{region.name} region has {count} queued jobs")
    return count
