# tests/test_queue_inspector.py

import pytest

from overflow_encode.errors import RegionUnavailable
from overflow_encode.job_tracker import JobState
from overflow_encode.queue_inspector import pending_count
from tests.fixtures.regions import make_region, seed_backlog


def test_empty_region_has_no_pending_jobs(primary_region):
    assert pending_count(primary_region) == 0


def test_only_queued_jobs_are_counted(primary_region):
    ids = seed_backlog(primary_region, 4)
    primary_region.jobs.transition(ids[0], JobState.SCHEDULED)
    primary_region.jobs.transition(ids[1], JobState.CANCELING)
    primary_region.jobs.transition(ids[1], JobState.CANCELED)

    assert pending_count(primary_region) == 2


def test_count_follows_scan_pagination():
    region = make_region("primary")
    region.jobs.table.page_size = 3
    seed_backlog(region, 10)

    assert pending_count(region) == 10


def test_transient_scan_failure_is_retried(primary_region):
    seed_backlog(primary_region, 2)
    primary_region.jobs.table.injector.fail('Scan', times=2)

    assert pending_count(primary_region) == 2


def test_unreachable_region_raises(primary_region):
    primary_region.jobs.table.injector.fail('Scan', code='AccessDeniedException')

    with pytest.raises(RegionUnavailable) as exc:
        pending_count(primary_region)
    assert exc.value.region == "primary"
