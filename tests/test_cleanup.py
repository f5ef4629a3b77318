# tests/test_cleanup.py

from overflow_encode.cleanup import cleanup_backup
from overflow_encode.errors import CleanupError
from overflow_encode.job_tracker import Job, JobState, Task
from tests.fixtures.regions import put_asset_files


def _artifacts(region):
    copied = region.assets.create("myvideo")
    put_asset_files(region, copied.container, {"myvideo.mp4": b"m" * 64})
    output = region.assets.create("myvideo encoded")
    put_asset_files(region, output.container, {"manifest.ism": b"<smil/>", "v.mp4": b"v" * 8})
    task = Task("Encoder Task", "mes-4-7", "profile", [copied.asset_id], [output.asset_id])
    job = region.jobs.submit(Job.new("Encoding myvideo", region.name, [task]))
    for state in (JobState.SCHEDULED, JobState.PROCESSING, JobState.FINISHED):
        job = region.jobs.transition(job.job_id, state)
    return copied, output, job


def test_cleanup_deletes_every_artifact(backup_region):
    copied, output, job = _artifacts(backup_region)

    report = cleanup_backup(backup_region, copied, job)

    assert report.clean
    assert report.deleted == [
        f"asset:{copied.asset_id}",
        f"output asset:{output.asset_id}",
        f"job:{job.job_id}",
    ]
    assert backup_region.assets.table.items == {}
    assert backup_region.jobs.table.items == {}
    assert backup_region.storage.s3_client.bucket("backup-media") == {}


def test_failure_on_one_artifact_does_not_stop_the_rest(backup_region):
    copied, output, job = _artifacts(backup_region)
    backup_region.storage.s3_client.injector.fail('DeleteObjects', times=3)

    report = cleanup_backup(backup_region, copied, job)

    assert not report.clean
    assert len(report.errors) == 1
    error = report.errors[0]
    assert isinstance(error, CleanupError)
    assert (error.resource, error.resource_id) == ("asset", copied.asset_id)
    assert report.deleted == [f"output asset:{output.asset_id}", f"job:{job.job_id}"]
    assert job.job_id not in backup_region.jobs.table.items


def test_missing_artifacts_are_reported(backup_region):
    copied, output, job = _artifacts(backup_region)
    backup_region.jobs.delete(job.job_id)

    report = cleanup_backup(backup_region, copied, job)

    assert [e.resource for e in report.errors] == ["job"]
    assert report.started_at and report.finished_at


def test_unexpected_exception_is_recorded_and_the_rest_still_run(backup_region):
    copied, output, job = _artifacts(backup_region)
    delete_container = backup_region.storage.delete_container

    def flaky_delete(container):
        if container == copied.container:
            raise RuntimeError("transfer manager shut down")
        return delete_container(container)

    backup_region.storage.delete_container = flaky_delete

    report = cleanup_backup(backup_region, copied, job)

    assert [(e.resource, str(e.cause)) for e in report.errors] == [("asset", "transfer manager shut down")]
    assert report.deleted == [f"output asset:{output.asset_id}", f"job:{job.job_id}"]
