# tests/test_storage.py

import pytest

from overflow_encode.errors import ConfigurationError, RegionUnavailable
from overflow_encode.storage import ProgressRecorder, format_elapsed, parse_s3_uri
from tests.fixtures.regions import make_region, put_asset_files

BUNDLE = {
    "manifest.ism": b"<smil/>",
    "video_1000kbps.mp4": b"a" * 1000,
    "audio/aac_128kbps.mp4": b"b" * 128,
    "subs/en/captions.vtt": b"WEBVTT",
}


@pytest.mark.parametrize(
    "uri, expected",
    [
        ("s3://media", ("media", "")),
        ("s3://media/", ("media", "")),
        ("s3://media/encodes/eu", ("media", "encodes/eu")),
    ],
)
def test_parse_s3_uri(uri, expected):
    assert parse_s3_uri(uri) == expected


@pytest.mark.parametrize("uri", ["https://media/x", "s3:///nobucket", "media"])
def test_parse_s3_uri_rejects_bad_uris(uri):
    with pytest.raises(ConfigurationError):
        parse_s3_uri(uri)


def test_format_elapsed():
    assert format_elapsed(0) == "00:00:00.00"
    assert format_elapsed(3723.456) == "01:02:03.46"


def test_container_keys_respect_root_prefix():
    region = make_region("primary")
    region.storage.root_prefix = "encodes"

    assert region.storage._key("asset-1", "manifest.ism") == "encodes/asset-1/manifest.ism"
    assert region.storage.container_uri("asset-1") == "s3://primary-media/encodes/asset-1/"


def test_upload_and_list(tmp_path, primary_region):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"x" * 42)

    size = primary_region.storage.upload_file(str(path), "asset-1", "clip.mp4")

    assert size == 42
    upload = primary_region.storage.s3_client.uploads[0]
    assert upload['ExtraArgs']['ContentType'] == "video/mp4"
    assert 'Config' not in upload or upload['Config'] is None
    blobs = primary_region.storage.list_blobs("asset-1")
    assert [(b.name, b.size) for b in blobs] == [("clip.mp4", 42)]


def test_blob_size_missing_object(primary_region):
    assert primary_region.storage.blob_size("asset-1", "nope.mp4") is None


def test_copy_directory_copies_nested_bundle(primary_region, backup_region):
    put_asset_files(primary_region, "src", BUNDLE)
    updates = []

    status = backup_region.storage.copy_directory(
        primary_region.storage, "src", "dst", recorder=ProgressRecorder(updates.append), max_workers=3,
    )

    assert status.complete
    assert status.files_transferred == 4
    assert status.bytes_transferred == sum(len(v) for v in BUNDLE.values())
    copied = {b.name: b.size for b in backup_region.storage.list_blobs("dst")}
    assert copied == {name: len(data) for name, data in BUNDLE.items()}
    # one snapshot per processed file, counters never go backwards
    assert len(updates) == 4
    assert sorted(u.files_processed for u in updates) == [1, 2, 3, 4]


def test_copy_directory_counts_failures_without_aborting(primary_region, backup_region):
    put_asset_files(primary_region, "src", BUNDLE)
    primary_region.storage.s3_client.fail_copy_keys.add("src/video_1000kbps.mp4")

    status = backup_region.storage.copy_directory(primary_region.storage, "src", "dst")

    assert not status.complete
    assert status.files_failed == 1
    assert status.files_transferred == 3
    assert status.failures[0][0] == "video_1000kbps.mp4"
    assert "video_1000kbps.mp4" not in {b.name for b in backup_region.storage.list_blobs("dst")}


def test_copy_directory_skips_objects_already_present(primary_region, backup_region):
    put_asset_files(primary_region, "src", BUNDLE)
    put_asset_files(backup_region, "dst", {"manifest.ism": BUNDLE["manifest.ism"]})

    status = backup_region.storage.copy_directory(primary_region.storage, "src", "dst")

    assert status.files_skipped == 1
    assert status.files_transferred == 3
    assert status.files_processed == 4


def test_copy_directory_of_empty_container(primary_region, backup_region):
    status = backup_region.storage.copy_directory(primary_region.storage, "empty", "dst")

    assert status.files_processed == 0
    assert status.complete


def test_listing_failure_raises_region_unavailable(primary_region, backup_region):
    primary_region.storage.s3_client.injector.fail('ListObjectsV2')

    with pytest.raises(RegionUnavailable):
        backup_region.storage.copy_directory(primary_region.storage, "src", "dst")


def test_delete_container_removes_every_page():
    region = make_region("backup", page_size=2)
    put_asset_files(region, "asset-9", {f"seg_{n}.ts": b"t" for n in range(5)})
    put_asset_files(region, "asset-10", {"keep.mp4": b"k"})

    assert region.storage.delete_container("asset-9") == 5
    assert region.storage.list_blobs("asset-9") == []
    assert [b.name for b in region.storage.list_blobs("asset-10")] == ["keep.mp4"]
