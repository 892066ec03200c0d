"""
Tests for the sync core.

Covers fingerprint comparison, the object and container synchronizers, and
result aggregation, using in-memory stores with failure injection.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from conftest import FaultyStore

from blobmirror.exceptions import ContainerListingError, ContainerProvisionError, ObjectCopyError, ObjectMetadataError
from blobmirror.stores.base import ObjectDescriptor
from blobmirror.stores.memory import InMemoryStore
from blobmirror.sync.containers import sync_container
from blobmirror.sync.fingerprint import is_stale
from blobmirror.sync.objects import probe_destination, sync_object
from blobmirror.sync.types import ContainerSummary, MetadataProbe, ObjectResult, SyncOutcome


class TestIsStale:
    """Tests for fingerprint comparison."""

    def test_absent_destination_is_stale(self):
        """No destination fingerprint means the object must be copied."""
        assert is_stale("0x1", None) is True

    def test_different_fingerprints_are_stale(self):
        """Unequal fingerprints mean the destination is out of date."""
        assert is_stale("0x2", "0x1") is True

    def test_equal_fingerprints_are_fresh(self):
        """Equal fingerprints mean the destination is current."""
        assert is_stale("0x1", "0x1") is False

    @pytest.mark.parametrize(
        "source,dest",
        [
            ('"abc"', "abc"),
            ("ABC", "abc"),
            ('W/"abc"', '"abc"'),
            ("abc ", "abc"),
        ],
    )
    def test_no_normalisation(self, source, dest):
        """Quoting, casing, weak tags and whitespace are all significant."""
        assert is_stale(source, dest) is True

    def test_empty_string_is_a_present_fingerprint(self):
        """An empty fingerprint is compared like any other value."""
        assert is_stale("", "") is False


class TestMetadataProbe:
    """Tests for probing destination metadata."""

    def test_found(self):
        """An existing destination object yields a found probe with its fingerprint."""
        dest = InMemoryStore("dest")
        dest.put_object("a", "x", b"data", fingerprint="1")

        probe = probe_destination(dest, "a", "x")

        assert probe.is_found
        assert probe.fingerprint == "1"

    def test_absent_is_not_an_error(self):
        """A missing destination object is absent, not a failure."""
        probe = probe_destination(InMemoryStore("dest"), "a", "missing")

        assert probe.is_absent
        assert not probe.is_error
        assert probe.fingerprint is None

    def test_backend_failure_is_an_error_probe(self):
        """A backend error during the probe is carried as an error probe."""
        dest = FaultyStore("dest")
        dest.fail_metadata.add("x")

        probe = probe_destination(dest, "a", "x")

        assert probe.is_error
        assert isinstance(probe.error, ObjectMetadataError)

    def test_constructors(self):
        """The probe constructors produce the matching kind."""
        descriptor = ObjectDescriptor(name="x", fingerprint="1")
        assert MetadataProbe.found(descriptor).descriptor == descriptor
        assert MetadataProbe.absent().is_absent
        assert MetadataProbe.failed(RuntimeError("boom")).is_error


class TestSyncObject:
    """Tests for the per-object synchronizer."""

    def _stores(self):
        source = FaultyStore("source")
        dest = FaultyStore("dest")
        source.put_object("a", "x", b"hello", fingerprint="2")
        dest.create_container("a")
        return source, dest

    def test_absent_destination_is_copied(self):
        """An object missing from the destination is copied with its fingerprint."""
        source, dest = self._stores()

        result = sync_object(source, dest, "a", ObjectDescriptor("x", "2"))

        assert result.outcome is SyncOutcome.COPIED
        assert dest.get_object("a", "x") == b"hello"
        assert dest.get_object_metadata("a", "x").fingerprint == "2"

    def test_equal_fingerprint_is_skipped_without_io(self):
        """An unchanged object is skipped without reading or writing."""
        source, dest = self._stores()
        dest.put_object("a", "x", b"hello", fingerprint="2")

        result = sync_object(source, dest, "a", ObjectDescriptor("x", "2"))

        assert result.outcome is SyncOutcome.SKIPPED_UNCHANGED
        assert source.reads == []
        assert dest.writes == []

    def test_different_fingerprint_is_copied(self):
        """A changed object overwrites the destination copy."""
        source, dest = self._stores()
        dest.put_object("a", "x", b"old", fingerprint="1")

        result = sync_object(source, dest, "a", ObjectDescriptor("x", "2"))

        assert result.outcome is SyncOutcome.COPIED
        assert source.reads == ["a/x"]
        assert dest.writes == ["a/x"]
        assert dest.get_object("a", "x") == b"hello"
        assert dest.get_object_metadata("a", "x").fingerprint == "2"

    def test_metadata_failure_is_failed_and_nothing_copied(self):
        """A failed metadata probe fails the object and copies nothing."""
        source, dest = self._stores()
        dest.fail_metadata.add("x")

        result = sync_object(source, dest, "a", ObjectDescriptor("x", "2"))

        assert result.outcome is SyncOutcome.FAILED
        assert result.kind == ObjectMetadataError.kind
        assert "403 forbidden" in result.reason
        assert source.reads == []
        assert dest.writes == []

    def test_open_read_failure_is_failed(self):
        """A source that cannot be opened fails the object."""
        source, dest = self._stores()
        source.fail_read.add("x")

        result = sync_object(source, dest, "a", ObjectDescriptor("x", "2"))

        assert result.outcome is SyncOutcome.FAILED
        assert result.kind == ObjectCopyError.kind
        assert dest.writes == []

    def test_write_failure_is_failed_and_stream_released(self):
        """A failed write fails the object and still closes the source stream."""
        source, dest = self._stores()
        dest.fail_write.add("x")

        result = sync_object(source, dest, "a", ObjectDescriptor("x", "2"))

        assert result.outcome is SyncOutcome.FAILED
        assert result.reason == "write failed"
        assert len(source.streams) == 1
        assert source.streams[0].was_closed

    def test_midstream_read_failure_releases_stream(self):
        """A read error partway through the copy closes the source stream."""
        source, dest = self._stores()
        source.fail_read_midstream.add("x")

        result = sync_object(source, dest, "a", ObjectDescriptor("x", "2"))

        assert result.outcome is SyncOutcome.FAILED
        assert source.streams[0].was_closed

    def test_stream_released_after_success(self):
        """The source stream is closed after a successful copy."""
        source, dest = self._stores()

        sync_object(source, dest, "a", ObjectDescriptor("x", "2"))

        assert source.streams[0].was_closed

    def test_failed_result_converts_to_failure_record(self):
        """A failed result carries its location and reason into the failure record."""
        result = ObjectResult("a", "x", SyncOutcome.FAILED, reason="boom", kind="object_copy")
        record = result.to_failure()
        assert record.container == "a"
        assert record.object_name == "x"
        assert record.reason == "boom"


class TestSyncContainer:
    """Tests for the per-container synchronizer."""

    def test_creates_destination_container_and_copies(self):
        """A missing destination container is created before its objects are copied."""
        source = FaultyStore("source")
        source.put_object("a", "x", b"1", fingerprint="1")
        source.put_object("a", "y", b"2", fingerprint="2")
        dest = FaultyStore("dest")

        summary = sync_container(source, dest, "a")

        assert summary.created is True
        assert (summary.copied, summary.skipped, summary.failed) == (2, 0, 0)
        assert dest.object_names("a") == ["x", "y"]

    def test_existing_container_is_not_an_error(self):
        """An already existing destination container is a no-op."""
        source = FaultyStore("source")
        source.put_object("a", "x", b"1")
        dest = FaultyStore("dest")
        dest.create_container("a")

        summary = sync_container(source, dest, "a")

        assert summary.created is False
        assert summary.failures == []

    def test_provision_failure_still_syncs_objects(self):
        """A container that cannot be provisioned is recorded and its objects still attempted."""
        source = FaultyStore("source")
        source.put_object("b", "x", b"1")
        dest = FaultyStore("dest")
        dest.create_container("b")
        dest.fail_ensure.add("b")

        summary = sync_container(source, dest, "b")

        assert summary.copied == 1
        assert len(summary.failures) == 1
        assert summary.failures[0].kind == ContainerProvisionError.kind
        assert summary.failures[0].object_name is None

    def test_listing_failure_is_recorded(self):
        """A container whose objects cannot be listed is recorded as a failure."""
        source = FaultyStore("source")
        source.create_container("a")
        source.fail_listing.add("a")

        summary = sync_container(source, FaultyStore("dest"), "a")

        assert summary.objects == 0
        assert summary.failures[0].kind == ContainerListingError.kind

    def test_fault_isolation(self):
        """A failing object does not stop its siblings."""
        source = FaultyStore("source")
        for i in range(5):
            source.put_object("a", f"obj{i}", f"data{i}".encode())
        dest = FaultyStore("dest")
        dest.fail_write.add("obj2")

        summary = sync_container(source, dest, "a")

        assert summary.copied == 4
        assert summary.failed == 1
        assert summary.failures[0].object_name == "obj2"
        assert "obj2" not in dest.object_names("a")

    def test_empty_container(self):
        """An empty source container is still mirrored."""
        source = FaultyStore("source")
        source.create_container("b")
        dest = FaultyStore("dest")

        summary = sync_container(source, dest, "b")

        assert summary.objects == 0
        assert dest.container_names() == ["b"]

    def test_concurrent_objects(self):
        """Objects fanned out over a pool give the same outcomes and close every stream."""
        source = FaultyStore("source")
        for i in range(20):
            source.put_object("a", f"obj{i:02d}", f"data{i}".encode())
        dest = FaultyStore("dest")
        dest.fail_write.add("obj07")

        with ThreadPoolExecutor(max_workers=4) as executor:
            summary = sync_container(source, dest, "a", executor=executor, max_in_flight=3)

        assert summary.copied == 19
        assert summary.failed == 1
        assert len(dest.object_names("a")) == 19
        assert all(stream.was_closed for stream in source.streams)


class TestContainerSummary:
    """Tests for outcome aggregation."""

    def test_record_counts(self):
        """Each recorded outcome updates the matching counter."""
        summary = ContainerSummary(name="a")
        summary.record(ObjectResult("a", "x", SyncOutcome.COPIED))
        summary.record(ObjectResult("a", "y", SyncOutcome.SKIPPED_UNCHANGED))
        summary.record(ObjectResult("a", "z", SyncOutcome.FAILED, reason="boom"))

        assert (summary.copied, summary.skipped, summary.failed) == (1, 1, 1)
        assert summary.objects == 3
        assert summary.to_dict()["failures"][0]["object"] == "z"
