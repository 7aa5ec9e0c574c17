"""Integration tests for database repositories."""

import sqlite3

import pytest

from partyupload.database import get_db_connection
from partyupload.exceptions import EventNotFoundError
from partyupload.repositories.event_repository import EventRecord, EventRepository
from partyupload.repositories.file_repository import (
    STATUS_PENDING,
    STATUS_READY,
    FileRepository,
    RenameOutcome,
)

FAR_PAST = "2000-01-01T00:00:00.000Z"
FAR_FUTURE = "2999-01-01T00:00:00.000Z"


def make_event(event_id: str = "summer-party", **overrides) -> EventRecord:
    values = dict(
        event_id=event_id,
        name="Summer Party",
        admin_password_hash="$2b$04$hash",
        created_at="2026-05-01T12:00:00.000Z",
    )
    values.update(overrides)
    return EventRecord(**values)


def store(event_id: str, folder: str, name: str, size: int = 10, max_total: int = 0):
    reservation = FileRepository.reserve_file(
        event_id=event_id,
        folder=folder,
        name=name,
        size=size,
        mime_type="text/plain",
        max_total_bytes=max_total,
        stale_before=FAR_PAST,
    )
    assert reservation is not None
    assert FileRepository.mark_ready(reservation.record.file_id)
    return reservation.record


@pytest.fixture
def event(storage):
    record = make_event()
    EventRepository.create_event(record)
    return record


class TestEventRepository:
    """Test event persistence."""

    def test_create_and_get(self, storage):
        EventRepository.create_event(make_event(
            allowed_mime_types=["image/*"], guest_password_hash="$2b$04$guest", allow_guest_download=True
        ))

        loaded = EventRepository.get_by_id("summer-party")
        assert loaded is not None
        assert loaded.allowed_mime_types == ["image/*"]
        assert loaded.secured
        assert loaded.guest_downloads_enabled
        assert loaded.allow_guest_upload

    def test_get_missing_returns_none(self, storage):
        assert EventRepository.get_by_id("nothing-here") is None

    def test_duplicate_id_raises(self, storage):
        EventRepository.create_event(make_event())
        with pytest.raises(sqlite3.IntegrityError):
            EventRepository.create_event(make_event())

    def test_update_event(self, event):
        event.name = "Renamed"
        event.upload_folder_hint = "Pick your table"
        assert EventRepository.update_event(event)

        loaded = EventRepository.get_by_id(event.event_id)
        assert loaded.name == "Renamed"
        assert loaded.upload_folder_hint == "Pick your table"

    def test_update_missing_event(self, storage):
        assert not EventRepository.update_event(make_event("ghost-event"))

    def test_delete_cascades_to_files_and_folders(self, event):
        store(event.event_id, "day 1", "a.txt")
        FileRepository.register_folder(event.event_id, "empty")

        assert EventRepository.delete_event(event.event_id)
        assert not EventRepository.delete_event(event.event_id)

        with get_db_connection() as conn:
            assert conn.execute("SELECT COUNT(*) FROM files").fetchone()[0] == 0
            assert conn.execute("SELECT COUNT(*) FROM folders").fetchone()[0] == 0


class TestFileReservation:
    """Test collision-free reservation of names."""

    def test_reserved_file_is_pending_and_hidden(self, event):
        reservation = FileRepository.reserve_file(
            event.event_id, "", "a.txt", 5, "text/plain", 0, FAR_PAST
        )
        assert reservation.record.status == STATUS_PENDING
        assert FileRepository.get_file(event.event_id, "", "a.txt") is None
        assert FileRepository.list_files_in_folder(event.event_id, "") == []

        assert FileRepository.mark_ready(reservation.record.file_id)
        ready = FileRepository.get_file(event.event_id, "", "a.txt")
        assert ready.status == STATUS_READY

    def test_duplicate_names_are_disambiguated(self, event):
        names = [store(event.event_id, "", "photo.jpg").name for _ in range(3)]
        assert names == ["photo.jpg", "photo_1.jpg", "photo_2.jpg"]

    def test_pending_rows_also_block_names(self, event):
        first = FileRepository.reserve_file(event.event_id, "", "a.txt", 1, None, 0, FAR_PAST)
        second = FileRepository.reserve_file(event.event_id, "", "a.txt", 1, None, 0, FAR_PAST)
        assert first.record.name == "a.txt"
        assert second.record.name == "a_1.txt"

    def test_same_name_in_other_folder(self, event):
        assert store(event.event_id, "", "a.txt").name == "a.txt"
        assert store(event.event_id, "day 1", "a.txt").name == "a.txt"

    def test_stale_reservation_is_reclaimed(self, event):
        orphan = FileRepository.reserve_file(event.event_id, "", "a.txt", 1, None, 0, FAR_PAST)
        reservation = FileRepository.reserve_file(event.event_id, "", "a.txt", 1, None, 0, FAR_FUTURE)

        assert reservation.record.name == "a.txt"
        assert reservation.reclaimed_storage_keys == [orphan.record.storage_key]
        assert not FileRepository.mark_ready(orphan.record.file_id)

    def test_total_ceiling(self, event):
        store(event.event_id, "", "a.txt", size=60, max_total=100)
        rejected = FileRepository.reserve_file(event.event_id, "", "b.txt", 50, None, 100, FAR_PAST)
        assert rejected is None
        assert store(event.event_id, "", "c.txt", size=40, max_total=100).name == "c.txt"

    def test_missing_event_raises(self, storage):
        with pytest.raises(EventNotFoundError):
            FileRepository.reserve_file("ghost-event", "", "a.txt", 1, None, 0, FAR_PAST)

    def test_mark_ready_after_event_deleted(self, event):
        reservation = FileRepository.reserve_file(event.event_id, "", "a.txt", 1, None, 0, FAR_PAST)
        EventRepository.delete_event(event.event_id)
        assert not FileRepository.mark_ready(reservation.record.file_id)

    def test_release_reservation(self, event):
        reservation = FileRepository.reserve_file(event.event_id, "", "a.txt", 1, None, 0, FAR_PAST)
        FileRepository.release_reservation(reservation.record.file_id)
        assert store(event.event_id, "", "a.txt").name == "a.txt"

    def test_purge_stale_reservations(self, event):
        pending = FileRepository.reserve_file(event.event_id, "x", "a.txt", 1, None, 0, FAR_PAST)
        store(event.event_id, "", "kept.txt")

        purged = FileRepository.purge_stale_reservations(FAR_FUTURE)

        assert purged == [(event.event_id, pending.record.storage_key)]
        assert FileRepository.get_file(event.event_id, "", "kept.txt") is not None


class TestFolderQueries:
    """Test listing, subtree and pruning of folders."""

    def test_list_subfolders(self, event):
        store(event.event_id, "day 1/photos", "a.jpg")
        store(event.event_id, "day 2", "b.jpg")
        FileRepository.register_folder(event.event_id, "empty")

        assert FileRepository.list_subfolders(event.event_id, "") == ["day 1", "day 2", "empty"]
        assert FileRepository.list_subfolders(event.event_id, "day 1") == ["photos"]
        assert FileRepository.list_subfolders(event.event_id, "day 2") == []

    def test_list_subtree_does_not_match_prefix_siblings(self, event):
        store(event.event_id, "day", "a.txt")
        store(event.event_id, "day/inner", "b.txt")
        store(event.event_id, "day 2", "c.txt")

        names = [record.name for record in FileRepository.list_subtree(event.event_id, "day")]
        assert names == ["a.txt", "b.txt"]
        assert len(FileRepository.list_subtree(event.event_id, "")) == 3

    def test_register_folder_for_missing_event(self, storage):
        with pytest.raises(EventNotFoundError):
            FileRepository.register_folder("ghost-event", "photos")

    def test_delete_prunes_empty_containers(self, event):
        FileRepository.register_folder(event.event_id, "a")
        FileRepository.register_folder(event.event_id, "a/b")
        record = store(event.event_id, "a/b", "x.txt")

        deleted = FileRepository.delete_file(record.file_id)

        assert deleted.storage_key == record.storage_key
        assert FileRepository.list_subfolders(event.event_id, "") == []
        assert FileRepository.delete_file(record.file_id) is None

    def test_delete_keeps_non_empty_parent(self, event):
        FileRepository.register_folder(event.event_id, "a")
        store(event.event_id, "a", "keep.txt")
        FileRepository.register_folder(event.event_id, "a/b")
        record = store(event.event_id, "a/b", "x.txt")

        FileRepository.delete_file(record.file_id)

        assert FileRepository.list_subfolders(event.event_id, "") == ["a"]
        assert FileRepository.list_subfolders(event.event_id, "a") == []


class TestFolderRename:
    """Test re-parenting of folder subtrees."""

    def test_rename_moves_subtree(self, event):
        store(event.event_id, "old", "a.txt")
        store(event.event_id, "old/inner", "b.txt")
        store(event.event_id, "older", "c.txt")

        assert FileRepository.rename_folder(event.event_id, "old", "new") == RenameOutcome.RENAMED

        assert FileRepository.get_file(event.event_id, "new", "a.txt") is not None
        assert FileRepository.get_file(event.event_id, "new/inner", "b.txt") is not None
        assert FileRepository.get_file(event.event_id, "older", "c.txt") is not None
        assert FileRepository.list_subfolders(event.event_id, "") == ["new", "older"]

    def test_rename_empty_container(self, event):
        FileRepository.register_folder(event.event_id, "empty")
        assert FileRepository.rename_folder(event.event_id, "empty", "renamed") == RenameOutcome.RENAMED
        assert FileRepository.list_subfolders(event.event_id, "") == ["renamed"]

    def test_rename_same_name(self, event):
        assert FileRepository.rename_folder(event.event_id, "x", "x") == RenameOutcome.UNCHANGED

    def test_rename_missing_source(self, event):
        assert FileRepository.rename_folder(event.event_id, "nope", "new") == RenameOutcome.SOURCE_MISSING

    def test_rename_onto_existing(self, event):
        store(event.event_id, "a", "1.txt")
        store(event.event_id, "b", "2.txt")
        assert FileRepository.rename_folder(event.event_id, "a", "b") == RenameOutcome.TARGET_EXISTS
        assert FileRepository.get_file(event.event_id, "a", "1.txt") is not None
