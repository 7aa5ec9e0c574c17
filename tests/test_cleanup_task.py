"""Tests for the orphaned reservation cleaner."""

import asyncio

from partyupload.blob_storage import get_blob_path
from partyupload.cleanup_task import ReservationCleaner
from partyupload.repositories.event_repository import EventRecord, EventRepository
from partyupload.repositories.file_repository import FileRepository


def reserve(event_id: str, name: str):
    return FileRepository.reserve_file(
        event_id, "", name, 4, "text/plain", 0, "2000-01-01T00:00:00.000Z"
    ).record


class TestReservationCleaner:
    """Test sweeping of pending uploads."""

    def setup_event(self):
        EventRepository.create_event(EventRecord(
            event_id="summer-party",
            name="Summer Party",
            admin_password_hash="$2b$04$hash",
            created_at="2026-05-01T12:00:00.000Z",
        ))

    def test_cycle_removes_old_reservations(self, storage):
        self.setup_event()
        record = reserve("summer-party", "a.txt")
        blob_path = get_blob_path("summer-party", record.storage_key)
        partial = blob_path.with_name(record.storage_key + ".part")
        partial.parent.mkdir(parents=True, exist_ok=True)
        partial.write_bytes(b"half")

        # a negative timeout makes every pending row stale
        cleaner = ReservationCleaner(interval_seconds=60, timeout_seconds=-60)

        assert cleaner.cleanup_cycle() == 1
        assert not partial.exists()
        assert not FileRepository.mark_ready(record.file_id)

    def test_cycle_keeps_fresh_reservations(self, storage):
        self.setup_event()
        record = reserve("summer-party", "a.txt")

        cleaner = ReservationCleaner(interval_seconds=60, timeout_seconds=3600)

        assert cleaner.cleanup_cycle() == 0
        assert FileRepository.mark_ready(record.file_id)

    def test_start_and_stop(self, storage):
        cleaner = ReservationCleaner(interval_seconds=3600, timeout_seconds=60)

        async def run():
            await cleaner.start()
            assert cleaner._task is not None
            await cleaner.stop()

        asyncio.run(run())
        assert cleaner._task.done()
