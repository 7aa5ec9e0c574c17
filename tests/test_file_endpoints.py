"""Tests for file and folder API endpoints."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from helpers import GUEST_PASSWORD, admin_auth, basic_auth, guest_auth

EVENT = "summer-party"
FILES_URL = f"/api/events/{EVENT}/files"


@pytest.fixture
def open_event(create_event):
    create_event(EVENT)
    return EVENT


@pytest.fixture
def secured_event(create_event):
    create_event(EVENT, guestPassword=GUEST_PASSWORD, allowGuestDownload=True)
    return EVENT


class TestUpload:
    """Test POST /api/events/{eventId}/files."""

    def test_upload_single_file(self, client, open_event, upload):
        response = upload(open_event, [("hello.txt", b"hello world", "text/plain")])
        assert response.status_code == 200
        assert response.json() == {
            "message": "Files uploaded successfully.",
            "uploaded": 1,
            "rejected": [],
        }

        listing = client.get(FILES_URL).json()
        assert listing["folder"] == ""
        assert [entry["name"] for entry in listing["files"]] == ["hello.txt"]
        assert listing["files"][0]["size"] == 11

    def test_duplicate_names_are_suffixed(self, client, open_event, upload):
        upload(open_event, [("photo.jpg", b"1", "image/jpeg")])
        upload(open_event, [("photo.jpg", b"2", "image/jpeg"), ("photo.jpg", b"3", "image/jpeg")])

        names = [entry["name"] for entry in client.get(FILES_URL).json()["files"]]
        assert names == ["photo.jpg", "photo_1.jpg", "photo_2.jpg"]

    def test_upload_into_folder(self, client, open_event, upload):
        response = upload(open_event, [("a.txt", b"a")], folder="day 1/photos")
        assert response.json()["uploaded"] == 1

        assert client.get(FILES_URL).json()["folders"] == ["day 1"]
        listing = client.get(FILES_URL, params={"folder": "day 1/photos"}).json()
        assert listing["folder"] == "day 1/photos"
        assert [entry["name"] for entry in listing["files"]] == ["a.txt"]

    def test_invalid_upload_folder(self, open_event, upload):
        response = upload(open_event, [("a.txt", b"a")], folder="../etc")
        assert response.status_code == 400
        assert response.json()["property"] == "from"

    def test_upload_folder_required(self, create_event, upload):
        create_event(EVENT, requireUploadFolder=True, uploadFolderHint="Use your table name")
        response = upload(EVENT, [("a.txt", b"a")])
        assert response.status_code == 400
        assert response.json()["errorKey"] == "UPLOAD_FOLDER_REQUIRED"
        assert upload(EVENT, [("a.txt", b"a")], folder="table 4").json()["uploaded"] == 1

    def test_mime_type_filter(self, create_event, upload):
        create_event(EVENT, allowedMimeTypes=["image/*"])
        response = upload(EVENT, [("a.png", b"x", "image/png"), ("b.txt", b"y", "text/plain")])
        data = response.json()
        assert data["uploaded"] == 1
        assert data["rejected"] == [{"file": "b.txt", "reason": "File type not allowed."}]

    def test_file_size_ceiling(self, create_event, upload, monkeypatch):
        monkeypatch.setattr("partyupload.config.UPLOAD_MAX_FILE_SIZE_BYTES", 4)
        create_event(EVENT)
        data = upload(EVENT, [("small.txt", b"1234"), ("big.txt", b"12345")]).json()
        assert data["uploaded"] == 1
        assert data["rejected"] == [{"file": "big.txt", "reason": "File is too large."}]

    def test_total_size_ceiling(self, create_event, upload, monkeypatch):
        monkeypatch.setattr("partyupload.config.UPLOAD_MAX_TOTAL_SIZE_BYTES", 6)
        create_event(EVENT)
        data = upload(EVENT, [("a.txt", b"1234"), ("b.txt", b"1234")]).json()
        assert data["uploaded"] == 1
        assert data["rejected"] == [{"file": "b.txt", "reason": "Upload limit for this event reached."}]

    def test_no_files(self, client, open_event):
        response = client.post(FILES_URL, data={"from": ""})
        assert response.status_code == 200
        assert response.json() == {"message": "No files were uploaded.", "uploaded": 0, "rejected": []}

    def test_guest_uploads_disabled(self, create_event, upload):
        create_event(EVENT, guestPassword=GUEST_PASSWORD, allowGuestDownload=True, allowGuestUpload=False)
        response = upload(EVENT, [("a.txt", b"a")], headers=guest_auth())
        assert response.status_code == 403
        assert response.json()["errorKey"] == "GUEST_UPLOADS_DISABLED"

        assert upload(EVENT, [("a.txt", b"a")], headers=admin_auth()).json()["uploaded"] == 1

    def test_secured_upload_requires_credentials(self, secured_event, upload):
        assert upload(secured_event, [("a.txt", b"a")]).status_code == 401
        assert upload(secured_event, [("a.txt", b"a")], headers=guest_auth()).status_code == 200

    def test_upload_to_unknown_event(self, upload, client):
        response = upload("ghost-event", [("a.txt", b"a")])
        assert response.status_code == 404

    def test_blob_written_under_namespace(self, open_event, upload, storage):
        upload(open_event, [("a.txt", b"hello")])
        blobs = list((storage / EVENT / "blobs").iterdir())
        assert len(blobs) == 1
        assert blobs[0].read_bytes() == b"hello"

    def test_unaddressable_name_is_rejected(self, client, open_event, upload):
        data = upload(open_event, [("a..b.txt", b"x"), ("ok.txt", b"y")]).json()

        assert data["uploaded"] == 1
        assert data["rejected"] == [{"file": "a..b.txt", "reason": "Invalid file name."}]
        assert [entry["name"] for entry in client.get(FILES_URL).json()["files"]] == ["ok.txt"]


class TestConcurrentUploads:
    """Test parallel uploads of the same name."""

    def test_same_name_never_collides(self, client, open_event, upload):
        count = 8
        with ThreadPoolExecutor(max_workers=count) as pool:
            responses = list(pool.map(
                lambda index: upload(open_event, [("same.txt", f"copy {index}".encode())]),
                range(count),
            ))

        assert all(response.json()["uploaded"] == 1 for response in responses)
        files = client.get(FILES_URL).json()["files"]
        names = {entry["name"] for entry in files}
        assert len(names) == count
        assert names == {"same.txt"} | {f"same_{n}.txt" for n in range(1, count)}

        contents = {client.get(f"{FILES_URL}/{name}").content for name in names}
        assert contents == {f"copy {index}".encode() for index in range(count)}


class TestListing:
    """Test GET /api/events/{eventId}/files."""

    def test_empty_listing(self, client, open_event):
        assert client.get(FILES_URL).json() == {"folder": "", "folders": [], "files": []}

    def test_invalid_folder(self, client, open_event):
        response = client.get(FILES_URL, params={"folder": "a//b"})
        assert response.status_code == 400
        assert response.json()["errorKey"] == "INVALID_FOLDER"

    def test_guest_downloads_disabled(self, client, create_event):
        create_event(EVENT, guestPassword=GUEST_PASSWORD, allowGuestDownload=False)
        response = client.get(FILES_URL, headers=guest_auth())
        assert response.status_code == 403
        assert response.json()["errorKey"] == "GUEST_DOWNLOADS_DISABLED"

        assert client.get(FILES_URL, headers=admin_auth()).status_code == 200

    def test_guest_listing_on_secured_event(self, client, secured_event, upload):
        upload(secured_event, [("a.txt", b"a")], headers=guest_auth())
        response = client.get(FILES_URL, headers=guest_auth())
        assert response.status_code == 200
        assert len(response.json()["files"]) == 1


class TestDownload:
    """Test GET /api/events/{eventId}/files/{filename}."""

    def test_download_root_file(self, client, open_event, upload):
        upload(open_event, [("hello.txt", b"hello world", "text/plain")])

        response = client.get(f"{FILES_URL}/hello.txt")

        assert response.status_code == 200
        assert response.content == b"hello world"
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["content-length"] == "11"
        assert response.headers["content-disposition"] == 'inline; filename="hello.txt"'
        assert response.headers["cache-control"] == "public, max-age=86400"

    def test_download_from_folder_path(self, client, open_event, upload):
        upload(open_event, [("a.txt", b"in folder")], folder="photos")
        response = client.get(f"{FILES_URL}/photos/a.txt")
        assert response.content == b"in folder"

    def test_download_from_folder_query(self, client, open_event, upload):
        upload(open_event, [("a.txt", b"nested")], folder="day 1/photos")
        response = client.get(f"{FILES_URL}/a.txt", params={"folder": "day 1/photos"})
        assert response.content == b"nested"

    def test_missing_file(self, client, open_event):
        response = client.get(f"{FILES_URL}/nope.txt")
        assert response.status_code == 404
        assert response.json()["errorKey"] == "FILE_NOT_FOUND"

    def test_traversal_in_name(self, client, open_event):
        response = client.get(f"{FILES_URL}/..%2Fsecret.txt")
        assert response.status_code == 400
        assert response.json()["errorKey"] == "INVALID_FILENAME"

    def test_traversal_in_folder_query(self, client, open_event):
        response = client.get(f"{FILES_URL}/a.txt", params={"folder": "../other"})
        assert response.status_code == 400
        assert response.json()["errorKey"] == "INVALID_FILENAME"

    def test_secured_download_needs_guest(self, client, secured_event, upload):
        upload(secured_event, [("a.txt", b"a")], headers=admin_auth())
        assert client.get(f"{FILES_URL}/a.txt").status_code == 401
        assert client.get(f"{FILES_URL}/a.txt", headers=basic_auth("guest", "wrong")).status_code == 403
        assert client.get(f"{FILES_URL}/a.txt", headers=guest_auth()).content == b"a"


class TestDeleteFile:
    """Test DELETE /api/events/{eventId}/files/{filename}."""

    def test_delete_file(self, client, open_event, upload, storage):
        upload(open_event, [("a.txt", b"a")])

        response = client.delete(f"{FILES_URL}/a.txt", headers=admin_auth())

        assert response.status_code == 200
        assert response.json() == {"ok": True, "message": "File deleted."}
        assert client.get(f"{FILES_URL}/a.txt").status_code == 404
        assert list((storage / EVENT / "blobs").iterdir()) == []

    def test_delete_in_folder_prunes_empty_folder(self, client, open_event, upload):
        upload(open_event, [("a.txt", b"a")], folder="photos")
        client.delete(f"{FILES_URL}/photos/a.txt", headers=admin_auth())
        assert client.get(FILES_URL).json()["folders"] == []

    def test_delete_requires_admin(self, client, secured_event, upload):
        upload(secured_event, [("a.txt", b"a")], headers=guest_auth())
        assert client.delete(f"{FILES_URL}/a.txt").status_code == 401
        assert client.delete(f"{FILES_URL}/a.txt", headers=guest_auth()).status_code == 403

    def test_delete_missing(self, client, open_event):
        response = client.delete(f"{FILES_URL}/nope.txt", headers=admin_auth())
        assert response.status_code == 404


class TestRenameFolder:
    """Test PATCH /api/events/{eventId}/folders/{folder}."""

    def test_rename_folder(self, client, open_event, upload):
        upload(open_event, [("a.txt", b"a")], folder="day 1/photos")

        response = client.patch(
            f"/api/events/{EVENT}/folders/day 1/photos", json={"to": "pictures"}, headers=admin_auth()
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        listing = client.get(FILES_URL, params={"folder": "day 1"}).json()
        assert listing["folders"] == ["pictures"]

    def test_rename_conflict(self, client, open_event, upload):
        upload(open_event, [("a.txt", b"a")], folder="a")
        upload(open_event, [("b.txt", b"b")], folder="b")

        response = client.patch(f"/api/events/{EVENT}/folders/a", json={"to": "b"}, headers=admin_auth())

        assert response.status_code == 409
        assert response.json()["errorKey"] == "FOLDER_ALREADY_EXISTS"

    def test_rename_missing_folder(self, client, open_event):
        response = client.patch(f"/api/events/{EVENT}/folders/nope", json={"to": "x"}, headers=admin_auth())
        assert response.status_code == 404
        assert response.json()["errorKey"] == "FOLDER_NOT_FOUND"

    def test_rename_invalid_target(self, client, open_event, upload):
        upload(open_event, [("a.txt", b"a")], folder="a")
        response = client.patch(f"/api/events/{EVENT}/folders/a", json={"to": "x/y"}, headers=admin_auth())
        assert response.status_code == 400
        assert response.json()["property"] == "to"

    def test_rename_requires_admin(self, client, open_event, upload):
        upload(open_event, [("a.txt", b"a")], folder="a")
        response = client.patch(f"/api/events/{EVENT}/folders/a", json={"to": "b"})
        assert response.status_code == 401


class TestUploadRacingDeletion:
    """Test uploads that finish after their event was deleted."""

    def test_upload_fails_and_leaves_no_blob(self, client, open_event, upload, storage, monkeypatch):
        from partyupload.blob_storage import write_blob
        from partyupload.repositories.event_repository import EventRepository

        def write_then_lose_event(event_id, storage_key, source):
            written = write_blob(event_id, storage_key, source)
            EventRepository.delete_event(event_id)
            return written

        monkeypatch.setattr("partyupload.services.file_service.write_blob", write_then_lose_event)

        response = upload(open_event, [("a.txt", b"late bytes")])

        assert response.status_code == 404
        assert response.json()["errorKey"] == "EVENT_NOT_FOUND"
        assert not (storage / EVENT).exists()
