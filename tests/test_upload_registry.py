"""
Tests for the upload claim registry and local storage
"""
from pathlib import Path

import pytest

from soundcheck.core.errors import RateLimitExceeded, UploadNotClaimable, ValidationError
from soundcheck.database.models import Upload
from soundcheck.services.storage import LocalStorageBackend, generate_upload_name
from soundcheck.services.track_lifecycle import is_valid_audio_reference

from conftest import backdate_upload, upload_filename


async def claim(db, registry, filename, owner_id):
    async with db.transaction() as session:
        return await registry.claim(filename, owner_id, session)


async def load_upload(db, upload_id):
    async with db.get_session() as session:
        return await session.get(Upload, upload_id)


@pytest.mark.unit
class TestFileValidation:

    def test_accepts_matching_type_and_extension(self, registry):
        assert registry.validate_file("beat.MP3", "audio/mpeg", 1024) == "mp3"
        assert registry.validate_file("take.m4a", "audio/mp4", 1024) == "m4a"

    def test_empty_file(self, registry):
        with pytest.raises(ValidationError, match="No file provided"):
            registry.validate_file("beat.mp3", "audio/mpeg", 0)

    def test_too_large(self, registry, test_settings):
        with pytest.raises(ValidationError, match="File too large"):
            registry.validate_file("beat.mp3", "audio/mpeg", test_settings.MAX_UPLOAD_SIZE + 1)

    @pytest.mark.parametrize("name,content_type", [
        ("beat.exe", "audio/mpeg"),
        ("beat.mp3", "application/octet-stream"),
        ("beat", "audio/mpeg"),
        ("beat.flac", "audio/flac"),
    ])
    def test_type_and_extension_must_both_match(self, registry, name, content_type):
        with pytest.raises(ValidationError, match="Invalid file type"):
            registry.validate_file(name, content_type, 1024)


@pytest.mark.unit
class TestLocalStorage:

    async def test_upload_and_delete(self, tmp_path):
        backend = LocalStorageBackend(str(tmp_path / "public"))
        name = generate_upload_name("wav")

        url = await backend.upload(name, b"RIFF")
        assert url == f"/uploads/{name}"
        assert (tmp_path / "public" / "uploads" / name).read_bytes() == b"RIFF"

        await backend.delete([url])
        assert not (tmp_path / "public" / "uploads" / name).exists()

        # Deleting again is not an error
        await backend.delete([url])

    async def test_public_base_url(self, tmp_path):
        backend = LocalStorageBackend(str(tmp_path / "public"), "https://cdn.example.com/")
        url = await backend.upload("1700000000000-abc123.mp3", b"ID3")
        assert url == "https://cdn.example.com/uploads/1700000000000-abc123.mp3"

        await backend.delete([url])
        assert not (tmp_path / "public" / "uploads" / "1700000000000-abc123.mp3").exists()

    async def test_traversal_is_blocked(self, tmp_path):
        backend = LocalStorageBackend(str(tmp_path / "public"))
        with pytest.raises(ValueError):
            await backend.delete(["/uploads/../../secret.txt"])

    def test_generated_names_are_accepted_references(self):
        name = generate_upload_name("MP3")
        assert name.endswith(".mp3")
        assert is_valid_audio_reference(f"/uploads/{name}")


@pytest.mark.integration
class TestUploadClaims:

    async def test_accept_upload_stores_and_registers(self, registry, make_profile, storage):
        await make_profile("user-a")

        upload = await registry.accept_upload("user-a", "song.mp3", "audio/mpeg", b"ID3data")

        assert upload.consumed is False
        assert upload.size == 7
        assert upload.filename.startswith("/uploads/")
        stored = Path(storage.root) / upload.filename.lstrip("/")
        assert stored.read_bytes() == b"ID3data"

    async def test_rejected_file_is_not_stored(self, registry, make_profile, storage):
        await make_profile("user-a")

        with pytest.raises(ValidationError):
            await registry.accept_upload("user-a", "song.txt", "text/plain", b"hello")

        uploads_dir = Path(storage.root) / "uploads"
        assert not uploads_dir.exists() or not any(uploads_dir.iterdir())

    async def test_rate_limit(self, db, storage, make_profile, test_settings):
        from soundcheck.services.upload_registry import UploadClaimRegistry

        test_settings.MAX_UPLOADS_PER_HOUR = 2
        registry = UploadClaimRegistry(db, storage=storage, settings=test_settings)
        await make_profile("user-a")

        await registry.accept_upload("user-a", "a.mp3", "audio/mpeg", b"1")
        await registry.accept_upload("user-a", "b.mp3", "audio/mpeg", b"2")
        with pytest.raises(RateLimitExceeded):
            await registry.accept_upload("user-a", "c.mp3", "audio/mpeg", b"3")

        # Other users have their own window
        await make_profile("user-b")
        await registry.accept_upload("user-b", "d.mp3", "audio/mpeg", b"4")

    async def test_claim_succeeds_once(self, db, registry, make_profile, make_upload):
        await make_profile("user-a")
        upload = await make_upload("user-a")

        assert await claim(db, registry, upload.filename, "user-a") == upload.id
        with pytest.raises(UploadNotClaimable):
            await claim(db, registry, upload.filename, "user-a")

        assert (await load_upload(db, upload.id)).consumed is True

    async def test_foreign_upload_cannot_be_claimed(self, db, registry, make_profile, make_upload):
        await make_profile("user-a")
        await make_profile("user-b")
        upload = await make_upload("user-a")

        with pytest.raises(UploadNotClaimable):
            await claim(db, registry, upload.filename, "user-b")
        assert (await load_upload(db, upload.id)).consumed is False

    async def test_unknown_upload_cannot_be_claimed(self, db, registry, make_profile):
        await make_profile("user-a")
        with pytest.raises(UploadNotClaimable):
            await claim(db, registry, upload_filename(), "user-a")

    async def test_release_makes_upload_claimable_again(self, db, registry, make_profile, make_upload):
        await make_profile("user-a")
        upload = await make_upload("user-a")
        await claim(db, registry, upload.filename, "user-a")

        async with db.transaction() as session:
            await registry.release(upload.id, session)

        assert (await load_upload(db, upload.id)).consumed is False
        assert await claim(db, registry, upload.filename, "user-a") == upload.id


@pytest.mark.integration
class TestUploadReclaim:

    async def test_stale_unconsumed_uploads_are_removed(self, db, registry, make_profile, storage):
        await make_profile("user-a")
        stale = await registry.accept_upload("user-a", "old.mp3", "audio/mpeg", b"old")
        fresh = await registry.accept_upload("user-a", "new.mp3", "audio/mpeg", b"new")
        await backdate_upload(db, stale.id)

        removed = await registry.reclaim_stale_uploads()

        assert removed == 1
        assert await load_upload(db, stale.id) is None
        assert await load_upload(db, fresh.id) is not None
        assert not (Path(storage.root) / stale.filename.lstrip("/")).exists()
        assert (Path(storage.root) / fresh.filename.lstrip("/")).exists()

    async def test_consumed_uploads_are_kept(self, db, registry, make_profile, make_upload):
        await make_profile("user-a")
        upload = await make_upload("user-a")
        await claim(db, registry, upload.filename, "user-a")
        await backdate_upload(db, upload.id)

        assert await registry.reclaim_stale_uploads() == 0
        assert await load_upload(db, upload.id) is not None

    async def test_storage_failure_keeps_row_for_retry(self, db, make_profile, test_settings):
        from soundcheck.services.storage import StorageBackend
        from soundcheck.services.upload_registry import UploadClaimRegistry

        class BrokenStorage(StorageBackend):
            async def upload(self, filename, data):
                return f"/uploads/{filename}"

            async def delete(self, urls):
                raise OSError("storage unavailable")

        registry = UploadClaimRegistry(db, storage=BrokenStorage(), settings=test_settings)
        await make_profile("user-a")
        upload = await registry.register("user-a", upload_filename(), "x.mp3", 10)
        await backdate_upload(db, upload.id)

        assert await registry.reclaim_stale_uploads() == 0
        assert await load_upload(db, upload.id) is not None
