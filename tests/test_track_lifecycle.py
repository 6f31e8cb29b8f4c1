"""
Tests for the track lifecycle
Submission validation, the draft -> collecting -> complete state machine and janitor work
"""
import pytest

from soundcheck.core.auth import AuthContext
from soundcheck.core.errors import (
    InsufficientCredits,
    NotFoundOrForbidden,
    StateConflict,
    UploadNotClaimable,
    ValidationError,
)
from soundcheck.database.models import Track, TrackStatus, Upload
from soundcheck.database.repositories import TrackRepository
from soundcheck.services.credit_ledger import CreditLedger
from soundcheck.services.results_service import ResultsService
from soundcheck.services.track_lifecycle import (
    TrackLifecycle,
    is_valid_audio_reference,
    validate_track_input,
)

from conftest import backdate_track, make_submission, upload_filename


@pytest.fixture
def lifecycle(db, registry, profiles, test_settings):
    return TrackLifecycle(db, registry=registry, profiles=profiles, settings=test_settings)


async def load(db, model, row_id):
    async with db.get_session() as session:
        return await session.get(model, row_id)


@pytest.mark.unit
class TestSubmissionValidation:

    def test_valid_submission_resolves_catalog_entries(self, test_settings):
        context, package = validate_track_input(
            make_submission(upload_filename(), context_id="tiktok", package_index=2),
            test_settings
        )
        assert context.id == "tiktok"
        assert (package.votes, package.credits) == (100, 12)

    @pytest.mark.parametrize("overrides,message", [
        ({"title": "   "}, "Title is required"),
        ({"title": "x" * 201}, "200 characters or fewer"),
        ({"genre_tags": ["a", "b", "c", "d", "e", "f"]}, "up to 5 genre tags"),
        ({"genre_tags": ["pop", " "]}, "non-empty string"),
        ({"genre_tags": ["x" * 51]}, "50 characters or fewer"),
        ({"audio_filename": "https://evil.example.com/a.mp3"}, "Invalid audio file URL"),
        ({"audio_filename": "/uploads/../etc/passwd"}, "Invalid audio file URL"),
        ({"audio_filename": "/uploads/123-abc.ogg"}, "Invalid audio file URL"),
        ({"duration": 0}, "Invalid duration"),
        ({"duration": float("nan")}, "Invalid duration"),
        ({"snippet_start": -1.0}, "Invalid snippet bounds"),
        ({"snippet_end": 200.0}, "Invalid snippet bounds"),
        ({"snippet_start": 50.0, "snippet_end": 40.0}, "Invalid snippet bounds"),
        ({"snippet_start": 30.0, "snippet_end": 40.0}, "between 15 and 30 seconds"),
        ({"snippet_start": 30.0, "snippet_end": 61.0}, "between 15 and 30 seconds"),
        ({"production_stage": "released"}, "Invalid production stage"),
        ({"context_id": "youtube"}, "Invalid context"),
        ({"package_index": 3}, "Invalid vote package"),
        ({"package_index": -1}, "Invalid vote package"),
    ])
    def test_rejections(self, test_settings, overrides, message):
        fields = dict(overrides)
        audio_filename = fields.pop("audio_filename", upload_filename())
        with pytest.raises(ValidationError, match=message):
            validate_track_input(make_submission(audio_filename, **fields), test_settings)

    def test_snippet_length_bounds_are_inclusive(self, test_settings):
        validate_track_input(
            make_submission(upload_filename(), snippet_start=0.0, snippet_end=15.0), test_settings
        )
        validate_track_input(
            make_submission(upload_filename(), snippet_start=0.0, snippet_end=30.0), test_settings
        )

    def test_audio_reference_under_public_base_url(self):
        base = "https://cdn.example.com"
        assert is_valid_audio_reference(f"{base}/uploads/1700000000000-abc123.wav", base)
        assert not is_valid_audio_reference(f"{base}/other/1700000000000-abc123.wav", base)
        assert not is_valid_audio_reference(None)


@pytest.mark.integration
class TestSubmitTrack:

    async def test_free_package_opens_track(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")

        track = await lifecycle.submit_track(
            AuthContext("user-a"), make_submission(upload.filename, package_index=0)
        )

        assert track.status == TrackStatus.COLLECTING.value
        assert track.votes_requested == 20
        assert track.votes_received == 0
        assert track.context_id == "spotify"
        assert len(track.share_token) == 16
        assert (await load(db, Upload, upload.id)).consumed is True

        profile = await lifecycle.profiles.get_profile("user-a")
        assert profile.credits == 20
        assert profile.tracks_uploaded == 1

    async def test_paid_package_deducts_credits(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")

        track = await lifecycle.submit_track(
            AuthContext("user-a"), make_submission(upload.filename, package_index=1)
        )

        assert track.votes_requested == 50
        async with db.get_session() as session:
            ledger = CreditLedger(session)
            assert await ledger.balance("user-a") == 15
            assert await ledger.ledger_balance("user-a") == 15
            history = await ledger.history("user-a")
        assert any(row.amount == -5 and row.reference_id == str(track.id) for row in history)

    async def test_insufficient_credits_releases_upload(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        async with db.transaction() as session:
            await CreditLedger(session).deduct("user-a", 15)
        upload = await make_upload("user-a")

        with pytest.raises(InsufficientCredits):
            await lifecycle.submit_track(
                AuthContext("user-a"), make_submission(upload.filename, package_index=2)
            )

        assert (await load(db, Upload, upload.id)).consumed is False
        async with db.get_session() as session:
            drafts = await TrackRepository(session).get_by_user("user-a")
            ledger = CreditLedger(session)
            assert await ledger.balance("user-a") == 5
            assert await ledger.ledger_balance("user-a") == 5
        assert [t.status for t in drafts] == [TrackStatus.DRAFT.value]

        # The released upload can back a cheaper submission
        track = await lifecycle.submit_track(
            AuthContext("user-a"), make_submission(upload.filename, package_index=1)
        )
        assert track.status == TrackStatus.COLLECTING.value

    async def test_unpaid_draft_has_no_share_link(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        async with db.transaction() as session:
            await CreditLedger(session).deduct("user-a", 15)
        upload = await make_upload("user-a")
        with pytest.raises(InsufficientCredits):
            await lifecycle.submit_track(
                AuthContext("user-a"), make_submission(upload.filename, package_index=2)
            )
        async with db.get_session() as session:
            (draft,) = await TrackRepository(session).get_by_user("user-a")

        assert await lifecycle.get_track_by_share_token(draft.share_token) is None
        with pytest.raises(NotFoundOrForbidden):
            await ResultsService(db).get_results(draft.id, share_token=draft.share_token)

    async def test_upload_cannot_back_two_tracks(self, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")
        await lifecycle.submit_track(AuthContext("user-a"), make_submission(upload.filename))

        with pytest.raises(UploadNotClaimable):
            await lifecycle.submit_track(AuthContext("user-a"), make_submission(upload.filename))

    async def test_foreign_upload_is_rejected(self, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")

        with pytest.raises(UploadNotClaimable):
            await lifecycle.submit_track(AuthContext("user-b"), make_submission(upload.filename))

    async def test_activate_twice_conflicts_and_refunds(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")
        track = await lifecycle.submit_track(
            AuthContext("user-a"), make_submission(upload.filename, package_index=1)
        )

        with pytest.raises(StateConflict):
            await lifecycle.activate(track.id, "spotify", 50, "user-a", credits_paid=5)

        async with db.get_session() as session:
            ledger = CreditLedger(session)
            assert await ledger.balance("user-a") == 20
            assert await ledger.ledger_balance("user-a") == 20


@pytest.mark.integration
class TestDeleteTrack:

    async def test_collecting_track_cannot_be_deleted(self, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")
        track = await lifecycle.submit_track(AuthContext("user-a"), make_submission(upload.filename))

        with pytest.raises(StateConflict):
            await lifecycle.delete_track(track.id, "user-a")

    async def test_complete_track_can_be_deleted(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")
        track = await lifecycle.submit_track(AuthContext("user-a"), make_submission(upload.filename))
        async with db.transaction() as session:
            assert await TrackRepository(session).complete(track.id, 7.5, None)

        await lifecycle.delete_track(track.id, "user-a")

        assert (await load(db, Track, track.id)).is_deleted is True
        assert await lifecycle.get_track_by_id(track.id) is None
        assert await lifecycle.get_track_by_share_token(track.share_token) is None
        with pytest.raises(NotFoundOrForbidden):
            await lifecycle.delete_track(track.id, "user-a")

    async def test_other_users_cannot_delete(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")
        track = await lifecycle.submit_track(AuthContext("user-a"), make_submission(upload.filename))
        async with db.transaction() as session:
            await TrackRepository(session).complete(track.id, 7.5, None)

        with pytest.raises(NotFoundOrForbidden):
            await lifecycle.delete_track(track.id, "user-b")
        assert (await load(db, Track, track.id)).is_deleted is False


@pytest.mark.integration
class TestReadSurface:

    async def test_owned_track_lookup(self, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")
        track = await lifecycle.submit_track(AuthContext("user-a"), make_submission(upload.filename))

        assert (await lifecycle.get_owned_track(track.id, "user-a")).id == track.id
        with pytest.raises(NotFoundOrForbidden):
            await lifecycle.get_owned_track(track.id, "user-b")

    async def test_pagination(self, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        for _ in range(4):
            upload = await make_upload("user-a")
            await lifecycle.submit_track(AuthContext("user-a"), make_submission(upload.filename))

        first = await lifecycle.get_tracks_by_user("user-a", page=1, per_page=3)
        second = await lifecycle.get_tracks_by_user("user-a", page=2, per_page=3)

        assert first["total"] == 4
        assert first["total_pages"] == 2
        assert len(first["tracks"]) == 3
        assert len(second["tracks"]) == 1

    async def test_next_track_skips_own_and_rated(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        await make_profile("user-b")
        upload = await make_upload("user-a")
        track = await lifecycle.submit_track(AuthContext("user-a"), make_submission(upload.filename))

        assert await lifecycle.get_next_track_to_rate("user-a") is None
        assert (await lifecycle.get_next_track_to_rate("user-b")).id == track.id

        from soundcheck.database.repositories import RatingRepository
        async with db.transaction() as session:
            await RatingRepository(session).create(track.id, "user-b", [5, 5, 5, 5], None)
        assert await lifecycle.get_next_track_to_rate("user-b") is None


@pytest.mark.integration
class TestDraftReclaim:

    async def test_stale_draft_is_removed(self, db, lifecycle, make_upload, make_profile, storage):
        await make_profile("user-a")
        data_url = await storage.upload("1700000000000-d00d00.mp3", b"ID3")
        async with db.transaction() as session:
            draft = await TrackRepository(session).create_draft(
                "user-a", "Abandoned", data_url, 60.0, [], 0.0, 20.0, "demo", "tok-stale"
            )
        await backdate_track(db, draft.id)

        assert await lifecycle.reclaim_stale_drafts() == 1
        assert await load(db, Track, draft.id) is None
        assert not (storage.root / "uploads" / "1700000000000-d00d00.mp3").exists()

    async def test_draft_with_registered_upload_keeps_audio(self, db, lifecycle, make_upload, make_profile, storage):
        await make_profile("user-a")
        async with db.transaction() as session:
            await CreditLedger(session).deduct("user-a", 20)
        upload = await make_upload("user-a")
        with pytest.raises(InsufficientCredits):
            await lifecycle.submit_track(
                AuthContext("user-a"), make_submission(upload.filename, package_index=1)
            )

        async with db.get_session() as session:
            (draft,) = await TrackRepository(session).get_by_user("user-a")
        await backdate_track(db, draft.id)

        assert await lifecycle.reclaim_stale_drafts() == 1
        assert await load(db, Track, draft.id) is None
        assert await load(db, Upload, upload.id) is not None

    async def test_active_tracks_are_not_reclaimed(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        upload = await make_upload("user-a")
        track = await lifecycle.submit_track(AuthContext("user-a"), make_submission(upload.filename))
        await backdate_track(db, track.id)

        assert await lifecycle.reclaim_stale_drafts() == 0
        assert await load(db, Track, track.id) is not None

    async def test_no_ledger_row_for_failed_payment(self, db, lifecycle, make_upload, make_profile):
        await make_profile("user-a")
        async with db.transaction() as session:
            await CreditLedger(session).deduct("user-a", 20)
        upload = await make_upload("user-a")
        with pytest.raises(InsufficientCredits):
            await lifecycle.submit_track(
                AuthContext("user-a"), make_submission(upload.filename, package_index=1)
            )

        async with db.get_session() as session:
            rows = await CreditLedger(session).history("user-a")
        assert sorted(row.amount for row in rows) == [-20, 20]
