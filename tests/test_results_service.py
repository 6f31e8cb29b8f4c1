"""
Tests for owner and shared results
"""
import pytest

from soundcheck.core.errors import NotFoundOrForbidden
from soundcheck.database.repositories import InsightRepository, RatingRepository, TrackRepository
from soundcheck.services.results_service import (
    ResultsService,
    generate_insights,
    rounded_dimension_averages,
)

from conftest import open_track

NAMES = ["Hook", "Stickiness", "Moveability", "Uniqueness"]


@pytest.mark.unit
class TestRuleInsights:

    def test_strong_track(self):
        insights = generate_insights([8.0, 7.5, 9.1, 7.0], NAMES)

        assert [i["title"] for i in insights] == ["Strongest: Moveability", "High Potential"]
        assert "9.1/10" in insights[0]["description"]

    def test_weak_dimension(self):
        insights = generate_insights([6.5, 5.2, 7.0, 6.0], NAMES)

        assert [i["title"] for i in insights] == [
            "Strongest: Moveability",
            "Room to Grow: Stickiness",
            "Optimization Opportunity",
        ]
        assert insights[1]["variant"] == "warning"

    def test_missing_names(self):
        assert generate_insights([5.0, 5.0, 5.0, 5.0], []) == []

    def test_rounded_averages(self):
        assert rounded_dimension_averages([]) == [0.0, 0.0, 0.0, 0.0]
        assert rounded_dimension_averages([[1, 2, 3, 4], [2, 2, 4, 4]]) == [1.5, 2.0, 3.5, 4.0]


@pytest.mark.integration
class TestResultsService:

    async def test_owner_sees_full_results(self, db):
        track = await open_track(db, "owner", context_id="tiktok")
        async with db.transaction() as session:
            ratings = RatingRepository(session)
            await ratings.create(track.id, "r1", [8, 4, 7, 6], "Love the intro")
            await ratings.create(track.id, "r2", [9, 5, 7, 6], None)
            await InsightRepository(session).create(track.id, 5, [{"title": "t", "description": "d"}])

        data = await ResultsService(db).get_results(track.id, viewer_id="owner")

        assert data["dimension_names"] == NAMES
        assert data["dimension_averages"] == [8.5, 4.5, 7.0, 6.0]
        assert data["insights"][0]["title"] == "Strongest: Hook"
        assert data["ai_insights"] == [{"title": "t", "description": "d"}]
        assert data["feedback"] == ["Love the intro"]

    async def test_unrated_track_has_no_insights(self, db):
        track = await open_track(db, "owner")

        data = await ResultsService(db).get_results(track.id, viewer_id="owner")

        assert data["dimension_averages"] == [0.0, 0.0, 0.0, 0.0]
        assert data["insights"] == []
        assert data["ai_insights"] == []

    async def test_access_rules(self, db):
        track = await open_track(db, "owner")
        service = ResultsService(db)

        with pytest.raises(NotFoundOrForbidden):
            await service.get_results(track.id, viewer_id="stranger")
        with pytest.raises(NotFoundOrForbidden):
            await service.get_results(track.id, share_token="wrong")

        shared = await service.get_results(track.id, share_token=track.share_token)
        assert shared["track"].id == track.id

    async def test_deleted_track_is_hidden(self, db):
        track = await open_track(db, "owner")
        async with db.transaction() as session:
            tracks = TrackRepository(session)
            await tracks.complete(track.id, 5.0, None)
            await tracks.soft_delete(track.id, "owner")

        with pytest.raises(NotFoundOrForbidden):
            await ResultsService(db).get_results(track.id, viewer_id="owner")
