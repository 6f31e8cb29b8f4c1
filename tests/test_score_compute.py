"""
Tests for score computation
Rounding, percentile rank and exactly-once completion
"""
import asyncio
import uuid

import pytest

from soundcheck.database.models import Track, TrackStatus
from soundcheck.database.repositories import RatingRepository, TrackRepository
from soundcheck.services.score_compute import (
    ScoreComputer,
    advisory_lock_key,
    dimension_averages,
    overall_score,
    percentile_rank,
    round_half_up,
)

from conftest import open_track


async def add_ratings(db, track_id, rows):
    async with db.transaction() as session:
        ratings = RatingRepository(session)
        for i, dims in enumerate(rows):
            await ratings.create(track_id, f"rater-{i}", dims, None)


async def load(db, track_id):
    async with db.get_session() as session:
        return await session.get(Track, track_id)


@pytest.mark.unit
class TestScoreMath:

    @pytest.mark.parametrize("value,places,expected", [
        (2.25, 1, 2.3),
        (2.35, 1, 2.4),
        (2.5, 0, 3.0),
        (7.45, 1, 7.5),
        (49.5, 0, 50.0),
        (7.0, 1, 7.0),
    ])
    def test_round_half_up(self, value, places, expected):
        assert round_half_up(value, places) == expected

    def test_overall_score_is_mean_of_dimension_means(self):
        averages = dimension_averages([[2, 2, 2, 2], [3, 3, 3, 3]])
        assert averages == [2.5, 2.5, 2.5, 2.5]
        assert overall_score(averages, 1) == 2.5

    def test_overall_score_rounds_half_up(self):
        # Dimension means 7.5, 7.5, 7.0, 7.0 -> 7.25 -> 7.3
        averages = dimension_averages([[7, 7, 7, 7], [8, 8, 7, 7]])
        assert overall_score(averages, 1) == 7.3

    def test_dimension_averages_empty(self):
        assert dimension_averages([]) == []

    def test_percentile_rank(self):
        assert percentile_rank(9.0, [5.0, 6.0, 7.0]) == 100
        assert percentile_rank(4.0, [5.0, 6.0, 7.0]) == 0
        assert percentile_rank(6.5, [5.0, 6.0, 7.0]) == 67
        assert percentile_rank(6.0, [6.0, 6.0]) == 0

    def test_percentile_needs_two_tracks(self):
        assert percentile_rank(8.0, []) is None

    def test_advisory_lock_key_is_stable_signed_64_bit(self):
        track_id = uuid.uuid4()
        key = advisory_lock_key(track_id)
        assert key == advisory_lock_key(track_id)
        assert -(2 ** 63) <= key < 2 ** 63


@pytest.mark.integration
class TestScoreComputer:

    async def test_first_track_in_context_has_no_percentile(self, db, test_settings):
        track = await open_track(db, "owner", votes=2)
        await add_ratings(db, track.id, [[2, 2, 2, 2], [3, 3, 3, 3]])

        assert await ScoreComputer(db, test_settings).compute_scores(track.id) is True

        scored = await load(db, track.id)
        assert scored.status == TrackStatus.COMPLETE.value
        assert scored.overall_score == 2.5
        assert scored.percentile is None

    async def test_percentile_against_completed_peers(self, db, test_settings):
        computer = ScoreComputer(db, test_settings)
        low = await open_track(db, "owner", votes=1)
        high = await open_track(db, "owner", votes=1)
        other_context = await open_track(db, "owner", votes=1, context_id="radio")

        await add_ratings(db, low.id, [[3, 3, 3, 3]])
        await add_ratings(db, high.id, [[9, 9, 9, 9]])
        await add_ratings(db, other_context.id, [[10, 10, 10, 10]])

        await computer.compute_scores(other_context.id)
        await computer.compute_scores(low.id)
        await computer.compute_scores(high.id)

        assert (await load(db, low.id)).percentile is None
        assert (await load(db, high.id)).percentile == 100
        assert (await load(db, other_context.id)).percentile is None

        lowest = await open_track(db, "owner", votes=1)
        await add_ratings(db, lowest.id, [[1, 1, 1, 1]])
        await computer.compute_scores(lowest.id)
        assert (await load(db, lowest.id)).percentile == 0

    async def test_deleted_peers_are_ignored(self, db, test_settings):
        computer = ScoreComputer(db, test_settings)
        peer = await open_track(db, "owner", votes=1)
        await add_ratings(db, peer.id, [[2, 2, 2, 2]])
        await computer.compute_scores(peer.id)
        async with db.transaction() as session:
            await TrackRepository(session).soft_delete(peer.id, "owner")

        track = await open_track(db, "owner", votes=1)
        await add_ratings(db, track.id, [[8, 8, 8, 8]])
        await computer.compute_scores(track.id)

        assert (await load(db, track.id)).percentile is None

    async def test_second_compute_is_a_noop(self, db, test_settings):
        computer = ScoreComputer(db, test_settings)
        track = await open_track(db, "owner", votes=1)
        await add_ratings(db, track.id, [[6, 6, 6, 6]])

        assert await computer.compute_scores(track.id) is True
        assert await computer.compute_scores(track.id) is False
        assert (await load(db, track.id)).overall_score == 6.0

    async def test_concurrent_computes_complete_once(self, db, test_settings):
        computer = ScoreComputer(db, test_settings)
        track = await open_track(db, "owner", votes=2)
        await add_ratings(db, track.id, [[6, 7, 8, 9], [5, 5, 5, 5]])

        results = await asyncio.gather(*[computer.compute_scores(track.id) for _ in range(4)])

        assert results.count(True) == 1
        assert (await load(db, track.id)).overall_score == 6.3

    async def test_unrated_or_missing_tracks_are_skipped(self, db, test_settings):
        computer = ScoreComputer(db, test_settings)
        track = await open_track(db, "owner", votes=1)

        assert await computer.compute_scores(track.id) is False
        assert await computer.compute_scores(uuid.uuid4()) is False
        assert (await load(db, track.id)).status == TrackStatus.COLLECTING.value
