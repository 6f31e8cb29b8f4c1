"""
SoundCheck Score Compute
Final overall score and in-context percentile for tracks reaching their vote target
"""

import hashlib
import time
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

import numpy as np
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..core.config import get_settings
from ..core.errors import SoundCheckError
from ..core.logging import lifecycle_logger, performance_logger
from ..database.connection import DatabaseManager
from ..database.models import TrackStatus
from ..database.repositories import RatingRepository, TrackRepository


def round_half_up(value: float, places: int = 0) -> float:
    """Round halves away from zero (2.25 -> 2.3), unlike round()"""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def dimension_averages(rows: Sequence[Sequence[int]]) -> List[float]:
    """Unrounded per-dimension means over rating rows"""
    if not rows:
        return []
    matrix = np.asarray(rows, dtype=float)
    return [float(v) for v in matrix.mean(axis=0)]


def overall_score(averages: Sequence[float], precision: int = 1) -> float:
    """Mean of the dimension averages, rounded once"""
    return round_half_up(float(np.mean(averages)), precision)


def percentile_rank(score: float, peer_scores: Sequence[float]) -> Optional[float]:
    """Share of the other tracks scoring strictly below, 0-100.

    The track itself is part of the population: with N scores including its
    own, percentile = 100 * below / (N - 1). None when N < 2.
    """
    population = list(peer_scores) + [score]
    if len(population) < 2:
        return None
    below = sum(1 for s in population if s < score)
    return round_half_up(100 * below / (len(population) - 1), 0)


def advisory_lock_key(track_id: uuid.UUID) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock"""
    digest = hashlib.blake2b(track_id.bytes, digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class ScoreComputer:
    """Completes a track exactly once, whatever the number of concurrent callers"""

    def __init__(self, db: DatabaseManager, settings=None):
        self.db = db
        self.settings = settings or get_settings()

    def _use_advisory_lock(self) -> bool:
        return (
            self.settings.SCORE_LOCK_STRATEGY == "advisory"
            and self.db.dialect_name == "postgresql"
        )

    async def compute_scores(self, track_id: uuid.UUID) -> bool:
        """Score a track that reached its target; returns True if this call completed it"""
        start_time = time.perf_counter()
        ratings_count = 0
        peers_count = 0
        committed = False

        async with self.db.transaction() as session:
            if self._use_advisory_lock():
                await session.execute(
                    text("SELECT pg_advisory_xact_lock(:key)"),
                    {"key": advisory_lock_key(track_id)}
                )

            tracks = TrackRepository(session)
            status = await tracks.get_status(track_id)
            if status is None or status == TrackStatus.COMPLETE.value:
                return False

            ratings = await RatingRepository(session).get_by_track(track_id)
            ratings_count = len(ratings)
            if not ratings:
                return False

            averages = dimension_averages([r.dimensions for r in ratings])
            score = overall_score(averages, self.settings.SCORE_PRECISION)

            track = await tracks.get(track_id)
            percentile = None
            if track is not None and track.context_id:
                peers = await tracks.completed_scores_in_context(track.context_id, track_id)
                peers_count = len(peers)
                percentile = percentile_rank(score, peers)

            committed = await tracks.complete(track_id, score, percentile)

        duration_ms = (time.perf_counter() - start_time) * 1000
        performance_logger.log_score_computation(
            str(track_id), duration_ms, ratings_count, peers_count, committed
        )
        if committed:
            lifecycle_logger.log_transition(
                str(track_id),
                TrackStatus.COLLECTING.value,
                TrackStatus.COMPLETE.value,
                overall_score=score,
                percentile=percentile
            )
        return committed

    async def complete_pending_tracks(self, limit: int = 100) -> int:
        """Retry score computation for tracks left collecting at their target"""
        async with self.db.get_session() as session:
            track_ids = await TrackRepository(session).get_awaiting_scores(limit)

        completed = 0
        failed = 0
        for track_id in track_ids:
            try:
                if await self.compute_scores(track_id):
                    completed += 1
            except (SoundCheckError, SQLAlchemyError) as e:
                failed += 1
                lifecycle_logger.log_error("compute_scores", str(e), track_id=str(track_id))

        lifecycle_logger.log_reclaim("pending_scores", completed, failed)
        return completed
