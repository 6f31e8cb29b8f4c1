"""
SoundCheck Results Service
Owner-facing results: dimension averages, rule-based and generated insights, feedback
"""

import uuid
from typing import Any, Dict, List, Optional, Sequence

from ..core.catalogs import context_catalog
from ..core.errors import NotFoundOrForbidden
from ..database.connection import DatabaseManager
from ..database.models import Track, TrackStatus
from ..database.repositories import InsightRepository, RatingRepository, TrackRepository
from .score_compute import dimension_averages, round_half_up

WEAK_DIMENSION_THRESHOLD = 6
HIGH_POTENTIAL_THRESHOLD = 7


def rounded_dimension_averages(rows: Sequence[Sequence[int]]) -> List[float]:
    """Per-dimension means rounded to one decimal; zeros when unrated"""
    if not rows:
        return [0.0, 0.0, 0.0, 0.0]
    return [round_half_up(avg, 1) for avg in dimension_averages(rows)]


def generate_insights(averages: Sequence[float], names: Sequence[str]) -> List[Dict[str, Any]]:
    """Rule-based insights from the dimension averages"""
    if not averages or len(names) < len(averages):
        return []

    max_idx = max(range(len(averages)), key=lambda i: averages[i])
    min_idx = min(range(len(averages)), key=lambda i: averages[i])
    if not names[max_idx] or not names[min_idx]:
        return []

    insights = [{
        "title": f"Strongest: {names[max_idx]}",
        "description": (
            f"Your {names[max_idx].lower()} scored {averages[max_idx]:.1f}/10. "
            "This is your track's standout quality. Lean into it in your promotion strategy."
        ),
        "variant": "success",
    }]

    if averages[min_idx] < WEAK_DIMENSION_THRESHOLD:
        insights.append({
            "title": f"Room to Grow: {names[min_idx]}",
            "description": (
                f"{names[min_idx]} scored {averages[min_idx]:.1f}/10. Consider reworking this "
                "aspect; small improvements here could significantly boost your overall score."
            ),
            "variant": "warning",
        })

    overall = sum(averages) / len(averages)
    if overall >= HIGH_POTENTIAL_THRESHOLD:
        insights.append({
            "title": "High Potential",
            "description": (
                "Your track scores well across all dimensions. Focus on distribution "
                "and timing for maximum impact."
            ),
            "variant": "default",
        })
    else:
        insights.append({
            "title": "Optimization Opportunity",
            "description": (
                "Your track has solid foundations. Focus on strengthening your weaker "
                "dimensions to unlock its full potential."
            ),
            "variant": "default",
        })

    return insights


class ResultsService:
    """Aggregated results for a track, visible to its owner or via share token"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def get_results(
        self,
        track_id: uuid.UUID,
        viewer_id: Optional[str] = None,
        share_token: Optional[str] = None
    ) -> Dict[str, Any]:
        async with self.db.get_session() as session:
            track = await TrackRepository(session).get(track_id)
            if not self._can_view(track, viewer_id, share_token):
                raise NotFoundOrForbidden(f"Track {track_id} not found")

            ratings = await RatingRepository(session).get_by_track(track_id)
            latest = await InsightRepository(session).get_latest(track_id)

        context = context_catalog.get(track.context_id)
        names = list(context.dimension_names) if context else []
        averages = rounded_dimension_averages([r.dimensions for r in ratings])

        return {
            "track": track,
            "dimension_names": names,
            "dimension_averages": averages,
            "insights": generate_insights(averages, names) if ratings else [],
            "ai_insights": list(latest.insights) if latest else [],
            "feedback": [r.feedback for r in ratings if r.feedback and r.feedback.strip()],
        }

    @staticmethod
    def _can_view(track: Optional[Track], viewer_id: Optional[str], share_token: Optional[str]) -> bool:
        if track is None or track.is_deleted:
            return False
        if viewer_id is not None and track.user_id == viewer_id:
            return True
        if share_token is None or track.status == TrackStatus.DRAFT.value:
            return False
        return track.share_token == share_token
