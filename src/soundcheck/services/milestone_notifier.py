"""
SoundCheck Milestone Notifier
Fire-and-forget insight generation when a track crosses a vote milestone
"""

import asyncio
import re
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..core.catalogs import context_catalog
from ..core.config import get_settings
from ..core.errors import AlreadyExists
from ..core.logging import rating_logger
from ..core.result import Result
from ..database.connection import DatabaseManager
from ..database.repositories import InsightRepository, RatingRepository, TrackRepository
from ..database.schemas import InsightItem
from .score_compute import dimension_averages, round_half_up

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")


def sanitize_text(value: str, max_length: int = 200) -> str:
    """Collapse control characters and cap length for outbound payloads"""
    return _CONTROL_CHARS.sub(" ", value).strip()[:max_length]


class InsightGenerator(ABC):
    """External collaborator producing insight items for a track summary"""

    @abstractmethod
    async def generate(
        self,
        track_id: uuid.UUID,
        milestone: int,
        summary: Dict[str, Any]
    ) -> Result[List[Dict[str, Any]]]:
        """Return insight items; failures come back as Result.err"""

    async def close(self) -> None:
        return None


class NullInsightGenerator(InsightGenerator):
    """Used when no insight service is configured"""

    async def generate(self, track_id, milestone, summary) -> Result[List[Dict[str, Any]]]:
        return Result.ok([])


class HttpInsightGenerator(InsightGenerator):
    """Posts the track summary to an insight service over HTTP"""

    def __init__(self, base_url: str, timeout: float = 60.0):
        self.base_url = base_url
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": "SoundCheck/1.0"
                }
            )
        return self._client

    async def generate(
        self,
        track_id: uuid.UUID,
        milestone: int,
        summary: Dict[str, Any]
    ) -> Result[List[Dict[str, Any]]]:
        payload = {"track_id": str(track_id), "milestone": milestone, **summary}
        try:
            response = await self._get_client().post("/insights", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            return Result.err(f"Insight service returned {e.response.status_code}")
        except httpx.RequestError as e:
            return Result.err(f"Insight service request failed: {e}")
        except ValueError as e:
            return Result.err(f"Insight service returned invalid JSON: {e}")

        raw_items = body.get("insights", []) if isinstance(body, dict) else body
        if not isinstance(raw_items, list):
            return Result.err("Insight service response has no insight list")

        try:
            items = [InsightItem.model_validate(item).model_dump() for item in raw_items]
        except PydanticValidationError as e:
            return Result.err(f"Insight service returned malformed items: {e}")
        return Result.ok(items)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def get_insight_generator(settings=None) -> InsightGenerator:
    settings = settings or get_settings()
    if settings.INSIGHT_SERVICE_URL:
        return HttpInsightGenerator(
            settings.INSIGHT_SERVICE_URL,
            settings.INSIGHT_TIMEOUT_SECONDS
        )
    return NullInsightGenerator()


class MilestoneNotifier:
    """
    Schedules insight generation off the request path.

    Each (track, milestone) is generated at most once: an existing ai_insights
    row short-circuits the run and the unique constraint rejects late writers.
    """

    def __init__(
        self,
        db: DatabaseManager,
        generator: Optional[InsightGenerator] = None,
        settings=None
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.generator = generator or get_insight_generator(self.settings)
        self.milestones = sorted(self.settings.INSIGHT_MILESTONES)
        self._tasks: Set[asyncio.Task] = set()

    def crossed_milestone(self, before: int, after: int) -> Optional[int]:
        """Milestone m with before < m <= after, if any"""
        crossed = [m for m in self.milestones if before < m <= after]
        return crossed[-1] if crossed else None

    def schedule(self, track_id: uuid.UUID, milestone: int) -> asyncio.Task:
        """Start notify() in the background and keep a reference until it finishes"""
        rating_logger.log_milestone(str(track_id), milestone)
        task = asyncio.create_task(self.notify(track_id, milestone))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for scheduled notifications (shutdown, tests)"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def build_summary(self, track_id: uuid.UUID) -> Optional[Dict[str, Any]]:
        """Track data sent to the generator; None when there is nothing to analyze"""
        async with self.db.get_session() as session:
            track = await TrackRepository(session).get(track_id)
            if track is None:
                return None
            ratings = await RatingRepository(session).get_by_track(track_id)

        if not ratings:
            return None

        context = context_catalog.get(track.context_id)
        averages = dimension_averages([r.dimensions for r in ratings])
        feedback = [
            sanitize_text(r.feedback, self.settings.FEEDBACK_MAX_LENGTH)
            for r in ratings
            if r.feedback and r.feedback.strip()
        ]

        return {
            "title": sanitize_text(track.title, self.settings.TITLE_MAX_LENGTH),
            "genre_tags": [sanitize_text(tag, self.settings.GENRE_TAG_MAX_LENGTH)
                           for tag in (track.genre_tags or [])],
            "context": {
                "id": track.context_id,
                "name": context.name if context else None,
                "description": context.description if context else None,
            },
            "dimensions": [
                {"name": name, "average": round_half_up(avg, 1)}
                for name, avg in zip(
                    context.dimension_names if context else ("", "", "", ""),
                    averages
                )
            ],
            "votes_received": len(ratings),
            "feedback": feedback[:self.settings.INSIGHT_MAX_FEEDBACK_ITEMS],
        }

    async def notify(self, track_id: uuid.UUID, milestone: int) -> bool:
        """Generate and store insights once; returns True when a row was written"""
        try:
            async with self.db.get_session() as session:
                if await InsightRepository(session).exists_for(track_id, milestone):
                    return False

            summary = await self.build_summary(track_id)
            if summary is None:
                return False

            result = await self.generator.generate(track_id, milestone, summary)
            if result.is_err():
                rating_logger.log_insight_error(str(track_id), milestone, result.error)
                return False

            items = result.unwrap_or([])
            if not items:
                return False

            async with self.db.transaction() as session:
                await InsightRepository(session).create(track_id, milestone, items)
            return True

        except AlreadyExists:
            return False
        except Exception as e:
            # Background task: nothing above us to propagate to
            rating_logger.log_insight_error(str(track_id), milestone, str(e))
            return False

    async def close(self) -> None:
        await self.drain()
        await self.generator.close()
