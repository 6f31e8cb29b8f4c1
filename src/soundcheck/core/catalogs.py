"""
SoundCheck Static Catalogs
Rating contexts, vote packages and production stages as immutable lookup tables
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Dimension:
    """One of the four scored dimensions of a rating context"""
    key: str
    name: str
    description: str
    low_label: str
    high_label: str


@dataclass(frozen=True)
class RatingContext:
    """A listening context tracks are rated against"""
    id: str
    name: str
    description: str
    dimensions: Tuple[Dimension, Dimension, Dimension, Dimension]

    @property
    def dimension_names(self) -> Tuple[str, ...]:
        return tuple(d.name for d in self.dimensions)


@dataclass(frozen=True)
class VotePackage:
    """Server-trusted votes/cost pair selected by index"""
    votes: int
    credits: int
    label: str
    description: str

    @property
    def is_free(self) -> bool:
        return self.credits == 0


@dataclass(frozen=True)
class ProductionStage:
    """How finished the submitted track is"""
    id: str
    name: str


CONTEXTS: Tuple[RatingContext, ...] = (
    RatingContext(
        id="tiktok",
        name="TikTok / Reels",
        description="Short-form viral content for social media",
        dimensions=(
            Dimension("hook", "Hook", "How quickly does it grab attention in the first 3 seconds?",
                      "Slow start", "Instant hook"),
            Dimension("stickiness", "Stickiness", "How likely is it to get stuck in your head?",
                      "Forgettable", "Total earworm"),
            Dimension("moveability", "Moveability", "Does it make you want to dance or create a trend?",
                      "No movement", "Can't sit still"),
            Dimension("uniqueness", "Uniqueness", "Does it stand out from everything else?",
                      "Sounds generic", "One of a kind"),
        ),
    ),
    RatingContext(
        id="spotify",
        name="Spotify Discover",
        description="Playlist-ready tracks for streaming discovery",
        dimensions=(
            Dimension("replay", "Replay Value", "Would you listen to this again and again?",
                      "One-time listen", "On repeat"),
            Dimension("production", "Production Quality", "How polished and professional does it sound?",
                      "Rough demo", "Studio quality"),
            Dimension("emotion", "Emotional Impact", "How strongly does it make you feel something?",
                      "No feeling", "Deep feels"),
            Dimension("playlist", "Playlist Fit", "How easily does it fit into popular playlists?",
                      "Hard to place", "Perfect fit"),
        ),
    ),
    RatingContext(
        id="radio",
        name="Radio / Mainstream",
        description="Broadcast-ready tracks for mass appeal",
        dimensions=(
            Dimension("singalong", "Sing-Along Factor", "How easy is it to sing or hum along?",
                      "Hard to follow", "Everyone sings"),
            Dimension("energy", "Energy Level", "Does it energize the listener?",
                      "Low energy", "High energy"),
            Dimension("structure", "Song Structure", "How well-structured is the verse-chorus flow?",
                      "Confusing", "Perfect flow"),
            Dimension("crossover", "Crossover Appeal", "Could this appeal to multiple demographics?",
                      "Niche only", "Universal"),
        ),
    ),
    RatingContext(
        id="sync",
        name="Sync / Licensing",
        description="Music for film, TV, ads, and games",
        dimensions=(
            Dimension("mood", "Mood Setting", "How effectively does it set a mood or scene?",
                      "No atmosphere", "Instant vibe"),
            Dimension("versatility", "Versatility", "Could this work across different types of content?",
                      "Very specific", "Fits anything"),
            Dimension("instrumental", "Instrumental Quality", "How strong is the instrumental arrangement?",
                      "Weak backing", "Rich layers"),
            Dimension("licensability", "Licensability", "How likely would a music supervisor pick this?",
                      "Unlikely", "Highly licensable"),
        ),
    ),
)

VOTE_PACKAGES: Tuple[VotePackage, ...] = (
    VotePackage(votes=20, credits=0, label="Starter", description="Free with every upload"),
    VotePackage(votes=50, credits=5, label="Standard", description="More votes, better insights"),
    VotePackage(votes=100, credits=12, label="Premium", description="Maximum feedback & accuracy"),
)

PRODUCTION_STAGES: Tuple[ProductionStage, ...] = (
    ProductionStage(id="idea", name="Idea / Sketch"),
    ProductionStage(id="demo", name="Demo"),
    ProductionStage(id="mixed", name="Mixed"),
    ProductionStage(id="mastered", name="Mastered"),
)


class ContextCatalog:
    """Lookup over the rating contexts"""

    def __init__(self, contexts: Tuple[RatingContext, ...] = CONTEXTS):
        self._by_id: Dict[str, RatingContext] = {}
        for context in contexts:
            if context.id in self._by_id:
                raise ValueError(f"Duplicate context id: {context.id}")
            if len(context.dimensions) != 4:
                raise ValueError(f"Context {context.id} must define exactly 4 dimensions")
            self._by_id[context.id] = context

    def get(self, context_id: Optional[str]) -> Optional[RatingContext]:
        if not isinstance(context_id, str):
            return None
        return self._by_id.get(context_id)

    def all(self) -> Tuple[RatingContext, ...]:
        return tuple(self._by_id.values())


class VotePackageCatalog:
    """Lookup over the vote packages; indices are the only client input accepted"""

    def __init__(self, packages: Tuple[VotePackage, ...] = VOTE_PACKAGES):
        for package in packages:
            if package.votes <= 0 or package.credits < 0:
                raise ValueError(f"Invalid vote package: {package.label}")
        self._packages = tuple(packages)

    def get(self, index) -> Optional[VotePackage]:
        # bool is an int subclass; reject it along with negative indices
        if isinstance(index, bool) or not isinstance(index, int):
            return None
        if index < 0 or index >= len(self._packages):
            return None
        return self._packages[index]

    def all(self) -> Tuple[VotePackage, ...]:
        return self._packages


class ProductionStageCatalog:
    """Lookup over the production stages"""

    def __init__(self, stages: Tuple[ProductionStage, ...] = PRODUCTION_STAGES):
        self._by_id = {stage.id: stage for stage in stages}
        if len(self._by_id) != len(stages):
            raise ValueError("Duplicate production stage id")

    def get(self, stage_id: Optional[str]) -> Optional[ProductionStage]:
        if not isinstance(stage_id, str):
            return None
        return self._by_id.get(stage_id)

    def all(self) -> Tuple[ProductionStage, ...]:
        return tuple(self._by_id.values())


# Validated at import
context_catalog = ContextCatalog()
vote_package_catalog = VotePackageCatalog()
production_stage_catalog = ProductionStageCatalog()
