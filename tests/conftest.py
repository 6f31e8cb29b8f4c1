"""
SoundCheck Testing Configuration
Pytest fixtures and test setup
"""
import pytest
import secrets
from datetime import timedelta
from pathlib import Path

import httpx
from sqlalchemy import update

from soundcheck.core.auth import AuthContext
from soundcheck.core.config import SoundCheckSettings
from soundcheck.database.connection import DatabaseManager, database_manager
from soundcheck.database.models import Track, Upload, utcnow
from soundcheck.database.repositories import TrackRepository
from soundcheck.database.schemas import TrackSubmission
from soundcheck.services.profile_service import ProfileService
from soundcheck.services.storage import LocalStorageBackend, set_storage_backend
from soundcheck.services.upload_registry import UploadClaimRegistry


def sqlite_url(directory: Path) -> str:
    return f"sqlite+aiosqlite:///{directory / 'soundcheck_test.db'}"


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated to a temporary directory"""
    return SoundCheckSettings(
        STORAGE_PATH=str(tmp_path / "public"),
        LOG_FILE_PATH=str(tmp_path / "logs" / "soundcheck.log"),
        INSIGHT_SERVICE_URL=None,
        CLEANUP_SECRET=None,
    )


@pytest.fixture
def storage(tmp_path):
    """Local storage rooted in a temporary directory"""
    backend = LocalStorageBackend(str(tmp_path / "public"))
    set_storage_backend(backend)
    yield backend
    set_storage_backend(None)


@pytest.fixture
async def db(tmp_path):
    """Fresh SQLite database with all tables created"""
    manager = DatabaseManager()
    await manager.initialize(sqlite_url(tmp_path))
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def app_db(tmp_path, storage):
    """Initialize the global database manager used by the API routes.

    ASGITransport does not run the lifespan, so startup is done here.
    """
    from soundcheck.api.dependencies import close_milestone_notifier

    await database_manager.initialize(sqlite_url(tmp_path))
    await database_manager.create_all()
    yield database_manager
    await close_milestone_notifier()
    await database_manager.close()


@pytest.fixture
async def client(app_db):
    """Async HTTP client bound to the FastAPI app"""
    from soundcheck.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def profiles(db, test_settings):
    return ProfileService(db, test_settings)


@pytest.fixture
def registry(db, storage, test_settings):
    return UploadClaimRegistry(db, storage=storage, settings=test_settings)


@pytest.fixture
def make_profile(profiles):
    """Create a profile for a user id and return it"""
    async def _make(user_id: str, display_name: str = None):
        return await profiles.ensure_profile(AuthContext(user_id=user_id, display_name=display_name))
    return _make


_upload_counter = {"n": 0}


def upload_filename(extension: str = "mp3") -> str:
    """Unique path in the accepted /uploads/<timestamp>-<random>.<ext> shape"""
    _upload_counter["n"] += 1
    return f"/uploads/{1700000000000 + _upload_counter['n']}-a1b2c3.{extension}"


@pytest.fixture
def make_upload(registry):
    """Register an unconsumed upload owned by a user"""
    async def _make(owner_id: str, filename: str = None):
        return await registry.register(
            owner_id, filename or upload_filename(), "demo.mp3", 1024
        )
    return _make


def make_submission(audio_filename: str, **overrides) -> TrackSubmission:
    fields = {
        "title": "Midnight Drive",
        "audio_filename": audio_filename,
        "duration": 180.0,
        "genre_tags": ["synthwave"],
        "snippet_start": 30.0,
        "snippet_end": 55.0,
        "production_stage": "mixed",
        "context_id": "spotify",
        "package_index": 0,
    }
    fields.update(overrides)
    return TrackSubmission(**fields)


async def open_track(
    db: DatabaseManager,
    owner_id: str,
    votes: int = 5,
    context_id: str = "spotify",
    snippet=(30.0, 55.0)
) -> Track:
    """Insert a track already collecting toward an arbitrary vote target"""
    async with db.transaction() as session:
        tracks = TrackRepository(session)
        draft = await tracks.create_draft(
            user_id=owner_id,
            title="Test Track",
            audio_filename=upload_filename(),
            duration=180.0,
            genre_tags=["pop"],
            snippet_start=snippet[0],
            snippet_end=snippet[1],
            production_stage="demo",
            share_token=secrets.token_hex(8)
        )
        return await tracks.activate(draft.id, context_id, votes)


async def backdate(db: DatabaseManager, model, row_id, hours: int = 48) -> None:
    """Move a row's created_at into the past"""
    async with db.transaction() as session:
        await session.execute(
            update(model)
            .where(model.id == row_id)
            .values(created_at=utcnow() - timedelta(hours=hours))
        )


async def backdate_upload(db: DatabaseManager, upload_id, hours: int = 48) -> None:
    await backdate(db, Upload, upload_id, hours)


async def backdate_track(db: DatabaseManager, track_id, hours: int = 48) -> None:
    await backdate(db, Track, track_id, hours)


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
