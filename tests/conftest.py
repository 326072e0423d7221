"""Test configuration and fixtures"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from kiosk_cache.activation.models import ActivationKind
from kiosk_cache.app import KioskCache
from kiosk_cache.core.database import LocalStore
from kiosk_cache.core.file_manager import FileManager
from kiosk_cache.remote.models import CatalogEntry, RemoteKeyRecord

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

ENV_VARS = ("KIOSK_REMOTE_URL", "KIOSK_REMOTE_API_KEY", "SUPABASE_URL", "SUPABASE_ANON_KEY")


class FakeClock:
    """Controllable UTC clock"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeGateway:
    """In-memory stand-in for RemoteGateway"""

    def __init__(self, catalog=None, key_records=None):
        self.catalog = list(catalog or [])
        self.key_records = dict(key_records or {})
        self.assets: dict[str, bytes] = {}
        self.catalog_error: Exception | None = None
        self.key_error: Exception | None = None
        self.touch_error: Exception | None = None
        self.download_errors: dict[str, Exception] = {}
        self.catalog_calls = 0
        self.key_lookups: list[str] = []
        self.touched: list[str] = []
        self.downloaded: list[str] = []

    async def fetch_catalog(self):
        self.catalog_calls += 1
        if self.catalog_error is not None:
            raise self.catalog_error
        return list(self.catalog)

    async def fetch_key_record(self, key):
        self.key_lookups.append(key)
        if self.key_error is not None:
            raise self.key_error
        return self.key_records.get(key)

    async def touch_last_used(self, key_id):
        self.touched.append(key_id)
        if self.touch_error is not None:
            raise self.touch_error

    async def download(self, url, dest_path):
        if url in self.download_errors:
            raise self.download_errors[url]
        data = self.assets.get(url, f"video:{url}".encode())
        dest_path.write_bytes(data)
        self.downloaded.append(url)
        return len(data)

    async def close(self):
        pass


def make_entry(code: str, artist: str = "Artist", title: str | None = None, **kwargs) -> CatalogEntry:
    """Catalog entry with a predictable asset URL"""
    return CatalogEntry(
        id=kwargs.pop("id", f"id-{code}"),
        code=code,
        artist=artist,
        title=title or f"Song {code}",
        asset_url=kwargs.pop("asset_url", f"https://cdn.example.com/videos/{code}.mp4"),
        **kwargs,
    )


def make_key(
    key: str = "ABCD-1234",
    kind: ActivationKind = ActivationKind.SUBSCRIPTION,
    status: str = "ativa",
    **kwargs,
) -> RemoteKeyRecord:
    """Remote key record"""
    return RemoteKeyRecord(id=kwargs.pop("id", "key-1"), key=key, kind=kind, status=status, **kwargs)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def store(temp_dir):
    """Fresh local store"""
    local_store = LocalStore(temp_dir / "db.sqlite")
    yield local_store
    local_store.close()


@pytest.fixture
def file_manager(temp_dir):
    """Media directory inside the temp dir"""
    return FileManager(temp_dir / "media")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(store, gateway, file_manager, clock):
    """Application context wired to fakes"""
    return KioskCache(store, gateway, file_manager, batch_size=3, clock=clock)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove remote credentials from the environment, restoring afterwards"""
    for name in ENV_VARS:
        # setenv first so the undo also removes values loaded from .env files
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    return monkeypatch
