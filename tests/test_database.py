"""Test the local SQLite store"""

import sqlite3
from datetime import timedelta

import pytest

from conftest import NOW
from kiosk_cache.activation.models import ActivationKind, ActivationRecord
from kiosk_cache.core.database import LocalStore
from kiosk_cache.core.exceptions import StoreUnavailableError
from kiosk_cache.library.models import LocalTrackRecord


def make_track(code: str, **kwargs) -> LocalTrackRecord:
    defaults = {
        "id": f"id-{code}",
        "artist": "Artist",
        "title": f"Song {code}",
        "local_path": f"/media/{code}.mp4",
        "size": 1000,
    }
    defaults.update(kwargs)
    return LocalTrackRecord(code=code, **defaults)


class TestStoreLifecycle:
    """Test opening and versioning"""

    def test_missing_parent_directory(self, temp_dir):
        """Opening under a missing directory fails cleanly"""
        with pytest.raises(StoreUnavailableError):
            LocalStore(temp_dir / "missing" / "db.sqlite")

    def test_reopen_keeps_data(self, temp_dir):
        """Data survives closing and reopening"""
        first = LocalStore(temp_dir / "db.sqlite")
        first.insert_track(make_track("01009"))
        first.close()

        second = LocalStore(temp_dir / "db.sqlite")
        assert second.count_tracks() == 1
        second.close()

    def test_version_mismatch(self, temp_dir):
        """A database from another schema version is rejected"""
        db_path = temp_dir / "db.sqlite"
        LocalStore(db_path).close()

        conn = sqlite3.connect(db_path)
        conn.execute("UPDATE schema_version SET version = 99")
        conn.commit()
        conn.close()

        with pytest.raises(StoreUnavailableError) as exc_info:
            LocalStore(db_path)
        assert exc_info.value.details["actual"] == 99

    def test_sqlite_errors_are_translated(self, store):
        """Errors from a closed connection surface as StoreUnavailableError"""
        with store._get_connection() as conn:
            conn.close()
        with pytest.raises(StoreUnavailableError):
            store.count_tracks()


class TestActivationRecord:
    """Test the singleton activation record"""

    def test_empty(self, store):
        assert store.get_activation() is None

    def test_save_and_load(self, store):
        """All fields survive a round trip, timestamps stay UTC-aware"""
        record = ActivationRecord(
            key="ABCD-1234",
            kind=ActivationKind.SUBSCRIPTION,
            last_validated_at=NOW,
            remaining_days=12,
            expires_at=NOW + timedelta(days=12),
            activated_at=NOW - timedelta(days=3),
            remote_id="key-1",
        )
        store.save_activation(record)

        assert store.get_activation() == record

    def test_save_replaces_whole_record(self, store):
        """A second save replaces the first, even for a different key"""
        store.save_activation(ActivationRecord(
            key="OLD-KEY",
            kind=ActivationKind.SUBSCRIPTION,
            last_validated_at=NOW,
            remaining_days=30,
        ))
        new = ActivationRecord(
            key="NEW-KEY",
            kind=ActivationKind.MACHINE_BOUND,
            last_validated_at=NOW,
            remaining_hours=5.5,
        )
        store.save_activation(new)

        loaded = store.get_activation()
        assert loaded == new
        assert loaded.remaining_days is None

    def test_delete_is_idempotent(self, store):
        store.save_activation(ActivationRecord(
            key="ABCD-1234",
            kind=ActivationKind.SUBSCRIPTION,
            last_validated_at=NOW,
        ))
        store.delete_activation()
        store.delete_activation()
        assert store.get_activation() is None


class TestTrackIndex:
    """Test track index operations"""

    def test_insert_and_get(self, store):
        stored = store.insert_track(make_track("01009"))
        assert stored.code == "01009"
        assert stored.created_at is not None
        assert stored.synced_at is not None
        assert store.get_track("01009") == stored

    def test_insert_replaces_by_code(self, store):
        """Re-inserting a code replaces the row but keeps created_at"""
        first = store.insert_track(make_track("01009", title="Old"))
        second = store.insert_track(make_track("01009", title="New"))

        assert store.count_tracks() == 1
        assert second.title == "New"
        assert second.created_at == first.created_at

    def test_find_track_with_code_forms(self, store):
        """Raw and padded codes resolve to the stored padded record"""
        store.insert_track(make_track("01009"))

        assert store.find_track("1009").code == "01009"
        assert store.find_track("01009").code == "01009"
        assert store.track_exists("1009")
        assert store.get_track("1009") is None

    def test_find_track_missing(self, store):
        assert store.find_track("4242") is None
        assert not store.track_exists("")

    def test_search(self, store):
        """Substring search over code, artist and title, case-insensitive"""
        store.insert_track(make_track("01009", artist="Queen", title="Bohemian Rhapsody"))
        store.insert_track(make_track("01010", artist="Abba", title="Dancing Queen"))
        store.insert_track(make_track("02000", artist="Beatles", title="Hey Jude"))

        assert {t.code for t in store.search_tracks("queen")} == {"01009", "01010"}
        assert [t.code for t in store.search_tracks("0200")] == ["02000"]
        assert store.search_tracks("nothing") == []

    def test_search_is_capped(self, store):
        for n in range(60):
            store.insert_track(make_track(f"{n:05d}"))
        assert len(store.search_tracks("Song")) == 50

    def test_counts_and_bytes(self, store):
        store.insert_track(make_track("00001", size=1500))
        store.insert_track(make_track("00002", size=2500))
        store.insert_track(make_track("00003", size=None))

        assert store.count_tracks() == 3
        assert store.total_bytes() == 4000
        assert store.indexed_codes() == {"00001", "00002", "00003"}

    def test_total_bytes_empty(self, store):
        assert store.total_bytes() == 0

    def test_random_track_code(self, store):
        assert store.random_track_code() is None
        store.insert_track(make_track("00001"))
        store.insert_track(make_track("00002"))
        assert store.random_track_code() in {"00001", "00002"}


class TestUsageHistory:
    """Test the append-only playback history"""

    def test_append_and_list(self, store):
        first = store.append_history("01009", track_id="id-01009", owner_id="owner-1")
        second = store.append_history("4242")

        assert store.count_history() == 2
        history = store.get_history()
        assert {event.id for event in history} == {first.id, second.id}
        assert first.synced_at is None

        stored = next(event for event in history if event.id == first.id)
        assert stored == first

    def test_history_limit(self, store):
        for _ in range(5):
            store.append_history("01009")
        assert len(store.get_history(limit=3)) == 3
