from __future__ import annotations

import zipfile

import pytest

from sitecapture.crawler import SessionNotFoundError, Storage


def _seed_session(storage: Storage, session_id: str, start_time: str) -> None:
    storage.artifact_path(session_id, 1, stem="page", extension=".png").write_bytes(b"png-1")
    storage.artifact_path(session_id, 2, stem="page", extension="png").write_bytes(b"png-2")
    (storage.session_dir(session_id) / "notes.txt").write_text("ignored", encoding="utf-8")
    storage.persist_summary(session_id, {"start_time": start_time, "state": "completed"})


def test_layout_and_artifact_paths(storage: Storage) -> None:
    path = storage.artifact_path("s1", 3, stem="video", extension=".webm")

    assert path == storage.sessions_dir / "s1" / "video_3.webm"
    assert storage.artifact_ref(path) == "sessions/s1/video_3.webm"
    assert storage.logs_dir.is_dir()
    assert storage.archives_dir.is_dir()


def test_summary_round_trip_and_listing_order(storage: Storage) -> None:
    _seed_session(storage, "old", "2024-01-01T00:00:00.000+00:00")
    _seed_session(storage, "new", "2024-06-01T00:00:00.000+00:00")

    assert storage.load_summary("old")["state"] == "completed"
    assert [entry["session_id"] for entry in storage.list_sessions()] == ["new", "old"]


def test_archive_contains_artifacts_and_summary(storage: Storage) -> None:
    _seed_session(storage, "s1", "2024-01-01T00:00:00.000+00:00")

    archive = storage.build_archive("s1")

    assert archive == storage.archive_path("s1")
    with zipfile.ZipFile(archive) as handle:
        assert sorted(handle.namelist()) == ["page_1.png", "page_2.png", "summary.json"]


def test_delete_removes_session_and_archive(storage: Storage) -> None:
    _seed_session(storage, "s1", "2024-01-01T00:00:00.000+00:00")
    storage.build_archive("s1")

    storage.delete_session("s1")

    assert not (storage.sessions_dir / "s1").exists()
    assert not storage.archive_path("s1").exists()
    with pytest.raises(SessionNotFoundError):
        storage.load_summary("s1")


@pytest.mark.parametrize("session_id", ["missing", "..", "a/b", ""])
def test_unknown_or_unsafe_ids_are_not_found(storage: Storage, session_id: str) -> None:
    with pytest.raises(SessionNotFoundError):
        storage.build_archive(session_id)
    with pytest.raises(SessionNotFoundError):
        storage.delete_session(session_id)
