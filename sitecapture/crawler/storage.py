"""Filesystem-backed storage for captured artifacts and session summaries.

Storage owns the on-disk layout. Other modules should use this API instead of
building paths manually:

    <output_dir>/sessions/<session_id>/page_<n>.png | video_<n>.webm
    <output_dir>/sessions/<session_id>/summary.json
    <output_dir>/archives/<session_id>-captures.zip
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import threading
import zipfile
from pathlib import Path
from typing import Any, Mapping

from .constants import ARCHIVE_SUFFIXES, EVENTS_FILENAME, SUMMARY_FILENAME
from .errors import SessionNotFoundError
from .types import JSONDict, json_ready


class Storage:
    """Persist session outputs under a single `output_dir` root."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

        self.sessions_dir = self.output_dir / "sessions"
        self.archives_dir = self.output_dir / "archives"
        self.logs_dir = self.output_dir / "logs"

        self._lock = threading.Lock()
        self._ensure_layout()

    @property
    def paths(self) -> JSONDict:
        """Return important output paths for logging/CLI status messages."""

        return {
            "output_dir": str(self.output_dir),
            "sessions_dir": str(self.sessions_dir),
            "archives_dir": str(self.archives_dir),
            "log_dir": str(self.logs_dir),
        }

    def _ensure_layout(self) -> None:
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self.archives_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _validate_session_id(session_id: str) -> None:
        if not session_id or session_id in {".", ".."} or "/" in session_id or "\\" in session_id:
            raise SessionNotFoundError(session_id)

    def session_dir(self, session_id: str, *, create: bool = True) -> Path:
        """Directory holding one session's artifacts and summary."""

        self._validate_session_id(session_id)
        path = self.sessions_dir / session_id
        if create:
            path.mkdir(parents=True, exist_ok=True)
        return path

    def _existing_session_dir(self, session_id: str) -> Path:
        path = self.session_dir(session_id, create=False)
        if not path.is_dir():
            raise SessionNotFoundError(session_id)
        return path

    def summary_path(self, session_id: str) -> Path:
        return self.session_dir(session_id, create=False) / SUMMARY_FILENAME

    def events_path(self, session_id: str) -> Path:
        return self.session_dir(session_id) / EVENTS_FILENAME

    def artifact_path(self, session_id: str, sequence: int, *, stem: str, extension: str) -> Path:
        """Deterministic artifact path, e.g. `sessions/<id>/page_3.png`."""

        suffix = extension if extension.startswith(".") else f".{extension}"
        return self.session_dir(session_id) / f"{stem}_{sequence}{suffix}"

    def artifact_ref(self, path: str | Path) -> str:
        """Opaque artifact reference recorded in results (posix path under output_dir)."""

        resolved = Path(path)
        try:
            return resolved.relative_to(self.output_dir).as_posix()
        except ValueError:
            return resolved.as_posix()

    def persist_summary(self, session_id: str, summary: Mapping[str, Any]) -> Path:
        """Write a session's summary atomically as JSON."""

        path = self.session_dir(session_id) / SUMMARY_FILENAME
        self._atomic_write_json(path, json_ready(dict(summary)))
        return path

    def load_summary(self, session_id: str) -> dict[str, Any]:
        """Return a stored summary; raises SessionNotFoundError when absent."""

        path = self._existing_session_dir(session_id) / SUMMARY_FILENAME
        if not path.exists():
            raise SessionNotFoundError(session_id)
        return json.loads(path.read_text(encoding="utf-8"))

    def list_sessions(self) -> list[dict[str, Any]]:
        """Return stored sessions, newest first, with their summaries when present."""

        sessions: list[dict[str, Any]] = []
        for path in self.sessions_dir.iterdir():
            if not path.is_dir():
                continue

            entry: dict[str, Any] = {"session_id": path.name}
            summary_path = path / SUMMARY_FILENAME
            if summary_path.exists():
                try:
                    entry.update(json.loads(summary_path.read_text(encoding="utf-8")))
                except json.JSONDecodeError:
                    entry["summary_error"] = "unreadable summary.json"
                entry["session_id"] = path.name
            sessions.append(entry)

        sessions.sort(key=lambda item: str(item.get("start_time") or ""), reverse=True)
        return sessions

    def delete_session(self, session_id: str) -> None:
        """Remove a session directory and its archive, if any."""

        path = self._existing_session_dir(session_id)
        with self._lock:
            shutil.rmtree(path)
            archive = self.archive_path(session_id)
            if archive.exists():
                archive.unlink()

    def archive_path(self, session_id: str) -> Path:
        self._validate_session_id(session_id)
        return self.archives_dir / f"{session_id}-captures.zip"

    def build_archive(self, session_id: str, destination: str | Path | None = None) -> Path:
        """Zip a session's artifacts plus `summary.json`."""

        source_dir = self._existing_session_dir(session_id)
        out_path = Path(destination) if destination is not None else self.archive_path(session_id)
        out_path.parent.mkdir(parents=True, exist_ok=True)

        members = sorted(
            path
            for path in source_dir.iterdir()
            if path.is_file() and path.suffix.lower() in ARCHIVE_SUFFIXES
        )
        summary = source_dir / SUMMARY_FILENAME
        if summary.exists():
            members.append(summary)

        tmp_fd, tmp_path = tempfile.mkstemp(dir=str(out_path.parent), prefix=out_path.name + ".", suffix=".tmp")
        os.close(tmp_fd)
        try:
            with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=6) as archive:
                for member in members:
                    archive.write(member, arcname=member.name)
            os.replace(tmp_path, out_path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise
        return out_path

    @staticmethod
    def _atomic_write_json(path: Path, payload: Any) -> None:
        content = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise


__all__ = ["Storage"]
