"""Persisted runtime session identifiers used for resume."""

from __future__ import annotations

from pathlib import Path

RUNTIME_DIRNAME = ".runtime"
SESSION_ID_FILENAME = "session_id"


def session_id_path(workdir: str | Path) -> Path:
    return Path(workdir) / RUNTIME_DIRNAME / SESSION_ID_FILENAME


def read_persisted_session_id(workdir: str | Path) -> str:
    """First line of the persisted id file, trimmed; empty when absent."""
    if not str(workdir).strip():
        return ""
    try:
        data = session_id_path(workdir).read_text(encoding="utf-8")
    except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
        return ""
    lines = data.splitlines()
    return lines[0].strip() if lines else ""


def write_persisted_session_id(workdir: str | Path, session_id: str) -> Path:
    path = session_id_path(workdir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(session_id.strip() + "\n", encoding="utf-8")
    return path
