"""
Per-user session storage.

The conversation service only sees the SessionStore interface; which backend
is used is decided once from settings in get_session_store().

Backends:
- MemorySessionStore: process-local, for tests and local runs
- FileSessionStore: one JSON file per user, survives restarts
- SupabaseSessionStore: one row per user in a jsonb table
"""

import asyncio
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import pydantic

from app.agents.schemas import Session
from app.config import get_settings
from app.logging_config import app_logger
from app.services.errors import StorageError

logger = app_logger.getChild("sessions")


class SessionStore(ABC):
    """Read-your-writes store keyed by Telegram user id."""

    @abstractmethod
    async def get(self, user_id: int) -> Session:
        """Return the stored session, or a fresh default one."""

    @abstractmethod
    async def put(self, user_id: int, session: Session) -> None:
        """Overwrite the stored session."""


def _load(user_id: int, raw: str | dict) -> Session:
    try:
        if isinstance(raw, dict):
            return Session.model_validate(raw)
        return Session.model_validate_json(raw)
    except pydantic.ValidationError as e:
        raise StorageError(f"Corrupt session for user {user_id}: {e}") from e


class MemorySessionStore(SessionStore):
    """Keeps serialized copies, so mutating a returned Session has no effect until put()."""

    def __init__(self):
        self._data: dict[int, str] = {}

    async def get(self, user_id: int) -> Session:
        raw = self._data.get(user_id)
        if raw is None:
            return Session(user_id=user_id)
        return _load(user_id, raw)

    async def put(self, user_id: int, session: Session) -> None:
        self._data[user_id] = session.model_dump_json()


class FileSessionStore(SessionStore):
    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, user_id: int) -> Path:
        return self.directory / f"{user_id}.json"

    def _read(self, user_id: int) -> Optional[str]:
        try:
            return self._path(user_id).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read session for user {user_id}: {e}") from e

    def _write(self, user_id: int, payload: str) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Write to a temp file in the same directory, then swap it in atomically
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, self._path(user_id))
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write session for user {user_id}: {e}") from e

    async def get(self, user_id: int) -> Session:
        raw = await asyncio.to_thread(self._read, user_id)
        if raw is None:
            return Session(user_id=user_id)
        return _load(user_id, raw)

    async def put(self, user_id: int, session: Session) -> None:
        await asyncio.to_thread(self._write, user_id, session.model_dump_json())


class SupabaseSessionStore(SessionStore):
    """
    Sessions in a Supabase table:

        create table chat_sessions (
            user_id bigint primary key,
            data jsonb not null,
            updated_at timestamptz default now()
        );
    """

    def __init__(self, client=None, table: str = "chat_sessions"):
        if client is None:
            from app.supabase_client import get_supabase_admin
            client = get_supabase_admin()
        self.supabase = client
        self.table = table

    def _select(self, user_id: int):
        try:
            result = self.supabase.table(self.table).select("data").eq(
                "user_id", user_id
            ).limit(1).execute()
        except Exception as e:
            raise StorageError(f"Failed to read session for user {user_id}: {e}") from e
        return result.data[0]["data"] if result.data else None

    def _upsert(self, user_id: int, data: dict) -> None:
        try:
            self.supabase.table(self.table).upsert({
                "user_id": user_id,
                "data": data
            }).execute()
        except Exception as e:
            raise StorageError(f"Failed to write session for user {user_id}: {e}") from e

    async def get(self, user_id: int) -> Session:
        data = await asyncio.to_thread(self._select, user_id)
        if data is None:
            return Session(user_id=user_id)
        return _load(user_id, data)

    async def put(self, user_id: int, session: Session) -> None:
        await asyncio.to_thread(self._upsert, user_id, session.model_dump(mode="json"))


def create_session_store(backend: str) -> SessionStore:
    settings = get_settings()

    if backend == "memory":
        return MemorySessionStore()
    if backend == "file":
        return FileSessionStore(settings.sessions_dir)
    if backend == "supabase":
        return SupabaseSessionStore(table=settings.supabase_sessions_table)

    raise ValueError(f"Unknown session backend: {backend}")


# Global instance
_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get or create the configured session store."""
    global _session_store
    if _session_store is None:
        backend = get_settings().session_backend
        _session_store = create_session_store(backend)
        logger.info(f"Session store initialized: backend={backend}")
    return _session_store
