from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import Delete, Select, Update, and_, delete, func, or_, select, text, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from vanish.domain.models import Paste, PasteRecord
from vanish.observability import get_correlation_id


logger = logging.getLogger(__name__)

# Driver-level failures that mean the store is unreachable or too slow.
_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


class PasteStoreError(Exception):
    """Base class for record store failures."""


class DuplicatePasteIdError(PasteStoreError):
    """Raised when a paste is created with an id that is already taken."""


class StorageUnavailableError(PasteStoreError):
    """Raised when the backing store cannot be reached in time."""


class PasteStore(Protocol):
    """
    Keyed storage for pastes.

    Every method is a single atomic unit against the backing store; callers
    must not assume anything about a record between two calls.
    """

    def create(self, record: PasteRecord) -> PasteRecord: ...

    def get(self, paste_id: str) -> Optional[PasteRecord]: ...

    def increment_view(self, paste_id: str) -> Optional[int]:
        """Add one view and return the new count; ``None`` if absent or out of views."""

    def delete(self, paste_id: str) -> bool: ...

    def ping(self) -> bool: ...

    def delete_expired(self, now: datetime) -> int: ...

    def count(self) -> int: ...

    def list_recent(self, limit: int = 10) -> list[PasteRecord]: ...


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _paste_to_record(paste: Paste) -> PasteRecord:
    return PasteRecord(
        id=paste.id,
        title=paste.title,
        content=paste.content,
        created_at=_as_utc(paste.created_at),
        expires_at=_as_utc(paste.expires_at),
        max_views=paste.max_views,
        view_count=paste.view_count,
    )


class SqlPasteStore:
    """
    Record store backed by SQLAlchemy.

    Owns session lifecycle: every operation opens a session, commits on
    success, rolls back on exception, and closes the session in a finally
    block. No ORM entity escapes this class.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except _UNAVAILABLE_ERRORS as exc:
            session.rollback()
            logger.error(
                "Record store unavailable",
                extra={
                    "event": "store_unavailable",
                    "error_type": type(exc).__name__,
                    "reason": operation,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise StorageUnavailableError(f"Record store unavailable during {operation}.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create(self, record: PasteRecord) -> PasteRecord:
        """
        Insert a new paste with ``view_count = 0``.

        Raises ``DuplicatePasteIdError`` if the id is already taken.
        """

        paste = Paste(
            id=record.id,
            title=record.title,
            content=record.content,
            created_at=record.created_at,
            expires_at=record.expires_at,
            max_views=record.max_views,
            view_count=0,
        )
        try:
            with self._session("create") as session:
                session.add(paste)
                # Flush so that constraint violations surface inside the unit.
                session.flush()
                stored = _paste_to_record(paste)
        except IntegrityError as exc:
            raise DuplicatePasteIdError(f"Paste id {record.id} is already taken.") from exc
        return stored

    def get(self, paste_id: str) -> Optional[PasteRecord]:
        """Return a paste by its id, or ``None`` if not found."""

        with self._session("get") as session:
            stmt: Select[tuple[Paste]] = select(Paste).where(Paste.id == paste_id)
            paste = session.execute(stmt).scalar_one_or_none()
            return None if paste is None else _paste_to_record(paste)

    def increment_view(self, paste_id: str) -> Optional[int]:
        """
        Atomically increment the view count for a paste.

        Returns the new ``view_count`` value, or ``None`` if the paste no
        longer exists or has no views left.
        """

        stmt: Update = (
            update(Paste)
            .where(
                Paste.id == paste_id,
                or_(Paste.max_views.is_(None), Paste.view_count < Paste.max_views),
            )
            .values(view_count=Paste.view_count + 1)
            .returning(Paste.view_count)
            .execution_options(synchronize_session=False)
        )
        with self._session("increment_view") as session:
            row = session.execute(stmt).one_or_none()
        if row is None:
            return None

        (new_count,) = row
        return int(new_count)

    def delete(self, paste_id: str) -> bool:
        """Remove a paste; returns ``False`` if it was already gone."""

        stmt: Delete = (
            delete(Paste)
            .where(Paste.id == paste_id)
            .execution_options(synchronize_session=False)
        )
        with self._session("delete") as session:
            result = session.execute(stmt)
        return result.rowcount > 0

    def ping(self) -> bool:
        with self._session("ping") as session:
            session.execute(text("SELECT 1"))
        return True

    def delete_expired(self, now: datetime) -> int:
        """Remove every paste past its expiry time or out of views."""

        stmt: Delete = delete(Paste).where(
            or_(
                and_(Paste.expires_at.isnot(None), Paste.expires_at < now),
                and_(Paste.max_views.isnot(None), Paste.view_count >= Paste.max_views),
            )
        ).execution_options(synchronize_session=False)
        with self._session("delete_expired") as session:
            result = session.execute(stmt)
        return int(result.rowcount or 0)

    def count(self) -> int:
        with self._session("count") as session:
            return int(session.execute(select(func.count()).select_from(Paste)).scalar_one())

    def list_recent(self, limit: int = 10) -> list[PasteRecord]:
        stmt: Select[tuple[Paste]] = (
            select(Paste).order_by(Paste.created_at.desc()).limit(limit)
        )
        with self._session("list_recent") as session:
            return [_paste_to_record(p) for p in session.execute(stmt).scalars().all()]
