from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, NoReturn, Optional

from vanish.domain.models import (
    DEFAULT_TITLE,
    MAX_CONTENT_BYTES,
    MAX_EXPIRES_IN_HOURS,
    MAX_TITLE_LENGTH,
    MAX_VIEWS_LIMIT,
    PasteRecord,
)
from vanish.domain.policy import compute_expiry, expiry_reason, is_last_view
from vanish.observability import get_correlation_id
from vanish.repositories.paste_repository import (
    DuplicatePasteIdError,
    PasteStore,
    PasteStoreError,
)
from vanish.services.helpers import build_share_url, generate_paste_id


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _record_to_dto(record: PasteRecord) -> dict[str, Any]:
    """Convert a stored record to the plain dict DTO served to readers."""
    return {
        "id": record.id,
        "title": record.title,
        "content": record.content,
        "created_at": record.created_at,
        "expires_at": record.expires_at,
        "view_count": record.view_count,
        "max_views": record.max_views,
    }


class PasteError(Exception):
    """Base class for paste-related errors."""


class InvalidPasteParameters(PasteError):
    """Raised when creating a paste with invalid parameters."""


class PasteNotFoundError(PasteError):
    """Raised when a paste cannot be found."""


class PasteExpiredError(PasteError):
    """Raised when a paste existed but ran out of time or views."""


class PasteCreationError(PasteError):
    """Raised when no free id could be found for a new paste."""


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class PasteService:
    """
    Application service coordinating paste-related use cases.

    The record store and the clock are injected; nothing here reads global
    state. Each store call is its own atomic unit and no lock is held between
    calls, so every step tolerates the record changing underneath it.
    Returns plain dict DTOs.
    """

    store: PasteStore
    base_url: str = ""
    max_create_attempts: int = 5
    clock: Callable[[], datetime] = field(default=_utcnow)
    id_factory: Callable[[], str] = field(default=generate_paste_id)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create_paste(
        self,
        *,
        content: str,
        title: Optional[str] = None,
        expires_in: Optional[int] = None,
        max_views: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Create a new paste enforcing business rules:

        - ``content`` must be non-empty and at most 10 MiB (UTF-8 bytes)
        - ``title`` (if provided) must be at most 255 characters
        - ``expires_in`` (if provided) must be an int in 1..8760 hours
        - ``max_views`` (if provided) must be an int in 1..1,000,000

        A duplicate id is retried with a fresh one up to
        ``max_create_attempts`` times.
        """
        self._validate_create(content=content, title=title, expires_in=expires_in, max_views=max_views)

        now = self.clock()
        expires_at = compute_expiry(now, expires_in)

        for attempt in range(1, self.max_create_attempts + 1):
            record = PasteRecord(
                id=self.id_factory(),
                title=title or DEFAULT_TITLE,
                content=content,
                created_at=now,
                expires_at=expires_at,
                max_views=max_views,
            )
            try:
                stored = self.store.create(record)
            except DuplicatePasteIdError:
                logger.warning(
                    "Paste id collision, retrying with a new id",
                    extra={
                        "event": "paste_id_collision",
                        "paste_id": record.id,
                        "attempt": attempt,
                        "correlation_id": get_correlation_id(),
                    },
                )
                continue

            logger.info(
                "Paste created",
                extra={
                    "event": "paste_created",
                    "paste_id": stored.id,
                    "max_views": stored.max_views,
                    "correlation_id": get_correlation_id(),
                },
            )
            return {
                "id": stored.id,
                "title": stored.title,
                "url": build_share_url(self.base_url, stored.id),
                "created_at": stored.created_at,
                "expires_at": stored.expires_at,
            }

        raise PasteCreationError(
            f"Could not allocate a unique paste id after {self.max_create_attempts} attempts."
        )

    def _validate_create(
        self,
        *,
        content: Any,
        title: Any,
        expires_in: Any,
        max_views: Any,
    ) -> None:
        if not isinstance(content, str) or not content:
            self._reject("content must be a non-empty string.")
        if len(content.encode("utf-8")) > MAX_CONTENT_BYTES:
            self._reject(f"content must be at most {MAX_CONTENT_BYTES} bytes when UTF-8 encoded.")

        if title is not None:
            if not isinstance(title, str):
                self._reject("title must be a string.")
            if len(title) > MAX_TITLE_LENGTH:
                self._reject(f"title must be at most {MAX_TITLE_LENGTH} characters.")

        if expires_in is not None and (
            not _is_int(expires_in) or not 1 <= expires_in <= MAX_EXPIRES_IN_HOURS
        ):
            self._reject(f"expiresIn must be an integer between 1 and {MAX_EXPIRES_IN_HOURS} hours.")

        if max_views is not None and (
            not _is_int(max_views) or not 1 <= max_views <= MAX_VIEWS_LIMIT
        ):
            self._reject(f"maxViews must be an integer between 1 and {MAX_VIEWS_LIMIT}.")

    @staticmethod
    def _reject(message: str) -> NoReturn:
        logger.warning(
            "Invalid parameters when creating paste",
            extra={
                "event": "paste_create_invalid_parameters",
                "reason": message,
                "correlation_id": get_correlation_id(),
            },
        )
        raise InvalidPasteParameters(message)

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------
    def fetch_paste(self, paste_id: str) -> dict[str, Any]:
        """
        Retrieve a paste for viewing, enforcing view and expiry rules.

        Rules:
        - Absent → raise PasteNotFoundError
        - expires_at in the past → delete, raise PasteExpiredError
        - view_count >= max_views → delete, raise PasteExpiredError
        - Otherwise:
          - increment view count atomically (absent by now → PasteNotFoundError)
          - if that was the last allowed view, delete after building the result
        """
        record = self.store.get(paste_id)
        if record is None:
            raise PasteNotFoundError(f"Paste with id {paste_id} not found.")

        reason = expiry_reason(record, self.clock())
        if reason is not None:
            self._discard(paste_id, reason=reason.value)
            logger.info(
                "Paste expired on access",
                extra={
                    "event": "paste_auto_expired",
                    "paste_id": paste_id,
                    "reason": reason.value,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise PasteExpiredError(f"Paste {paste_id} has expired.")

        new_views = self.store.increment_view(paste_id)
        if new_views is None:
            # Deleted or used up by a concurrent reader since the get.
            raise PasteNotFoundError(f"Paste with id {paste_id} disappeared during view operation.")

        last_view = is_last_view(record, new_views)
        dto = _record_to_dto(record)
        dto["view_count"] = new_views
        dto["is_last_view"] = last_view

        if last_view:
            self._discard(paste_id, reason="LAST_VIEW")

        logger.info(
            "Paste access successful",
            extra={
                "event": "paste_access_success",
                "paste_id": paste_id,
                "view_count": new_views,
                "correlation_id": get_correlation_id(),
            },
        )
        return dto

    def _discard(self, paste_id: str, *, reason: str) -> None:
        """Best-effort delete; the caller's outcome never depends on it."""
        try:
            deleted = self.store.delete(paste_id)
        except PasteStoreError as exc:
            logger.error(
                "Failed to delete paste",
                extra={
                    "event": "paste_delete_failed",
                    "paste_id": paste_id,
                    "reason": reason,
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            return

        logger.info(
            "Paste deleted",
            extra={
                "event": "paste_deleted",
                "paste_id": paste_id,
                "reason": reason,
                "deleted": deleted,
                "correlation_id": get_correlation_id(),
            },
        )

    # -------------------------------------------------------------------------
    # Health / maintenance
    # -------------------------------------------------------------------------
    def check_health(self) -> dict[str, Any]:
        """Probe the store; raises ``PasteStoreError`` when it is unreachable."""
        self.store.ping()
        return {"status": "healthy", "timestamp": self.clock(), "database": "connected"}

    def sweep_expired(self) -> int:
        """Delete pastes nobody fetched before they expired."""
        removed = self.store.delete_expired(self.clock())
        logger.info(
            "Expired pastes swept",
            extra={
                "event": "paste_sweep",
                "deleted": removed,
                "correlation_id": get_correlation_id(),
            },
        )
        return removed
