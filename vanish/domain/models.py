from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from vanish.db import Base


PASTE_ID_LENGTH = 10
DEFAULT_TITLE = "Untitled"
MAX_TITLE_LENGTH = 255
MAX_CONTENT_BYTES = 10 * 1024 * 1024  # 10 MiB
MAX_EXPIRES_IN_HOURS = 8760  # one year
MAX_VIEWS_LIMIT = 1_000_000


class ExpiryReason(str, enum.Enum):
    TIME = "TIME"
    VIEWS = "VIEWS"


@dataclass(frozen=True)
class PasteRecord:
    """
    Immutable snapshot of a stored paste.

    This is what the record stores hand to the service layer, so the policy
    code never touches an ORM session.
    """

    id: str
    title: str
    content: str
    created_at: datetime
    expires_at: datetime | None = None
    max_views: int | None = None
    view_count: int = 0


class Paste(Base):
    """Paste entity persisted via SQLAlchemy."""

    __tablename__ = "pastes"
    __table_args__ = (
        CheckConstraint("view_count >= 0", name="ck_pastes_view_count_non_negative"),
        CheckConstraint(
            f"max_views IS NULL OR (max_views >= 1 AND max_views <= {MAX_VIEWS_LIMIT})",
            name="ck_pastes_max_views_range",
        ),
        CheckConstraint(
            "expires_at IS NULL OR expires_at > created_at",
            name="ck_pastes_expires_after_created",
        ),
        Index("ix_pastes_expires_at", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(PASTE_ID_LENGTH), primary_key=True)
    title: Mapped[str] = mapped_column(
        String(MAX_TITLE_LENGTH),
        nullable=False,
        default=DEFAULT_TITLE,
        server_default=DEFAULT_TITLE,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    max_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    @validates("content")
    def _validate_immutable_content(self, key: str, value: str) -> str:
        """
        Enforce that ``content`` is immutable after initial creation.

        The value can be set on new instances, but any subsequent attempt to
        change it will raise an error.
        """

        if getattr(self, "content", None) is not None and self.content != value:
            raise ValueError("Paste content is immutable and cannot be modified.")
        return value
