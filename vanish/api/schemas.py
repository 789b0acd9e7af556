from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from vanish.domain.models import (
    MAX_EXPIRES_IN_HOURS,
    MAX_TITLE_LENGTH,
    MAX_VIEWS_LIMIT,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PasteCreateRequest(_CamelModel):
    content: StrictStr = Field(..., min_length=1, description="Paste content")
    title: Optional[StrictStr] = Field(
        default=None,
        max_length=MAX_TITLE_LENGTH,
        description="Optional title, defaults to 'Untitled'",
    )
    expires_in: Optional[StrictInt] = Field(
        default=None,
        ge=1,
        le=MAX_EXPIRES_IN_HOURS,
        description="Optional lifetime in hours",
    )
    max_views: Optional[StrictInt] = Field(
        default=None,
        ge=1,
        le=MAX_VIEWS_LIMIT,
        description="Optional number of views before the paste self-destructs",
    )


class PasteCreatedResponse(_CamelModel):
    id: str
    title: str
    url: str
    created_at: datetime
    expires_at: Optional[datetime]


class PasteViewResponse(_CamelModel):
    id: str
    title: str
    content: str
    created_at: datetime
    expires_at: Optional[datetime]
    view_count: int
    max_views: Optional[int]
    is_last_view: bool


class HealthResponse(BaseModel):
    success: bool = True
    status: str = "healthy"
    timestamp: datetime
    database: str = "connected"
