from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, current_app, request
from pydantic import ValidationError
from werkzeug.exceptions import InternalServerError

from vanish.api.schemas import (
    HealthResponse,
    PasteCreateRequest,
    PasteCreatedResponse,
    PasteViewResponse,
)
from vanish.observability import get_correlation_id
from vanish.repositories.paste_repository import PasteStoreError
from vanish.services.helpers import is_valid_paste_id
from vanish.services.paste_service import (
    InvalidPasteParameters,
    PasteCreationError,
    PasteExpiredError,
    PasteNotFoundError,
    PasteService,
)
from vanish.store import get_paste_store

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


def _error(code: str, message: str, status: HTTPStatus) -> tuple[dict, int]:
    return {"success": False, "error": {"code": code, "message": message}}, status


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


def _paste_service() -> PasteService:
    base_url = current_app.config.get("PUBLIC_BASE_URL") or request.host_url
    return PasteService(
        store=get_paste_store(),
        base_url=base_url,
        max_create_attempts=current_app.config.get("CREATE_MAX_ATTEMPTS", 5),
    )


def _log_internal_error(message: str, exc: Exception) -> None:
    logger.error(
        message,
        exc_info=exc,
        extra={
            "event": "internal_error",
            "error_type": type(exc).__name__,
            "correlation_id": get_correlation_id(),
        },
    )


@api_bp.route("/health", methods=["GET"])
def health() -> tuple[dict, int]:
    """Liveness probe that confirms the record store is reachable."""

    try:
        result = _paste_service().check_health()
    except PasteStoreError as exc:
        _log_internal_error("Health check failed", exc)
        return {
            "success": False,
            "status": "unhealthy",
            "error": "Database connection failed",
        }, HTTPStatus.SERVICE_UNAVAILABLE

    body = HealthResponse(timestamp=result["timestamp"]).model_dump(mode="json")
    return body, HTTPStatus.OK


@api_bp.route("/pastes", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Validation is handled by Pydantic; business rules by the service layer.
    """
    try:
        payload = PasteCreateRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return _error("VALIDATION_ERROR", _validation_message(exc), HTTPStatus.BAD_REQUEST)

    try:
        dto = _paste_service().create_paste(
            content=payload.content,
            title=payload.title,
            expires_in=payload.expires_in,
            max_views=payload.max_views,
        )
    except InvalidPasteParameters as exc:
        return _error("VALIDATION_ERROR", str(exc), HTTPStatus.BAD_REQUEST)
    except (PasteCreationError, PasteStoreError) as exc:
        _log_internal_error("Error creating paste", exc)
        return _error("INTERNAL_ERROR", "Failed to create paste", HTTPStatus.INTERNAL_SERVER_ERROR)

    body = PasteCreatedResponse.model_validate(dto).model_dump(mode="json", by_alias=True)
    return {"success": True, "data": body}, HTTPStatus.CREATED


@api_bp.route("/pastes/<paste_id>", methods=["GET"])
def fetch_paste(paste_id: str) -> tuple[dict, int]:
    """
    Fetch a paste. Every successful fetch counts as a view.

    Time-expired and view-exhausted pastes share the ``PASTE_EXPIRED`` code.
    """
    if not is_valid_paste_id(paste_id):
        return _error("PASTE_NOT_FOUND", "Paste not found", HTTPStatus.NOT_FOUND)

    try:
        dto = _paste_service().fetch_paste(paste_id)
    except PasteNotFoundError:
        return _error("PASTE_NOT_FOUND", "Paste not found", HTTPStatus.NOT_FOUND)
    except PasteExpiredError:
        return _error("PASTE_EXPIRED", "This paste has expired", HTTPStatus.GONE)
    except PasteStoreError as exc:
        _log_internal_error("Error fetching paste", exc)
        return _error("INTERNAL_ERROR", "Failed to fetch paste", HTTPStatus.INTERNAL_SERVER_ERROR)

    body = PasteViewResponse.model_validate(dto).model_dump(mode="json", by_alias=True)
    return {"success": True, "data": body}, HTTPStatus.OK


@api_bp.app_errorhandler(InternalServerError)
def handle_internal_error(exc: InternalServerError) -> tuple[dict, int]:
    """Render unexpected failures in the API envelope without leaking detail."""

    original = getattr(exc, "original_exception", None) or exc
    _log_internal_error("Unhandled error", original)
    return _error("INTERNAL_ERROR", "Internal server error", HTTPStatus.INTERNAL_SERVER_ERROR)
