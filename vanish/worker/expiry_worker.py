from __future__ import annotations

import logging
import threading

from flask import Flask

from vanish.repositories.paste_repository import PasteStore, PasteStoreError
from vanish.services.paste_service import PasteService


logger = logging.getLogger(__name__)

_worker_thread: threading.Thread | None = None
_stop_event = threading.Event()
_worker_lock = threading.Lock()


def run_sweep_cycle(store: PasteStore) -> int:
    """
    Run one sweep and return how many pastes were removed.

    Store outages are logged and reported as zero; the next cycle retries.
    """

    try:
        return PasteService(store=store).sweep_expired()
    except PasteStoreError as exc:
        logger.warning(
            "Expiry worker: record store unavailable; skipping cycle",
            extra={
                "event": "expiry_worker_store_error",
                "error_type": type(exc).__name__,
                "correlation_id": "expiry-worker",
            },
        )
        return 0


def _expiry_loop(app: Flask, store: PasteStore, interval: float) -> None:
    """Background loop that periodically deletes expired pastes."""

    with app.app_context():
        while not _stop_event.is_set():
            try:
                run_sweep_cycle(store)
            except Exception:  # pragma: no cover - keep the thread alive
                logger.exception(
                    "Error in expiry worker loop",
                    extra={
                        "event": "expiry_worker_error",
                        "correlation_id": "expiry-worker",
                    },
                )
            _stop_event.wait(interval)


def start_expiry_worker(app: Flask, store: PasteStore) -> None:
    """
    Start the expiry worker in a background thread.

    This function is idempotent and will only start a single worker thread.
    Reads are already safe without it; it only reclaims space.
    """

    global _worker_thread
    with _worker_lock:
        if _worker_thread is not None and _worker_thread.is_alive():
            return

        _stop_event.clear()
        _worker_thread = threading.Thread(
            target=_expiry_loop,
            args=(app, store, app.config.get("EXPIRY_SWEEP_INTERVAL_SECONDS", 60.0)),
            name="expiry-worker",
            daemon=True,
        )
        _worker_thread.start()


def stop_expiry_worker(timeout: float | None = 5.0) -> None:
    """Signal the worker to stop and wait for it to finish its current cycle."""

    global _worker_thread
    with _worker_lock:
        thread = _worker_thread
        _worker_thread = None
    _stop_event.set()
    if thread is not None:
        thread.join(timeout)
