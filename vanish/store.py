from __future__ import annotations

from flask import Flask, current_app

from vanish.db import SessionLocal, init_db
from vanish.repositories.memory_store import InMemoryPasteStore
from vanish.repositories.paste_repository import PasteStore, SqlPasteStore


_EXTENSION_KEY = "vanish.store"


def init_store(app: Flask) -> PasteStore:
    """
    Build the record store selected by ``STORE_BACKEND`` and attach it to the app.

    ``sql`` (the default) initializes the global engine; ``memory`` keeps
    everything in process and never touches a database.
    """
    backend = app.config.get("STORE_BACKEND", "sql")
    if backend == "memory":
        store: PasteStore = InMemoryPasteStore()
    elif backend == "sql":
        init_db(app)
        store = SqlPasteStore(session_factory=SessionLocal)
    else:
        raise RuntimeError(f"Unknown STORE_BACKEND {backend!r}. Expected 'sql' or 'memory'.")

    app.extensions[_EXTENSION_KEY] = store
    return store


def get_paste_store() -> PasteStore:
    """Return the record store of the active Flask app."""
    return current_app.extensions[_EXTENSION_KEY]
