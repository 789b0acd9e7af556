from __future__ import annotations

import pytest
from flask import Flask

from vanish import create_app
from vanish.db import dispose_db, engine_options
from vanish.repositories.memory_store import InMemoryPasteStore
from vanish.repositories.paste_repository import SqlPasteStore
from vanish.store import get_paste_store


def test_create_app_returns_flask_instance() -> None:
    app = create_app("testing")
    try:
        assert isinstance(app, Flask)
        assert app.config["TESTING"] is True
        with app.app_context():
            assert isinstance(get_paste_store(), SqlPasteStore)
    finally:
        dispose_db()


def test_config_overrides_select_memory_store() -> None:
    app = create_app("testing", {"STORE_BACKEND": "memory"})
    with app.app_context():
        assert isinstance(get_paste_store(), InMemoryPasteStore)


def test_unknown_store_backend_is_rejected() -> None:
    with pytest.raises(RuntimeError):
        create_app("testing", {"STORE_BACKEND": "redis"})


def test_engine_options_bound_every_backend() -> None:
    sqlite = engine_options("sqlite+pysqlite:///vanish.db", timeout=3.0, pool_size=4)
    assert sqlite == {"connect_args": {"timeout": 3.0}}

    postgres = engine_options("postgresql+psycopg://u:p@db/vanish", timeout=2.5, pool_size=4)
    assert postgres["pool_timeout"] == 2.5
    assert postgres["pool_size"] == 4
    assert postgres["connect_args"] == {
        "connect_timeout": 2,
        "options": "-c statement_timeout=2500",
    }
