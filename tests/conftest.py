# tests/conftest.py
# -*- coding: utf-8 -*-
import os
import sys
import pathlib
import tempfile

import pytest
from sqlalchemy import delete, event


# =====================================================================================
# Localização do projeto (garante que "kvsettings_app" esteja no sys.path)
# =====================================================================================
def _add_project_root():
    here = pathlib.Path(__file__).resolve()
    for candidate in [here.parent, *here.parents]:
        if (candidate / "kvsettings_app").is_dir():
            if str(candidate) not in sys.path:
                sys.path.insert(0, str(candidate))
            return candidate
    return None


PROJECT_ROOT = _add_project_root()


@pytest.fixture(autouse=True, scope="session")
def _testing_env():
    os.environ["APP_ENV"] = "testing"
    os.environ["FLASK_ENV"] = "testing"
    os.environ.setdefault("SECRET_KEY", "testing-secret")
    yield


def _set_sqlite_pragmas(dbapi_conn, _conn_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


# =====================================================================================
# App Flask com SQLite temporário e schema criado uma vez por sessão
# =====================================================================================
@pytest.fixture(scope="session")
def app(_testing_env):
    fd, db_path = tempfile.mkstemp(prefix="kvsettings_test_", suffix=".sqlite")
    os.close(fd)

    from config import TestingConfig
    from kvsettings_app import create_app
    from kvsettings_app.extensions import db

    class SessionTestingConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{db_path}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"check_same_thread": False, "timeout": 30}}

    app = create_app(SessionTestingConfig)

    with app.app_context():
        event.listen(db.engine, "connect", _set_sqlite_pragmas)
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    try:
        os.remove(db_path)
    except OSError:
        pass


# =====================================================================================
# Cada teste começa com a tabela vazia e o cache de settings invalidado
# =====================================================================================
@pytest.fixture(autouse=True)
def _clean_settings(app):
    from kvsettings_app.extensions import db
    from kvsettings_app.models import Setting
    from kvsettings_app.services.settings import get_settings

    with app.app_context():
        db.session.execute(delete(Setting))
        db.session.commit()
        get_settings().flush_all_cache()
    yield


@pytest.fixture
def db_session(app):
    from kvsettings_app.extensions import db
    with app.app_context():
        try:
            yield db.session
        finally:
            db.session.rollback()
            db.session.close()


@pytest.fixture
def manager(db_session):
    """
    Cópia do SettingsManager do app (grupo default), com app context ativo.
    Monkeypatch na cópia não vaza para os outros testes.
    """
    from kvsettings_app.services.settings import get_settings
    return get_settings().group(None)


@pytest.fixture
def count_loads(manager, monkeypatch):
    """Conta quantas vezes o banco é consultado para montar o mapa de um grupo."""
    calls = []
    original = manager.store.select_group

    def _counting(group):
        calls.append(group)
        return original(group)

    monkeypatch.setattr(manager.store, "select_group", _counting)
    return calls


@pytest.fixture
def make_setting(db_session):
    """Insere uma linha direto na tabela, sem passar pelo gerenciador."""
    from kvsettings_app.models import Setting

    def _make(key="app.name", value="Demo", group="default"):
        s = Setting(group=group, key=key, value=value)
        db_session.add(s)
        db_session.commit()
        return s

    return _make
