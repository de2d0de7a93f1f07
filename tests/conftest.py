from __future__ import annotations

import pytest

from k12_study import db


@pytest.fixture(autouse=True)
def fresh_db(tmp_path, monkeypatch):
    """Point every test at its own empty SQLite file."""
    monkeypatch.setattr(db, "DB_PATH", tmp_path / "k12_study.db")
    db.init_db()


@pytest.fixture
def seeded():
    """Load the bundled knowledge points and questions."""
    from k12_study.content import seed_content
    return seed_content()
