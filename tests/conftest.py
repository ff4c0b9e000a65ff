import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from src.portal.config import Settings
from src.portal.db import DuplicateRecordError
from src.portal.main import create_app
from src.portal.uploads import UploadStore

_INSERT_RE = re.compile(r"INSERT INTO\s+(\w+)\s*\(([^)]*)\)", re.IGNORECASE | re.DOTALL)


class FakeDatabase:
    """In-memory stand-in for the PostgreSQL gateway used by the routes."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {"users": [], "alumni_registration": [], "payments": []}
        self.queries: List[str] = []
        self.fail_with: Optional[Exception] = None
        self.healthy = True

    def _check_failure(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        self.queries.append(query)
        self._check_failure()
        if "FROM users WHERE email" in query:
            for row in self.tables["users"]:
                if row["email"] == params[0]:
                    return dict(row)
            return None
        raise AssertionError(f"Unexpected query: {query}")

    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        self.queries.append(query)
        self._check_failure()
        match = _INSERT_RE.search(query)
        assert match is not None, f"Unexpected statement: {query}"
        table = match.group(1)
        columns = [c.strip() for c in match.group(2).split(",")]
        assert len(columns) == len(params)
        row = dict(zip(columns, params))
        if table == "users" and any(u["email"] == row["email"] for u in self.tables["users"]):
            raise DuplicateRecordError("users_email_key")
        row["id"] = len(self.tables[table]) + 1
        self.tables[table].append(row)
        return {"id": row["id"]}

    def ping(self) -> bool:
        return self.healthy


@pytest.fixture()
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture()
def settings(upload_dir: Path) -> Settings:
    return Settings(upload_dir=upload_dir, allowed_origins=("http://portal.test",))


@pytest.fixture()
def client(settings: Settings, fake_db: FakeDatabase):
    app = create_app(settings=settings, database=fake_db)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def broken_upload_client(tmp_path: Path, settings: Settings, fake_db: FakeDatabase):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("occupied", encoding="utf-8")
    app = create_app(settings=settings, database=fake_db, upload_store=UploadStore(blocker / "uploads"))
    with TestClient(app) as test_client:
        yield test_client

