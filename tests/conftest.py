from datetime import date, datetime, time, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from careapi.api import install_envelope_handlers, router
from careapi.db import Base, get_db
from carecore.errors import RepositoryError
from carecore.models import Visit, VisitStatus
from carecore.repositories import CareLogRepository, VisitRepository


def make_app(tmp_path) -> FastAPI:
    db_path = tmp_path / "test_careflow.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)

    app = FastAPI()
    install_envelope_handlers(app)
    app.include_router(router)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


def make_client(tmp_path) -> TestClient:
    return TestClient(make_app(tmp_path))


def seed_people(client: TestClient) -> tuple[int, int]:
    """Create one client and one staff member, return their ids."""
    c = client.post("/api/v1/clients", json={"name": "Anna Kowalska", "care_level": "high"})
    s = client.post("/api/v1/staff", json={"name": "Magda Nowak", "role_name": "Carer"})
    assert c.status_code == 200
    assert s.status_code == 200
    return c.json()["data"]["client"]["client_id"], s.json()["data"]["staff"]["staff_id"]


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class InMemoryVisitRepository(VisitRepository):
    def __init__(self, visits=()):
        self.rows: dict[int, Visit] = {}
        self.writes = 0
        self.list_calls = 0
        self.fail_updates = False
        self._next_id = 1
        for visit in visits:
            self._store(visit)

    def _store(self, visit: Visit) -> Visit:
        visit_id = visit.visit_id or self._next_id
        self._next_id = max(self._next_id, visit_id) + 1
        saved = visit.model_copy(update={"visit_id": visit_id})
        self.rows[visit_id] = saved
        return saved

    async def create(self, visit):
        self.writes += 1
        return self._store(visit.model_copy(update={"visit_id": None}))

    async def get(self, visit_id):
        if visit_id not in self.rows:
            raise RepositoryError("Visit not found", status_code=404)
        return self.rows[visit_id]

    async def list(self, filters=None):
        self.list_calls += 1
        rows = list(self.rows.values())
        if filters and filters.staff_id:
            rows = [v for v in rows if v.staff_id == filters.staff_id]
        if filters and filters.status:
            rows = [v for v in rows if v.status == filters.status]
        return rows

    async def update(self, visit_id, visit):
        self.writes += 1
        if self.fail_updates:
            raise RepositoryError("store unavailable", status_code=503)
        if visit_id not in self.rows:
            raise RepositoryError("Visit not found", status_code=404)
        self.rows[visit_id] = visit.model_copy(update={"visit_id": visit_id})
        return self.rows[visit_id]

    async def delete(self, visit_id):
        self.writes += 1
        self.rows.pop(visit_id, None)


class InMemoryCareLogRepository(CareLogRepository):
    def __init__(self):
        self.rows = {}
        self.writes = 0
        self.list_calls = 0
        self.fail_creates = False
        self._next_id = 1

    async def create(self, log):
        self.writes += 1
        if self.fail_creates:
            raise RepositoryError("store unavailable", status_code=503)
        saved = log.model_copy(update={"log_id": self._next_id})
        self.rows[self._next_id] = saved
        self._next_id += 1
        return saved

    async def get(self, log_id):
        if log_id not in self.rows:
            raise RepositoryError("Care log not found", status_code=404)
        return self.rows[log_id]

    async def list(self, filters=None):
        self.list_calls += 1
        rows = list(self.rows.values())
        if filters and filters.visit_id:
            rows = [log for log in rows if log.visit_id == filters.visit_id]
        return rows

    async def update(self, log_id, log):
        self.writes += 1
        self.rows[log_id] = log.model_copy(update={"log_id": log_id})
        return self.rows[log_id]

    async def delete(self, log_id):
        self.writes += 1
        self.rows.pop(log_id, None)


def make_visit(visit_id=1, status=VisitStatus.SCHEDULED, visit_date=None, **kwargs) -> Visit:
    fields = {
        "visit_id": visit_id,
        "client_id": 10,
        "staff_id": 20,
        "visit_date": visit_date or date(2026, 3, 2),
        "visit_time": time(9, 0),
        "status": status,
        "client_name": "Anna Kowalska",
        "staff_name": "Magda Nowak",
    }
    fields.update(kwargs)
    return Visit(**fields)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))
