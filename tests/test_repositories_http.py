import asyncio
from datetime import date, datetime, time

import httpx
import pytest
from fastapi.testclient import TestClient

from carecore.api import ApiClient
from carecore.errors import RepositoryError
from carecore.execution import VisitExecution
from carecore.models import CareLogDraft, CareLogFilters, VisitFilters, VisitStatus
from carecore.repositories import HttpCareLogRepository, HttpVisitRepository
from carecore.scheduling import schedule_visit
from carecore.statuses import transition

from conftest import FakeClock, make_app, seed_people


def _store(tmp_path):
    app = make_app(tmp_path)
    client_id, staff_id = seed_people(TestClient(app))
    return app, client_id, staff_id


def _api(app) -> ApiClient:
    return ApiClient(base_url="http://testserver", transport=httpx.ASGITransport(app=app))


def test_visit_repository_round_trip(tmp_path):
    app, client_id, staff_id = _store(tmp_path)

    async def scenario():
        async with _api(app) as api:
            visits = HttpVisitRepository(api)
            created = await schedule_visit(visits, client_id, staff_id, date(2026, 3, 2), time(9, 0))
            assert created.visit_id is not None
            assert created.status == VisitStatus.SCHEDULED
            assert created.estimated_duration == 60
            assert created.client_name == "Anna Kowalska"

            fetched = await visits.get(created.visit_id)
            assert fetched == created

            confirmed = await visits.update(created.visit_id, transition(fetched, VisitStatus.CONFIRMED))
            assert confirmed.status == VisitStatus.CONFIRMED

            listed = await visits.list(VisitFilters(status=VisitStatus.CONFIRMED))
            assert [v.visit_id for v in listed] == [created.visit_id]
            assert await visits.list(VisitFilters(status=VisitStatus.COMPLETED)) == []

            history = await visits.history(created.visit_id)
            assert [e["to_status"] for e in history] == ["scheduled", "confirmed"]

            await visits.delete(created.visit_id)
            with pytest.raises(RepositoryError) as exc:
                await visits.get(created.visit_id)
            assert exc.value.status_code == 404
            assert str(exc.value) == "Visit not found"

    asyncio.run(scenario())


def test_store_rejection_surfaces_as_repository_error(tmp_path):
    app, client_id, staff_id = _store(tmp_path)

    async def scenario():
        async with _api(app) as api:
            visits = HttpVisitRepository(api)
            with pytest.raises(RepositoryError) as exc:
                await schedule_visit(visits, 999, staff_id, date(2026, 3, 2), time(9, 0))
            assert exc.value.status_code == 400
            assert "Client #999" in str(exc.value)

    asyncio.run(scenario())


def test_clock_in_and_out_against_store(tmp_path):
    app, client_id, staff_id = _store(tmp_path)
    clock = FakeClock(datetime(2026, 3, 2, 9, 0))

    async def scenario():
        async with _api(app) as api:
            visits = HttpVisitRepository(api)
            logs = HttpCareLogRepository(api)
            execution = VisitExecution(visits, logs, clock=clock)

            visit = await schedule_visit(visits, client_id, staff_id, date(2026, 3, 2), time(9, 0))
            session = await execution.clock_in(visit)
            clock.advance(minutes=45)
            result = await execution.clock_out_session(
                session,
                CareLogDraft(activities_performed="Bathing, medication", medication=True),
                staff_id=staff_id,
            )

            assert result.visit.status == VisitStatus.COMPLETED
            assert result.care_log.duration_minutes == 45
            assert result.care_log.staff_name == "Magda Nowak"

            stored = await logs.list(CareLogFilters(visit_id=visit.visit_id))
            assert [log.log_id for log in stored] == [result.care_log.log_id]

            history = await visits.history(visit.visit_id)
            assert [e["to_status"] for e in history] == ["scheduled", "in_progress", "completed"]

            edited = await logs.update(
                result.care_log.log_id,
                result.care_log.model_copy(update={"follow_up_required": True}),
            )
            assert edited.follow_up_required is True
            assert (await logs.list(CareLogFilters(follow_up_required=True)))[0].log_id == edited.log_id

    asyncio.run(scenario())


def _mock_api(handler) -> ApiClient:
    return ApiClient(base_url="http://store.test", transport=httpx.MockTransport(handler))


def test_success_false_with_http_200_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"success": False, "message": "Nope", "data": None})

    async def scenario():
        async with _mock_api(handler) as api:
            with pytest.raises(RepositoryError) as exc:
                await HttpVisitRepository(api).list()
            assert str(exc.value) == "Nope"
            assert exc.value.status_code == 200

    asyncio.run(scenario())


def test_transport_failure_is_a_repository_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        async with _mock_api(handler) as api:
            with pytest.raises(RepositoryError) as exc:
                await HttpCareLogRepository(api).get(1)
            assert exc.value.status_code is None
            assert isinstance(exc.value.__cause__, httpx.ConnectError)

    asyncio.run(scenario())


def test_non_envelope_response_is_rejected():
    def handler(request):
        return httpx.Response(502, text="<html>bad gateway</html>")

    async def scenario():
        async with _mock_api(handler) as api:
            with pytest.raises(RepositoryError) as exc:
                await HttpVisitRepository(api).get(1)
            assert exc.value.status_code == 502

    asyncio.run(scenario())


def test_unknown_record_fields_are_rejected():
    record = {
        "visit_id": 1,
        "client_id": 1,
        "staff_id": 1,
        "visit_date": "2026-03-02",
        "visit_time": "09:00:00",
        "status": "scheduled",
        "colour": "blue",
    }

    def handler(request):
        return httpx.Response(200, json={"success": True, "message": None, "data": {"visit": record}})

    async def scenario():
        async with _mock_api(handler) as api:
            with pytest.raises(RepositoryError) as exc:
                await HttpVisitRepository(api).get(1)
            assert "malformed visit" in str(exc.value)

    asyncio.run(scenario())


def test_bearer_token_is_sent():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"success": True, "message": None, "data": {"logs": []}})

    async def scenario():
        api = ApiClient(
            base_url="http://store.test", token="abc", transport=httpx.MockTransport(handler)
        )
        async with api:
            assert await HttpCareLogRepository(api).list(CareLogFilters(search="anna")) == []

    asyncio.run(scenario())
    assert seen["auth"] == "Bearer abc"
