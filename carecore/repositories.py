"""Repository contracts for visits and care logs, and their HTTP implementations.

Records crossing this boundary are closed models: a payload with unknown or
malformed fields is rejected with :class:`RepositoryError` instead of being
passed through.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from .api import ApiClient
from .errors import RepositoryError
from .models import CareLog, CareLogFilters, Visit, VisitFilters

logger = structlog.get_logger("careflow.repositories")


class VisitRepository:
    """Repository interface for visits held by the remote store."""

    async def create(self, visit: Visit) -> Visit:
        """Create a visit; the returned copy carries the assigned ``visit_id``."""
        raise NotImplementedError

    async def get(self, visit_id: int) -> Visit:
        raise NotImplementedError

    async def list(self, filters: VisitFilters | None = None) -> list[Visit]:
        raise NotImplementedError

    async def update(self, visit_id: int, visit: Visit) -> Visit:
        raise NotImplementedError

    async def delete(self, visit_id: int) -> None:
        raise NotImplementedError


class CareLogRepository:
    """Repository interface for care logs held by the remote store."""

    async def create(self, log: CareLog) -> CareLog:
        raise NotImplementedError

    async def get(self, log_id: int) -> CareLog:
        raise NotImplementedError

    async def list(self, filters: CareLogFilters | None = None) -> list[CareLog]:
        raise NotImplementedError

    async def update(self, log_id: int, log: CareLog) -> CareLog:
        raise NotImplementedError

    async def delete(self, log_id: int) -> None:
        raise NotImplementedError


def _parse_one(model: type[BaseModel], data: Any, key: str):
    if not isinstance(data, dict) or key not in data:
        raise RepositoryError(f"Store response is missing '{key}'")
    try:
        return model.model_validate(data[key])
    except ValidationError as exc:
        logger.warning("malformed_record", record=key, errors=exc.error_count())
        raise RepositoryError(f"Store returned a malformed {key} record: {exc}") from exc


def _parse_many(model: type[BaseModel], data: Any, key: str) -> list:
    if not isinstance(data, dict) or not isinstance(data.get(key), list):
        raise RepositoryError(f"Store response is missing '{key}'")
    try:
        return [model.model_validate(row) for row in data[key]]
    except ValidationError as exc:
        logger.warning("malformed_record", record=key, errors=exc.error_count())
        raise RepositoryError(f"Store returned a malformed {key} record: {exc}") from exc


def _warn_if_truncated(data: dict, key: str, count: int) -> None:
    # the store cut the list at its cap; callers see only the first rows
    if data.get("truncated"):
        logger.warning("list_truncated", record=key, count=count)


class HttpVisitRepository(VisitRepository):
    def __init__(self, api: ApiClient, prefix: str = "/api/v1/visits"):
        self._api = api
        self._prefix = prefix

    async def create(self, visit: Visit) -> Visit:
        data = await self._api.post(self._prefix, json=visit.to_payload())
        return _parse_one(Visit, data, "visit")

    async def get(self, visit_id: int) -> Visit:
        data = await self._api.get(f"{self._prefix}/{int(visit_id)}")
        return _parse_one(Visit, data, "visit")

    async def list(self, filters: VisitFilters | None = None) -> list[Visit]:
        params = filters.to_params() if filters else None
        data = await self._api.get(self._prefix, params=params or None)
        visits = _parse_many(Visit, data, "visits")
        _warn_if_truncated(data, "visits", len(visits))
        return visits

    async def update(self, visit_id: int, visit: Visit) -> Visit:
        data = await self._api.put(f"{self._prefix}/{int(visit_id)}", json=visit.to_payload())
        return _parse_one(Visit, data, "visit")

    async def delete(self, visit_id: int) -> None:
        await self._api.delete(f"{self._prefix}/{int(visit_id)}")

    async def history(self, visit_id: int) -> list[dict]:
        data = await self._api.get(f"{self._prefix}/{int(visit_id)}/history")
        if not isinstance(data, dict) or not isinstance(data.get("events"), list):
            raise RepositoryError("Store response is missing 'events'")
        return data["events"]


class HttpCareLogRepository(CareLogRepository):
    def __init__(self, api: ApiClient, prefix: str = "/api/v1/logs"):
        self._api = api
        self._prefix = prefix

    async def create(self, log: CareLog) -> CareLog:
        data = await self._api.post(self._prefix, json=log.to_payload())
        return _parse_one(CareLog, data, "log")

    async def get(self, log_id: int) -> CareLog:
        data = await self._api.get(f"{self._prefix}/{int(log_id)}")
        return _parse_one(CareLog, data, "log")

    async def list(self, filters: CareLogFilters | None = None) -> list[CareLog]:
        params = filters.to_params() if filters else None
        data = await self._api.get(self._prefix, params=params or None)
        logs = _parse_many(CareLog, data, "logs")
        _warn_if_truncated(data, "logs", len(logs))
        return logs

    async def update(self, log_id: int, log: CareLog) -> CareLog:
        data = await self._api.put(f"{self._prefix}/{int(log_id)}", json=log.to_update_payload())
        return _parse_one(CareLog, data, "log")

    async def delete(self, log_id: int) -> None:
        await self._api.delete(f"{self._prefix}/{int(log_id)}")
