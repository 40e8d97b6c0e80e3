from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from .config import settings
from .errors import RepositoryError

logger = structlog.get_logger("careflow.api")


class ApiEnvelope(BaseModel):
    success: bool
    message: str | None = None
    data: Any = None


def _headers(token: str | None) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


class ApiClient:
    """Async access to the care store.

    Every response is unwrapped from its ``{success, message, data}`` envelope.
    A ``success: false`` envelope, an HTTP error status and a transport failure
    all surface the same way, as :class:`RepositoryError`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            headers=_headers(settings.API_TOKEN if token is None else token),
            timeout=settings.API_TIMEOUT if timeout is None else timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, params: dict | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, json: dict) -> Any:
        return await self._request("POST", path, json=json)

    async def put(self, path: str, json: dict) -> Any:
        return await self._request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("api_transport_failed", method=method, path=path, error=str(exc))
            raise RepositoryError(f"{method} {path} failed: {exc}") from exc

        envelope = _parse_envelope(response)
        if envelope is None:
            logger.warning(
                "api_malformed_response", method=method, path=path, status=response.status_code
            )
            raise RepositoryError(
                f"{method} {path} returned an unexpected response (HTTP {response.status_code})",
                status_code=response.status_code,
            )
        if not envelope.success or response.is_error:
            message = envelope.message or f"{method} {path} failed (HTTP {response.status_code})"
            logger.info(
                "api_request_rejected",
                method=method,
                path=path,
                status=response.status_code,
                message=message,
            )
            raise RepositoryError(message, status_code=response.status_code)
        return envelope.data


def _parse_envelope(response: httpx.Response) -> ApiEnvelope | None:
    try:
        return ApiEnvelope.model_validate(response.json())
    except (ValueError, ValidationError):
        return None
