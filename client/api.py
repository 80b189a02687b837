"""
client/api.py — HTTP boundary used by the form controller and lists
UBS Manager v1.0
"""

from typing import Any, Optional

import httpx

from core.errors import AppError, AuthorizationError, NotFoundError
from core.logging_config import get_logger

logger = get_logger("client")

RECORDS_PATH = "/api/medical-records"


class ApiError(AppError):
    """Non-2xx answer; message is the server's `detail`, verbatim."""

    def __init__(self, message: str, status_code: int, errors: Optional[list] = None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class ApiNotFound(ApiError, NotFoundError):
    pass


class ApiForbidden(ApiError, AuthorizationError):
    pass


class NetworkError(AppError):
    """Transport failure; the raw error text is kept for display."""


def _error_from_response(response: httpx.Response) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    detail = body.get("detail") if isinstance(body, dict) else None
    message = detail if isinstance(detail, str) else (response.text or response.reason_phrase)
    errors = body.get("errors", []) if isinstance(body, dict) else []

    if response.status_code == 404:
        return ApiNotFound(message, 404, errors)
    if response.status_code == 403:
        return ApiForbidden(message, 403, errors)
    return ApiError(message, response.status_code, errors)


class ApiClient:
    """
    Thin async wrapper around httpx. One attempt per call: no retries and
    no timeout, a failure surfaces once and the user retries by hand.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        role: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"X-User-Role": role} if role else {}
        self._http = httpx.AsyncClient(
            base_url=base_url, headers=headers, transport=transport, timeout=None
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self, method: str, path: str, json: Any = None, params: Optional[dict] = None
    ) -> Any:
        try:
            response = await self._http.request(method, path, json=json, params=params)
        except httpx.TransportError as exc:
            logger.error(f"❌ {method} {path}: {exc}")
            raise NetworkError(str(exc) or type(exc).__name__) from exc

        if response.is_error:
            raise _error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ── Lookups ──
    async def list_ubs(self) -> list[dict]:
        return await self.request("GET", "/api/ubs")

    async def list_diseases(self) -> list[dict]:
        return await self.request("GET", "/api/diseases")

    # ── Medical records ──
    async def list_medical_records(
        self, ubs_id: Optional[int] = None, disease_id: Optional[int] = None
    ) -> list[dict]:
        params = {}
        if ubs_id is not None:
            params["ubsId"] = ubs_id
        if disease_id is not None:
            params["diseaseId"] = disease_id
        return await self.request("GET", RECORDS_PATH, params=params or None)

    async def get_medical_record(self, record_id: int) -> dict:
        return await self.request("GET", f"{RECORDS_PATH}/{record_id}")

    async def create_medical_record(self, body: dict) -> dict:
        return await self.request("POST", RECORDS_PATH, json=body)

    async def update_medical_record(self, record_id: int, body: dict) -> dict:
        return await self.request("PUT", f"{RECORDS_PATH}/{record_id}", json=body)

    async def delete_medical_record(self, record_id: int) -> None:
        await self.request("DELETE", f"{RECORDS_PATH}/{record_id}")
