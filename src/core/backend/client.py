"""HTTP gateway to the accounting backend (students, invoices, dashboard data)."""

import logging
from typing import Any

import httpx
from fastapi import Request

from src.core.config import Settings, settings as default_settings
from src.core.exceptions import BackendError

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Accounting backend request failed"


def _unwrap(payload: Any) -> Any:
    """Backend wraps most payloads in {"success": ..., "data": ...}; some are bare."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Human-readable error from the backend body (`error`, then `message`)."""
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return fallback


class AccountingBackendClient:
    """Thin async client; every method maps to one backend endpoint."""

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        config: Settings | None = None,
    ):
        config = config or default_settings
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            base_url=config.backend_base_url,
            timeout=config.backend_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        fallback_error: str = DEFAULT_ERROR_MESSAGE,
        **kwargs: Any,
    ) -> Any:
        logger.debug("Backend %s %s", method, path)
        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Backend %s %s failed: %s", method, path, e)
            raise BackendError(fallback_error) from e

        if response.is_error:
            message = _error_message(response, fallback_error)
            logger.warning(
                "Backend %s %s returned %s: %s",
                method,
                path,
                response.status_code,
                message,
            )
            # Client errors keep their status (e.g. 404 student); server errors become 502
            status_code = response.status_code if response.status_code < 500 else 502
            raise BackendError(
                message,
                status_code=status_code,
                backend_status=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{fallback_error}: invalid response body") from e

    # --- Students ---

    async def list_students(self, page: int = 1, limit: int = 10) -> dict:
        """Paginated students; limit=0 returns everyone."""
        return await self._request(
            "GET",
            "/students/",
            params={"page": page, "limit": limit},
            fallback_error="Failed to load students",
        )

    async def get_all_students(self) -> list[dict]:
        payload = await self.list_students(page=1, limit=0)
        return _unwrap(payload) or []

    async def get_student(self, student_id: str) -> dict:
        payload = await self._request(
            "GET",
            f"/students/{student_id}",
            fallback_error="Failed to load student",
        )
        return _unwrap(payload)

    async def create_student(self, data: dict) -> Any:
        payload = await self._request(
            "POST",
            "/students/new",
            json=data,
            fallback_error="Failed to create student",
        )
        return _unwrap(payload)

    # --- Invoices ---

    async def list_invoices(
        self,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
    ) -> dict:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        return await self._request(
            "GET",
            "/invoices/",
            params=params,
            fallback_error="Failed to load invoices",
        )

    async def get_all_invoices(self, status: str | None = None) -> list[dict]:
        payload = await self.list_invoices(page=1, limit=0, status=status)
        return _unwrap(payload) or []

    async def delete_invoice(self, invoice_id: str) -> None:
        await self._request(
            "DELETE",
            f"/invoices/{invoice_id}",
            fallback_error="Failed to delete invoice.",
        )

    async def get_outstanding_credit_invoices(self, student_id: str) -> list[dict]:
        payload = await self._request(
            "GET",
            f"/invoices/student/{student_id}/credit-outstanding",
            fallback_error="Failed to load outstanding credit invoices",
        )
        return _unwrap(payload) or []

    async def create_invoice(self, payload: dict) -> Any:
        result = await self._request(
            "POST",
            "/invoices/new",
            json=payload,
            fallback_error="Failed to create invoice",
        )
        return _unwrap(result)

    # --- Dashboard ---

    async def get_dashboard_data(self) -> dict:
        payload = await self._request(
            "GET",
            "/",
            fallback_error="Failed to load dashboard data",
        )
        return payload or {}


def get_backend(request: Request) -> AccountingBackendClient:
    """FastAPI dependency: the application's shared backend client."""
    return request.app.state.backend
