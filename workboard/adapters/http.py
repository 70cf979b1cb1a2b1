"""HTTP client for the group work item service.

Wraps the REST endpoints behind the board and list views and maps every
failure onto the workboard error taxonomy: transport problems become
NetworkError, error statuses become ConflictOrServerError carrying the
server's message.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from http import HTTPStatus
from typing import Any

import httpx

from ..feed.filters import FilterState
from ..workflow.exceptions import ConflictOrServerError, NetworkError
from ..workflow.models import WorkItem, WorkItemPage, WorkItemStatus
from ..workflow.transitions import COLUMN_ORDER

logger = logging.getLogger(__name__)

# snake_case update fields -> request body keys
FIELD_NAMES: dict[str, str] = {
    "summary": "summary",
    "description": "description",
    "status": "status",
    "assignee_id": "assigneeId",
    "sprint_id": "sprintId",
    "story_points": "storyPoints",
    "start_date": "startDate",
    "end_date": "endDate",
    "parent_item_id": "parentItemId",
}


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"API error: {response.status_code} - {response.text}"
    message = data.get("message") if isinstance(data, dict) else None
    if isinstance(message, list) and message:
        return str(message[0])
    if message:
        return str(message)
    try:
        return HTTPStatus(response.status_code).phrase
    except ValueError:
        return f"API error: {response.status_code}"


def _parse_item(raw: Any) -> WorkItem:
    try:
        return WorkItem.from_api(raw)
    except (KeyError, TypeError, ValueError) as exc:
        raise ConflictOrServerError(
            HTTPStatus.BAD_GATEWAY.value, f"Unexpected work item in response: {exc!r}"
        ) from exc


def _unwrap(body: Any) -> Any:
    """Strip the ``{"data": ...}`` envelope the service puts around payloads."""
    if isinstance(body, dict) and "data" in body and "total" not in body:
        return body["data"]
    return body


class HttpBackend:
    """WorkItemBackend talking to the REST service with httpx."""

    def __init__(
        self,
        base_url: str,
        group_id: int,
        token: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            base_url: Base URL of the service, e.g. ``https://api.example.edu``
            group_id: Project group whose board is being worked on
            token: Optional bearer token sent with every request
            timeout: Request timeout in seconds
            client: Pre-built client (tests pass one with a mock transport)
        """
        self.group_id = group_id
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), headers=headers, timeout=timeout
        )
        if client is not None:
            self._client.headers.update(headers)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpBackend:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise NetworkError(str(exc) or exc.__class__.__name__) from exc
        if response.is_error:
            message = _error_message(response)
            logger.warning("%s %s -> %s: %s", method, url, response.status_code, message)
            raise ConflictOrServerError(response.status_code, message)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("%s %s -> %s: body is not JSON", method, url, response.status_code)
            raise ConflictOrServerError(response.status_code, "Invalid response from server") from exc

    async def get_board(self, filters: FilterState) -> dict[WorkItemStatus, list[WorkItem]]:
        body = await self._request(
            "GET", f"/v1/group/{self.group_id}/board", params=filters.to_params()
        )
        columns: dict[WorkItemStatus, list[WorkItem]] = {s: [] for s in COLUMN_ORDER}
        for column in _unwrap(body) or []:
            try:
                status = WorkItemStatus(column["status"])
            except (KeyError, TypeError, ValueError) as exc:
                raise ConflictOrServerError(
                    HTTPStatus.BAD_GATEWAY.value, f"Unexpected board column in response: {exc!r}"
                ) from exc
            columns[status] = [_parse_item(raw) for raw in column.get("workItems", [])]
        return columns

    async def list_work_items(self, filters: FilterState, page: int, size: int) -> WorkItemPage:
        body = await self._request(
            "GET",
            f"/v1/group/{self.group_id}/list-work-items",
            params=filters.to_list_params(page, size),
        )
        body = body or {}
        return WorkItemPage(
            total=int(body.get("total") or 0),
            items=tuple(_parse_item(raw) for raw in body.get("data") or []),
        )

    async def get_work_item(self, item_id: int) -> WorkItem:
        body = await self._request("GET", f"/v1/work-item/{item_id}")
        return _parse_item(_unwrap(body))

    async def update_work_item(self, item_id: int, **fields) -> WorkItem | None:
        unknown = set(fields) - set(FIELD_NAMES)
        if unknown:
            raise ValueError(f"Unknown work item fields: {', '.join(sorted(unknown))}")
        payload = {FIELD_NAMES[name]: _encode(value) for name, value in fields.items()}
        body = await self._request("PATCH", f"/v1/work-item/{item_id}", json=payload)
        return self._item_or_none(body)

    async def approve_work_item(self, item_id: int, rating: int, comment: str) -> WorkItem | None:
        body = await self._request(
            "PATCH",
            f"/v1/work-item/{item_id}/approve",
            json={"rating": rating, "comment": comment},
        )
        return self._item_or_none(body)

    async def delete_work_item(self, item_id: int) -> None:
        await self._request("DELETE", f"/v1/work-item/{item_id}")

    @staticmethod
    def _item_or_none(body: Any) -> WorkItem | None:
        data = _unwrap(body)
        if isinstance(data, dict) and "id" in data and "status" in data and "type" in data:
            return _parse_item(data)
        return None
