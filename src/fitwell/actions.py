"""Service action execution against the booking backend."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from loguru import logger

from fitwell.config import Settings
from fitwell.types import ServiceAction

ActionResult = dict[str, Any]

UNSUPPORTED_ACTION: ActionResult = {"success": False, "error": "Unknown action type"}


def _mock_id(prefix: str) -> str:
    return f"mock-{prefix}-{uuid.uuid4().hex[:10]}"


def _mock_doctor(params: dict[str, Any]) -> ActionResult:
    return {
        "success": True,
        "bookingId": _mock_id("doc"),
        "details": {
            "doctor": params.get("doctor") or "General Physician",
            "time": params.get("time") or "Tomorrow, 10:00 AM",
            "location": params.get("location") or "Fitwell Clinic - Downtown",
        },
    }


def _mock_lab(params: dict[str, Any]) -> ActionResult:
    return {
        "success": True,
        "bookingId": _mock_id("lab"),
        "details": {
            "tests": params.get("tests") or ["CBC"],
            "time": params.get("time") or "Tomorrow, 9:00 AM",
            "location": params.get("location") or "Fitwell Lab - Uptown",
        },
    }


def _mock_medicine(params: dict[str, Any]) -> ActionResult:
    return {
        "success": True,
        "orderId": _mock_id("med"),
        "details": {
            "items": params.get("items") or [],
            "eta": "2 business days",
            "pharmacy": "Fitwell Pharmacy - Central",
        },
    }


# action type -> (backend path, mock builder)
ROUTES: dict[str, tuple[str, Callable[[dict[str, Any]], ActionResult]]] = {
    "book_doctor": ("/bookings/doctor", _mock_doctor),
    "book_lab": ("/bookings/lab", _mock_lab),
    "order_medicine": ("/orders/medicine", _mock_medicine),
}


class ActionExecutor:
    """Executes confirmed actions; without a backend it answers with mock bookings."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._client = client
        self._sleep = sleep

    @property
    def mocked(self) -> bool:
        return not self._settings.actions_base_url

    async def execute(self, action: ServiceAction) -> ActionResult:
        route = ROUTES.get(action.type)
        if route is None:
            logger.warning("action.unsupported type={}", action.type)
            return dict(UNSUPPORTED_ACTION)

        path, build_mock = route
        params = dict(action.params)
        base_url = self._settings.actions_base_url
        if not base_url:
            await self._sleep(self._settings.mock_action_delay_seconds)
            result = build_mock(params)
            logger.info("action.mock type={} result={}", action.type, result)
            return result
        return await self._post(f"{base_url.rstrip('/')}{path}", params, action.type)

    async def _post(self, url: str, params: dict[str, Any], action_type: str) -> ActionResult:
        headers = {}
        if self._settings.actions_api_key:
            headers["Authorization"] = f"Bearer {self._settings.actions_api_key}"
        try:
            response = await self._client.post(url, json=params, headers=headers)
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("action.error type={} error={!r}", action_type, exc)
            return {"success": False, "error": str(exc)}

        if not isinstance(body, dict):
            return {"success": False, "error": f"unexpected response: {body!r}"}
        logger.info("action.done type={} status={} success={}", action_type, response.status_code, body.get("success"))
        return body
