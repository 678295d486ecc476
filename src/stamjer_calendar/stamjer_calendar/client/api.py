from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional

import httpx

from ..core.constants import DEFAULT_HTTP_TIMEOUT_SECONDS, DEFAULT_READ_BACKOFF_SECONDS, DEFAULT_READ_RETRIES
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    MissingRequiredFieldError,
    NotFoundError,
    ValidationError,
    WindowClosedError,
)
from .errors import ApiError, TransportError

logger = logging.getLogger(__name__)

_ERRORS_BY_NAME = {
    "WindowClosedError": WindowClosedError,
    "MissingRequiredFieldError": MissingRequiredFieldError,
}

_ERRORS_BY_STATUS = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
    409: ConflictError,
}


def raise_for_response(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        payload = response.json()
    except ValueError:
        payload = None
    message = payload.get("msg") if isinstance(payload, dict) else None
    message = message or response.text or response.reason_phrase

    error_name = payload.get("error") if isinstance(payload, dict) else None
    exc_class = _ERRORS_BY_NAME.get(error_name or "") or _ERRORS_BY_STATUS.get(response.status_code)
    if exc_class is not None:
        raise exc_class(message)
    raise ApiError(message, status_code=response.status_code, payload=payload)


class ApiClient:
    """Thin JSON client for the calendar API.

    Reads are retried with exponential backoff on transport errors and 5xx.
    Writes are sent exactly once: a retried create could create the event
    twice.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        read_retries: int = DEFAULT_READ_RETRIES,
        backoff_seconds: float = DEFAULT_READ_BACKOFF_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http = http_client or httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
        self._read_retries = max(0, int(read_retries))
        self._backoff = float(backoff_seconds)
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "ApiClient":
        """Client configured from a settings module (``API_BASE_URL`` and friends)."""

        return cls(
            getattr(settings, "API_BASE_URL", ""),
            timeout=float(getattr(settings, "HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS)),
            read_retries=int(getattr(settings, "READ_RETRIES", DEFAULT_READ_RETRIES)),
            backoff_seconds=float(getattr(settings, "READ_BACKOFF_SECONDS", DEFAULT_READ_BACKOFF_SECONDS)),
            **kwargs,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- transport ----------------------------------------------------------

    def _get(self, path: str, *, params: Optional[Mapping[str, Any]] = None) -> Any:
        attempts = self._read_retries + 1
        for attempt in range(attempts):
            last = attempt == attempts - 1
            try:
                response = self._http.get(path, params=params)
            except httpx.TransportError as exc:
                if last:
                    raise TransportError(f"GET {path} failed: {exc}") from exc
                logger.info("GET %s failed (%s), retry %d/%d", path, exc, attempt + 1, self._read_retries)
            else:
                if response.status_code < 500 or last:
                    raise_for_response(response)
                    return response.json()
                logger.info("GET %s returned %d, retry %d/%d", path, response.status_code, attempt + 1, self._read_retries)
            self._sleep(self._backoff * (2**attempt))
        raise AssertionError("unreachable")

    def _send(self, method: str, path: str, *, json: Any = None) -> Any:
        try:
            response = self._http.request(method, path, json=json)
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc
        raise_for_response(response)
        return response.json()

    # -- session ------------------------------------------------------------

    def login(self, email: str, password: str) -> dict:
        return self._send("POST", "/login", json={"email": email, "password": password})["user"]

    def logout(self) -> None:
        self._send("POST", "/logout")

    # -- reads --------------------------------------------------------------

    def get_events(self) -> list[dict]:
        return list(self._get("/events").get("events") or [])

    def get_opkomsten(self, *, upcoming: bool = False) -> list[dict]:
        params = {"upcoming": "1"} if upcoming else None
        return list(self._get("/events/opkomsten", params=params).get("events") or [])

    def get_event(self, event_id: str) -> dict:
        return self._get(f"/events/{event_id}")

    def get_users(self) -> list[dict]:
        return list(self._get("/users").get("users") or [])

    def get_users_full(self) -> list[dict]:
        return list(self._get("/users/full").get("users") or [])

    def get_ledger(self, event_id: str, *, query: str = "", participants: bool = False, changed: bool = False) -> dict:
        params = {"q": query, "participants": int(participants), "changed": int(changed)}
        return self._get(f"/events/{event_id}/ledger", params=params)

    # -- writes -------------------------------------------------------------

    def create_event(self, data: Mapping[str, Any]) -> dict:
        return self._send("POST", "/events", json=dict(data))

    def update_event(self, event_id: str, changes: Mapping[str, Any], *, revision: Optional[int] = None) -> dict:
        body = dict(changes)
        if revision is not None:
            body["revision"] = revision
        return self._send("PUT", f"/events/{event_id}", json=body)

    def delete_event(self, event_id: str) -> dict:
        return self._send("DELETE", f"/events/{event_id}").get("event") or {}

    def set_attending(self, event_id: str, user_id: int, attending: bool) -> dict:
        body = {"userId": int(user_id), "attending": bool(attending)}
        return self._send("PUT", f"/events/{event_id}/attendance", json=body)["event"]

    def save_attendance(self, event_id: str, attendance: Mapping[Any, Any], *, revision: Optional[int] = None) -> dict:
        body: dict[str, Any] = {"attendance": {str(k): v for k, v in attendance.items()}}
        if revision is not None:
            body["revision"] = revision
        return self._send("PUT", f"/events/{event_id}", json=body)

    def update_profile(self, user_id: int, *, active: bool) -> dict:
        return self._send("PUT", "/user/profile", json={"userId": int(user_id), "active": bool(active)})["user"]
