"""HTTP client for the SportsGameOdds v2 events API."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any, Protocol

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from wager_engine.errors import ProviderUnavailable
from wager_engine.settings import Settings


class SportsGameOddsError(ProviderUnavailable):
    """Raised on SportsGameOdds API failures."""


class RetryableStatusError(RuntimeError):
    """Raised for retryable status codes."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"retryable status {response.status_code}")

    def retry_after_seconds(self) -> float | None:
        raw_value = self.response.headers.get("Retry-After")
        if not raw_value:
            return None
        try:
            return max(0.0, float(raw_value))
        except ValueError:
            try:
                date_value = parsedate_to_datetime(raw_value)
            except (TypeError, ValueError):
                return None
            return max(0.0, (date_value - datetime.now(UTC)).total_seconds())


class EventProvider(Protocol):
    """Anything that can answer an events query."""

    def get_events(self, **filters: Any) -> list[dict[str, Any]]:
        raise NotImplementedError


def _wait_for_retry(retry_state) -> float:
    """Wait strategy for tenacity retries."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(exc, RetryableStatusError):
        retry_after = exc.retry_after_seconds()
        if retry_after is not None:
            return min(retry_after, 30.0)
    return min(2 ** (retry_state.attempt_number - 1), 10.0)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.astimezone(UTC).isoformat().replace("+00:00", "Z")
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(item) for item in value)
    return str(value)


class SportsGameOddsClient:
    """Thin HTTP client around the SportsGameOdds events endpoint."""

    def __init__(self, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings
        self._base_url = settings.sgo_base_url.rstrip("/")
        limits = httpx.Limits(max_connections=4, max_keepalive_connections=2)
        self._http = httpx.Client(
            timeout=settings.sgo_timeout_s, limits=limits, transport=transport
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> SportsGameOddsClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(self, *, path: str, params: dict[str, Any]) -> Any:
        api_key = str(self.settings.sgo_api_key).strip()
        if not api_key:
            raise SportsGameOddsError(
                "missing SportsGameOdds API key; set SPORTS_GAME_ODDS_API_KEY"
            )
        url = f"{self._base_url}/{path.lstrip('/')}"
        query = {key: _query_value(value) for key, value in params.items() if value is not None}
        headers = {"X-Api-Key": api_key, "Accept": "application/json"}
        response: httpx.Response | None = None
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(max(1, self.settings.sgo_max_retries + 1)),
                retry=retry_if_exception_type(RetryableStatusError),
                wait=_wait_for_retry,
                reraise=True,
            ):
                with attempt:
                    response = self._http.get(url, params=query, headers=headers)
                    if response.status_code == 429 or 500 <= response.status_code <= 599:
                        raise RetryableStatusError(response)
                    response.raise_for_status()
        except RetryableStatusError as exc:
            raise SportsGameOddsError(
                f"{path} failed with status {exc.response.status_code} after retries"
            ) from exc
        except httpx.HTTPError as exc:
            raise SportsGameOddsError(f"{path} failed with transport error: {exc}") from exc
        if response is None:
            raise SportsGameOddsError(f"{path} failed without a response")
        try:
            return response.json()
        except ValueError as exc:
            raise SportsGameOddsError(f"{path} returned invalid json") from exc

    def get_events(self, **filters: Any) -> list[dict[str, Any]]:
        """Query events; filters map directly to provider query parameters."""
        payload = self._request(path="/events", params=filters)
        data = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(data, list):
            raise SportsGameOddsError("events payload missing list data")
        return [item for item in data if isinstance(item, dict)]
