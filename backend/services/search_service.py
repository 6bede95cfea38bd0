from __future__ import annotations

from typing import Any

import httpx

from constants import SEARCH_ENDPOINT, SEARCH_RESULT_COUNT, SEARCH_TIMEOUT_S
from observability.logger import log_event
from observability.metrics import timed


def _failure(message: str) -> dict[str, Any]:
    return {"error": message, "results": []}


class SearchService:
    """
    Google Custom Search backend for the search_internet tool.

    Every failure comes back as {"error": ..., "results": []} so the model
    can explain it; nothing here raises.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        cx: str | None,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = SEARCH_TIMEOUT_S,
    ) -> None:
        self._api_key = api_key
        self._cx = cx
        self._client = client
        self._timeout_s = timeout_s

    async def search(
        self,
        query: str,
        *,
        session_id: str | None = None,
    ) -> dict[str, Any]:
        if not self._api_key or not self._cx:
            log_event({
                "event_type": "SEARCH_NOT_CONFIGURED",
                "session_id": session_id,
            })
            return _failure("Search is not configured. API keys are missing.")

        params = {
            "key": self._api_key,
            "cx": self._cx,
            "q": query,
            "num": SEARCH_RESULT_COUNT,
        }

        with timed(
            "search",
            session_id=session_id,
            details={"query_len": len(query)},
        ) as extra:
            try:
                body = await self._get(params)
            except httpx.TimeoutException:
                extra["outcome"] = "timeout"
                return _failure("The search timed out.")
            except httpx.HTTPStatusError as exc:
                extra["outcome"] = "http_error"
                log_event({
                    "event_type": "SEARCH_HTTP_ERROR",
                    "session_id": session_id,
                    "status_code": exc.response.status_code,
                })
                message = _api_error_message(exc.response)
                return _failure(
                    message or f"Search failed with HTTP {exc.response.status_code}."
                )
            except (httpx.HTTPError, ValueError) as exc:
                extra["outcome"] = "transport_error"
                log_event({
                    "event_type": "SEARCH_ERROR",
                    "session_id": session_id,
                    "exception": type(exc).__name__,
                })
                return _failure("Unexpected error while searching.")

            result = _parse_body(body)
            extra["outcome"] = "error" if "error" in result else "ok"
            extra["results"] = len(result["results"])
            return result

    async def _get(self, params: dict[str, Any]) -> Any:
        if self._client is not None:
            response = await self._client.get(
                SEARCH_ENDPOINT, params=params, timeout=self._timeout_s
            )
            response.raise_for_status()
            return response.json()

        async with httpx.AsyncClient(timeout=self._timeout_s) as client:
            response = await client.get(SEARCH_ENDPOINT, params=params)
            response.raise_for_status()
            return response.json()


def _api_error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if message:
            return f"Search error: {message}"
    return None


def _parse_body(body: Any) -> dict[str, Any]:
    """Reduce a Custom Search response to {results, total_results}."""
    if not isinstance(body, dict):
        return _failure("Invalid response from the search API.")

    if "error" in body:
        error = body["error"]
        message = error.get("message") if isinstance(error, dict) else None
        return _failure(f"Search error: {message or 'unknown Google API error'}")

    results: list[dict[str, str]] = []
    items = body.get("items") or []
    if isinstance(items, list):
        for item in items:
            if not isinstance(item, dict):
                continue
            results.append({
                "title": str(item.get("title", "")),
                "link": str(item.get("link", "")),
                "snippet": str(item.get("snippet", "")),
            })

    total = 0
    info = body.get("searchInformation")
    if isinstance(info, dict):
        try:
            total = int(info.get("totalResults", 0))
        except (TypeError, ValueError):
            total = 0

    return {"results": results, "total_results": total}
