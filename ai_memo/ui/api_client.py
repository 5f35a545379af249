"""API client for communicating with the FastAPI backend.

The client plays the part of the note screen: each AI operation is reflected
in an ``AIStatusTracker`` owned by the caller, one tracker per operation.
"""

import json
import logging
import os
from collections.abc import Generator, Iterable, Iterator
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import httpx

from ai_memo.ai.errors import classify_error
from ai_memo.ai.status import AIProcessType, AIStatusState, AIStatusTracker

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"


@dataclass
class StreamResult:
    """Final result from SSE stream."""

    success: bool
    result: dict[str, Any] | None = None
    error: str | None = None
    retryable: bool = False


def _get_id_token(audience: str) -> str | None:
    """Get ID token for Cloud Run service-to-service authentication.

    Args:
        audience: The URL of the target service.

    Returns:
        ID token string, or None if not running on GCP or token fetch fails.
    """
    try:
        import google.auth.transport.requests
        import google.oauth2.id_token

        request = google.auth.transport.requests.Request()
        return google.oauth2.id_token.fetch_id_token(request, audience)
    except Exception as e:
        logger.debug(f"Could not get ID token (likely running locally): {e}")
        return None


class APIClient:
    """Client for the AI memo API."""

    def __init__(self, base_url: str | None = None, session_cookie: str | None = None):
        """Initialize the API client.

        Args:
            base_url: Base URL of the API server. If not provided, uses API_URL env var
                     or defaults to http://localhost:8000.
            session_cookie: Signed session cookie of a logged-in user.
        """
        self.base_url = base_url or os.environ.get("API_URL", "http://localhost:8000")
        self.cookies = {SESSION_COOKIE: session_cookie} if session_cookie else {}
        self.timeout = 120.0  # 2 minutes for LLM operations

    def _get_auth_headers(self) -> dict[str, str]:
        token = _get_id_token(self.base_url)
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def _client(self, timeout: float | None = None) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout if timeout is None else timeout,
            cookies=self.cookies,
            headers=self._get_auth_headers(),
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        with self._client() as client:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()

    def health_check(self) -> bool:
        """Check if the API is healthy.

        Returns:
            True if API is healthy, False otherwise.
        """
        try:
            with self._client(timeout=5.0) as client:
                response = client.get("/health")
                return response.status_code == 200
        except httpx.RequestError:
            return False

    # ========== Notes ==========

    def list_notes(self, page: int = 1, limit: int = 10, sort_by: str = "latest") -> dict[str, Any]:
        """List notes.

        Raises:
            httpx.HTTPStatusError: If the request fails.
        """
        params = {"page": page, "limit": limit, "sort_by": sort_by}
        return self._request("GET", "/api/notes", params=params)

    def get_note(self, note_id: UUID | str) -> dict[str, Any]:
        return self._request("GET", f"/api/notes/{note_id}")

    def create_note(self, title: str, content: str) -> dict[str, Any]:
        return self._request("POST", "/api/notes", json={"title": title, "content": content})

    def update_note(
        self,
        note_id: UUID | str,
        title: str | None = None,
        content: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, str] = {}
        if title is not None:
            body["title"] = title
        if content is not None:
            body["content"] = content
        return self._request("PATCH", f"/api/notes/{note_id}", json=body)

    def delete_note(self, note_id: UUID | str) -> dict[str, Any]:
        return self._request("DELETE", f"/api/notes/{note_id}")

    # ========== AI ==========

    def generate_summary(self, note_id: UUID | str, tracker: AIStatusTracker) -> dict[str, Any]:
        """Generate a summary, reporting progress through ``tracker``.

        Args:
            note_id: Note to summarize.
            tracker: Tracker of this operation.

        Returns:
            The API's action result (``success``, ``data``, ``error``, ``retryable``).
        """
        return self._run_ai_action(AIProcessType.SUMMARY, f"/api/notes/{note_id}/summary", tracker)

    def generate_tags(self, note_id: UUID | str, tracker: AIStatusTracker) -> dict[str, Any]:
        """Generate tags, reporting progress through ``tracker``."""
        return self._run_ai_action(AIProcessType.TAGS, f"/api/notes/{note_id}/tags", tracker)

    def _run_ai_action(
        self, process_type: AIProcessType, path: str, tracker: AIStatusTracker
    ) -> dict[str, Any]:
        tracker.set_loading(process_type)
        try:
            result = self._request("POST", path)
        except httpx.HTTPError as e:
            error_info = classify_error(e)
            logger.error(f"AI request failed: {path}: {e}")
            tracker.set_error(process_type, error_info.user_message)
            return {
                "success": False,
                "error": error_info.user_message,
                "error_type": error_info.type.value,
                "retryable": error_info.retryable,
            }

        if result.get("success"):
            tracker.set_success(process_type)
        else:
            tracker.set_error(process_type, result.get("error") or "")
        return result

    def start_job(self, note_id: UUID | str, process_type: AIProcessType) -> dict[str, Any]:
        """Start a background AI job and return its initial state."""
        process_type = AIProcessType(process_type)
        return self._request("POST", f"/api/notes/{note_id}/jobs/{process_type.value}")

    def clear_job_error(self, job_id: UUID | str) -> dict[str, Any]:
        return self._request("POST", f"/api/jobs/{job_id}/clear-error")

    def stream_job(self, job_id: UUID | str) -> Generator[AIStatusState | StreamResult, None, None]:
        """Follow a background job over SSE.

        Yields an ``AIStatusState`` for every status change, then a
        ``StreamResult`` with the final result or error.
        """
        # No timeout: the stream stays open while the job runs
        client = httpx.Client(
            base_url=self.base_url,
            timeout=None,
            cookies=self.cookies,
            headers=self._get_auth_headers(),
        )
        try:
            with client.stream(
                "GET",
                f"/api/jobs/{job_id}/stream",
                headers={"Accept": "text/event-stream"},
            ) as response:
                response.raise_for_status()
                for event_type, data in iter_sse_events(response.iter_lines()):
                    if event_type == "status":
                        yield AIStatusState.model_validate(data["state"])
                    elif event_type == "complete":
                        yield StreamResult(success=True, result=data["result"])
                        return
                    elif event_type == "error":
                        yield StreamResult(
                            success=False,
                            error=data.get("error", "Unknown error"),
                            retryable=data.get("retryable", False),
                        )
                        return
        except httpx.RequestError as e:
            logger.error(f"Request error during streaming: {e}")
            yield StreamResult(success=False, error=str(e), retryable=True)
        finally:
            client.close()


def iter_sse_events(lines: Iterable[str]) -> Iterator[tuple[str, dict[str, Any]]]:
    """Parse SSE lines into ``(event, data)`` pairs.

    Events without a type or with non-JSON data are skipped.
    """
    event_type: str | None = None
    data_lines: list[str] = []

    for line in lines:
        line = line.rstrip("\r\n")
        if line.startswith("event:"):
            event_type = line[6:].strip()
        elif line.startswith("data:"):
            data_lines.append(line[5:].strip())
        elif not line:
            if event_type and data_lines:
                raw = "\n".join(data_lines)
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning(f"Failed to parse SSE data: {raw}")
                else:
                    yield event_type, data
            event_type = None
            data_lines = []
