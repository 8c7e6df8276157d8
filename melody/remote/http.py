"""HTTP client abstraction for the hosting-service API.

This module provides:
- HttpClient: Protocol for JSON requests (injectable for tests)
- RealHttpClient: urllib implementation
- MockHttpClient: canned responses for tests
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, cast, runtime_checkable

from melody import __version__
from melody.core.result import Err, Ok, Result

__all__ = [
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
]

JsonValue = dict[str, Any] | list[Any]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    def get_json(
        self, url: str, headers: Mapping[str, str] | None = None
    ) -> Result[JsonValue, HttpError]: ...

    def post_json(
        self,
        url: str,
        payload: Mapping[str, object],
        headers: Mapping[str, str] | None = None,
    ) -> Result[JsonValue, HttpError]: ...


class RealHttpClient:
    """HTTP client using urllib with system certificates."""

    def __init__(self, timeout: float = 30.0, user_agent: str = f"melody/{__version__}") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def get_json(
        self, url: str, headers: Mapping[str, str] | None = None
    ) -> Result[JsonValue, HttpError]:
        return self._request("GET", url, None, headers)

    def post_json(
        self,
        url: str,
        payload: Mapping[str, object],
        headers: Mapping[str, str] | None = None,
    ) -> Result[JsonValue, HttpError]:
        body = json.dumps(payload).encode("utf-8")
        return self._request("POST", url, body, headers)

    def _request(
        self,
        method: str,
        url: str,
        body: bytes | None,
        headers: Mapping[str, str] | None,
    ) -> Result[JsonValue, HttpError]:
        all_headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if body is not None:
            all_headers["Content-Type"] = "application/json"
        all_headers.update(headers or {})

        try:
            req = urllib.request.Request(url, data=body, headers=all_headers, method=method)
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                raw = response.read()
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

        try:
            data: object = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))
        if not isinstance(data, (dict, list)):
            return Err(HttpError(url=url, status=0, message="Expected JSON object or array"))
        return Ok(cast(JsonValue, data))


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_response("GET", "https://gitlab.com/api/v4/projects/42", {"id": 42})
    """

    def __init__(self) -> None:
        self._responses: dict[tuple[str, str], JsonValue | HttpError] = {}
        self.calls: list[tuple[str, str, Mapping[str, object] | None]] = []

    def set_response(self, method: str, url: str, response: JsonValue | HttpError) -> None:
        self._responses[(method, url)] = response

    def get_json(
        self, url: str, headers: Mapping[str, str] | None = None
    ) -> Result[JsonValue, HttpError]:
        self.calls.append(("GET", url, None))
        return self._lookup("GET", url)

    def post_json(
        self,
        url: str,
        payload: Mapping[str, object],
        headers: Mapping[str, str] | None = None,
    ) -> Result[JsonValue, HttpError]:
        self.calls.append(("POST", url, payload))
        return self._lookup("POST", url)

    def _lookup(self, method: str, url: str) -> Result[JsonValue, HttpError]:
        response = self._responses.get((method, url))
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
