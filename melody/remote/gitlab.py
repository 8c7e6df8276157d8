"""GitLab implementation of the remote hosting-service boundary.

Only two endpoints are used:

- ``GET  /api/v4/projects/:id`` to check a project id (or url-encoded path)
- ``POST /api/v4/projects/:id/merge_requests`` to open the release MR
"""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass
from typing import Protocol

from melody.core.config import GitLabConfig
from melody.core.result import Err, Ok, Result
from melody.core.structured import as_str_dict, get_int, get_str
from melody.remote.http import HttpClient, HttpError

__all__ = [
    "GitLabClient",
    "MergeRequest",
    "RemoteError",
    "RemoteServiceClient",
]


@dataclass(frozen=True, slots=True)
class RemoteError:
    message: str
    status: int = 0


@dataclass(frozen=True, slots=True)
class MergeRequest:
    project: str
    source_branch: str
    target_branch: str
    title: str
    description: str
    labels: tuple[str, ...] = ()
    remove_source_branch: bool = False


class RemoteServiceClient(Protocol):
    def validate_project(self, project: str) -> Result[bool, RemoteError]: ...

    def create_merge_request(self, request: MergeRequest) -> Result[str, RemoteError]: ...


class GitLabClient:
    """GitLab REST v4 client.

    ``config`` is built once at the CLI boundary; the client never reads the
    environment itself.
    """

    def __init__(self, config: GitLabConfig, http: HttpClient) -> None:
        self._config = config
        self._http = http

    def validate_project(self, project: str) -> Result[bool, RemoteError]:
        """Ok(False) when the project does not exist or is not visible."""
        if not self._config.token:
            return Err(RemoteError("GitLab access token is not configured (GITLAB_ACCESS_TOKEN)"))

        result = self._http.get_json(self._project_url(project), headers=self._headers())
        if isinstance(result, Err):
            if result.error.status == 404:
                return Ok(False)
            return Err(_remote_error(result.error))

        data = as_str_dict(result.value)
        return Ok(data is not None and get_int(data, "id") is not None)

    def create_merge_request(self, request: MergeRequest) -> Result[str, RemoteError]:
        """Open a merge request and return its web URL."""
        if not self._config.token:
            return Err(RemoteError("GitLab access token is not configured (GITLAB_ACCESS_TOKEN)"))

        payload: dict[str, object] = {
            "source_branch": request.source_branch,
            "target_branch": request.target_branch,
            "title": request.title,
            "description": request.description,
            "remove_source_branch": request.remove_source_branch,
        }
        if request.labels:
            payload["labels"] = ",".join(request.labels)

        url = self._project_url(request.project) + "/merge_requests"
        result = self._http.post_json(url, payload, headers=self._headers())
        if isinstance(result, Err):
            return Err(_remote_error(result.error))

        data = as_str_dict(result.value)
        if data is None:
            return Err(RemoteError("unexpected merge request payload"))
        web_url = get_str(data, "web_url")
        if web_url is not None:
            return Ok(web_url)
        iid = get_int(data, "iid")
        if iid is None:
            return Err(RemoteError("merge request response has no web_url or iid"))
        return Ok(f"!{iid}")

    def _project_url(self, project: str) -> str:
        encoded = urllib.parse.quote(project, safe="")
        return f"{self._config.host}/api/v4/projects/{encoded}"

    def _headers(self) -> dict[str, str]:
        return {"PRIVATE-TOKEN": self._config.token or ""}


def _remote_error(error: HttpError) -> RemoteError:
    return RemoteError(message=str(error), status=error.status)
