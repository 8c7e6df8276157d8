"""Remote hosting-service access (GitLab)."""

from melody.remote.gitlab import GitLabClient, MergeRequest, RemoteError, RemoteServiceClient
from melody.remote.http import HttpClient, HttpError, MockHttpClient, RealHttpClient

__all__ = [
    "GitLabClient",
    "HttpClient",
    "HttpError",
    "MergeRequest",
    "MockHttpClient",
    "RealHttpClient",
    "RemoteError",
    "RemoteServiceClient",
]
