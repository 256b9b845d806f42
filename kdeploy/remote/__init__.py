"""Remote release host: model, protocol and the GitHub adapter."""

from .github import GitHubReleaseHost
from .host import ReleaseHost
from .http import HttpClient, HttpError, MockHttpClient, RealHttpClient
from .model import ReleaseDescriptor, RemoteAsset, pick_latest_release

__all__ = [
    "GitHubReleaseHost",
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
    "ReleaseDescriptor",
    "ReleaseHost",
    "RemoteAsset",
    "pick_latest_release",
]
